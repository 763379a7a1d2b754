"""OTP verification with attempt counting and lazy expiry."""

from mentormatch_auth.db.protocols import OTPStore
from mentormatch_auth.logging import get_logger
from mentormatch_auth.otp.issuer import coerce_purpose, normalize_identity
from mentormatch_auth.otp.models import VerificationFailure, VerificationResult
from mentormatch_auth.security import otp_codes_match
from mentormatch_auth.types import Clock, OTPPurpose, OTPStatus, utc_now

log = get_logger(__name__)

NOT_FOUND_MESSAGE = "No valid OTP found. Please request a new code."
EXPIRED_MESSAGE = "OTP has expired. Please request a new code."
TOO_MANY_ATTEMPTS_MESSAGE = "Too many incorrect attempts. Please request a new code."
NO_ATTEMPTS_LEFT_MESSAGE = (
    "Invalid OTP. No more attempts remaining. Please request a new code."
)
VERIFIED_MESSAGE = "OTP verified successfully"


def _fail(
    reason: VerificationFailure, message: str, attempts_remaining: int | None = None
) -> VerificationResult:
    return VerificationResult(
        success=False,
        reason=reason,
        message=message,
        attempts_remaining=attempts_remaining,
    )


class OTPVerifier:
    """
    Checks submitted codes against the latest pending record of a stream.

    Expiry is evaluated lazily here rather than by a background job. Every
    attempt writes: an expired or exhausted record is moved to its terminal
    status, a wrong code increments the attempt counter and a correct one
    marks the record verified. Both writes are conditional, so two
    concurrent correct submissions cannot both succeed.
    """

    def __init__(self, store: OTPStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or utc_now

    async def verify(
        self, identity: str, purpose: OTPPurpose | str, submitted_code: str
    ) -> VerificationResult:
        """
        Verify a submitted code.

        Args:
            identity: Email address the code was issued to
            purpose: Code stream
            submitted_code: Code entered by the user

        Returns:
            VerificationResult

        Raises:
            ValidationError: If identity is not an email or purpose is unknown
            StorageError: If the store fails
        """
        identity = normalize_identity(identity)
        purpose = coerce_purpose(purpose)
        now = self.clock()

        record = await self.store.find_latest_pending(identity, purpose)
        if record is None or record.id is None:
            log.info(
                "otp_verification_failed",
                identity=identity,
                purpose=purpose.value,
                reason="not_found",
            )
            return _fail(VerificationFailure.NOT_FOUND, NOT_FOUND_MESSAGE)

        if record.is_expired(now):
            await self.store.transition(record.id, OTPStatus.EXPIRED)
            log.info(
                "otp_verification_failed",
                identity=identity,
                purpose=purpose.value,
                record_id=record.id,
                reason="expired",
            )
            return _fail(VerificationFailure.EXPIRED, EXPIRED_MESSAGE)

        if record.is_exhausted():
            await self.store.transition(record.id, OTPStatus.FAILED)
            log.warning(
                "otp_verification_failed",
                identity=identity,
                purpose=purpose.value,
                record_id=record.id,
                reason="too_many_attempts",
            )
            return _fail(VerificationFailure.TOO_MANY_ATTEMPTS, TOO_MANY_ATTEMPTS_MESSAGE)

        if not otp_codes_match(record.code, submitted_code):
            updated = await self.store.register_failed_attempt(record)
            if updated is None:
                # Lost a race: still pending means exhausted, otherwise closed
                current = await self.store.find_latest_pending(identity, purpose)
                exhausted = current is not None and current.id == record.id
                log.warning(
                    "otp_verification_failed",
                    identity=identity,
                    purpose=purpose.value,
                    record_id=record.id,
                    reason="too_many_attempts" if exhausted else "already_consumed",
                )
                if exhausted:
                    return _fail(
                        VerificationFailure.TOO_MANY_ATTEMPTS, TOO_MANY_ATTEMPTS_MESSAGE
                    )
                return _fail(VerificationFailure.NOT_FOUND, NOT_FOUND_MESSAGE)

            remaining = updated.attempts_remaining
            log.info(
                "otp_verification_failed",
                identity=identity,
                purpose=purpose.value,
                record_id=record.id,
                reason="invalid_code",
                attempts=updated.attempts,
                attempts_remaining=remaining,
            )
            if remaining <= 0:
                message = NO_ATTEMPTS_LEFT_MESSAGE
            else:
                plural = "" if remaining == 1 else "s"
                message = f"Invalid OTP. {remaining} attempt{plural} remaining."
            return _fail(VerificationFailure.INVALID_CODE, message, remaining)

        if not await self.store.transition(
            record.id, OTPStatus.VERIFIED, verified_at=now
        ):
            log.warning(
                "otp_verification_failed",
                identity=identity,
                purpose=purpose.value,
                record_id=record.id,
                reason="already_consumed",
            )
            return _fail(VerificationFailure.NOT_FOUND, NOT_FOUND_MESSAGE)

        log.info(
            "otp_verified", identity=identity, purpose=purpose.value, record_id=record.id
        )
        return VerificationResult(success=True, message=VERIFIED_MESSAGE)
