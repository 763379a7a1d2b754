"""OTP issuance."""

from datetime import timedelta
from typing import Any

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from mentormatch_auth.db.models import OTPRecord
from mentormatch_auth.db.protocols import OTPStore
from mentormatch_auth.errors import ValidationError
from mentormatch_auth.logging import get_logger
from mentormatch_auth.otp.models import IssuedOTP
from mentormatch_auth.security import generate_otp
from mentormatch_auth.types import Clock, OTPPurpose, OTPStatus, utc_now

log = get_logger(__name__)

_email_adapter = TypeAdapter(EmailStr)

MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 10
MAX_ATTEMPTS_CEILING = 10
MAX_USER_AGENT_LENGTH = 500


def normalize_identity(identity: str) -> str:
    """
    Lowercase and strip an email identity, rejecting anything that is not an address.

    Raises:
        ValidationError: If the identity is empty or not a valid email
    """
    normalized = (identity or "").strip().lower()
    if not normalized:
        raise ValidationError("Email is required", field="identity")
    try:
        _email_adapter.validate_python(normalized)
    except PydanticValidationError as e:
        raise ValidationError("Invalid email address", field="identity") from e
    return normalized


def coerce_purpose(purpose: OTPPurpose | str) -> OTPPurpose:
    """
    Resolve a purpose value.

    Raises:
        ValidationError: If the value is not a known OTPPurpose
    """
    try:
        return OTPPurpose(purpose)
    except ValueError as e:
        raise ValidationError(f"Invalid OTP purpose: {purpose!r}", field="purpose") from e


class OTPIssuer:
    """
    Creates OTP records.

    Issuing a code for a stream expires every pending code of the same
    (identity, purpose) first, so at most one pending code exists per
    stream. The plaintext code is returned to the caller; delivery is the
    caller's concern.
    """

    def __init__(self, store: OTPStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or utc_now

    async def issue(
        self,
        identity: str,
        purpose: OTPPurpose | str,
        *,
        max_attempts: int,
        code_length: int,
        ttl: timedelta,
        user_id: Any | None = None,  # noqa: ANN401
        metadata: dict[str, str | None] | None = None,
        developer_mode: bool = False,
    ) -> IssuedOTP:
        """
        Issue a new code for (identity, purpose).

        Args:
            identity: Email address (normalized before storage)
            purpose: Code stream
            max_attempts: Failed verification ceiling (1..10)
            code_length: Number of digits (4..10)
            ttl: Time until the code expires
            user_id: Optional reference stored on the record
            metadata: Optional ``ip_address`` / ``user_agent`` provenance
            developer_mode: Issue an all-zero code

        Returns:
            IssuedOTP with the plaintext code

        Raises:
            ValidationError: On invalid arguments, before touching the store
            StorageError: If the store fails
        """
        identity = normalize_identity(identity)
        purpose = coerce_purpose(purpose)
        if not MIN_CODE_LENGTH <= code_length <= MAX_CODE_LENGTH:
            raise ValidationError(
                f"code_length must be between {MIN_CODE_LENGTH} and {MAX_CODE_LENGTH}",
                field="code_length",
            )
        if ttl <= timedelta(0):
            raise ValidationError("ttl must be positive", field="ttl")
        if not 1 <= max_attempts <= MAX_ATTEMPTS_CEILING:
            raise ValidationError(
                f"max_attempts must be between 1 and {MAX_ATTEMPTS_CEILING}",
                field="max_attempts",
            )

        metadata = metadata or {}
        user_agent = metadata.get("user_agent")
        now = self.clock()

        superseded = await self.store.expire_pending(identity, purpose)
        record = await self.store.insert(
            OTPRecord(
                identity=identity,
                purpose=purpose,
                code=generate_otp(code_length, developer_mode),
                status=OTPStatus.PENDING,
                attempts=0,
                max_attempts=max_attempts,
                expires_at=now + ttl,
                created_at=now,
                user_id=user_id,
                ip_address=metadata.get("ip_address"),
                user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
            )
        )

        log.info(
            "otp_issued",
            identity=identity,
            purpose=purpose.value,
            record_id=record.id,
            superseded=superseded,
            expires_at=record.expires_at.isoformat(),
        )
        return IssuedOTP(
            code=record.code, expires_at=record.expires_at, record_id=str(record.id)
        )
