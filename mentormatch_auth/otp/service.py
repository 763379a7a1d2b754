"""OTP facade bound to an OTPAuthConfig."""

from collections import Counter
from datetime import timedelta
from typing import Any

from mentormatch_auth.config import OTPAuthConfig
from mentormatch_auth.db.protocols import OTPStore
from mentormatch_auth.otp.housekeeping import cleanup_stale_records
from mentormatch_auth.otp.issuer import OTPIssuer
from mentormatch_auth.otp.models import (
    IssuedOTP,
    OTPStats,
    RateLimitDecision,
    VerificationResult,
)
from mentormatch_auth.otp.rate_limiter import OTPRateLimiter
from mentormatch_auth.otp.verifier import OTPVerifier
from mentormatch_auth.types import Clock, OTPPurpose, OTPStatus, utc_now


class OTPService:
    """
    Issuer, rate limiter, verifier and housekeeping wired to configuration values.

    Example:
        ```python
        otp = OTPService(MongoOTPStore(db), config)

        decision = await otp.can_issue(email, OTPPurpose.EMAIL_VERIFICATION)
        if decision.allowed:
            issued = await otp.issue(email, OTPPurpose.EMAIL_VERIFICATION)
        ```
    """

    def __init__(
        self, store: OTPStore, config: OTPAuthConfig, clock: Clock | None = None
    ) -> None:
        self.store = store
        self.config = config
        self.clock = clock or utc_now
        self.issuer = OTPIssuer(store, self.clock)
        self.rate_limiter = OTPRateLimiter(store, self.clock)
        self.verifier = OTPVerifier(store, self.clock)

    async def can_issue(
        self, identity: str, purpose: OTPPurpose | str
    ) -> RateLimitDecision:
        return await self.rate_limiter.can_issue(
            identity,
            purpose,
            window=self.config.otp_rate_limit_window,
            max_per_window=self.config.otp_rate_limit_max,
        )

    async def issue(
        self,
        identity: str,
        purpose: OTPPurpose | str,
        user_id: Any | None = None,  # noqa: ANN401
        metadata: dict[str, str | None] | None = None,
    ) -> IssuedOTP:
        return await self.issuer.issue(
            identity,
            purpose,
            max_attempts=self.config.max_otp_attempts,
            code_length=self.config.otp_length,
            ttl=self.config.otp_expiry,
            user_id=user_id,
            metadata=metadata,
            developer_mode=self.config.developer_mode,
        )

    async def verify(
        self, identity: str, purpose: OTPPurpose | str, code: str
    ) -> VerificationResult:
        return await self.verifier.verify(identity, purpose, code)

    async def cleanup(self) -> int:
        """Delete stale records using the configured retention."""
        return await cleanup_stale_records(
            self.store, retention=self.config.otp_retention, clock=self.clock
        )

    async def get_stats(self, hours: int = 24) -> OTPStats:
        """
        Summarize records created in the last ``hours`` hours.

        Returns:
            OTPStats with totals per purpose and status, and the
            percentage of records that were verified
        """
        since = self.clock() - timedelta(hours=hours)
        rows = await self.store.count_by_purpose_and_status(since)

        by_purpose: Counter[str] = Counter()
        by_status: Counter[str] = Counter()
        for row in rows:
            by_purpose[row.purpose.value] += row.count
            by_status[row.status.value] += row.count

        total = sum(by_status.values())
        verified = by_status.get(OTPStatus.VERIFIED.value, 0)
        success_rate = round(verified / total * 100, 2) if total else 0.0

        return OTPStats(
            total=total,
            by_purpose=dict(by_purpose),
            by_status=dict(by_status),
            success_rate=success_rate,
        )
