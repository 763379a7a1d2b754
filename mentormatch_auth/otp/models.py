"""Result types returned by the OTP core."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class IssuedOTP(BaseModel):
    """
    A freshly issued code.

    The plaintext code is returned to the caller only so it can be handed
    to the email sender; it is kept out of ``repr``.
    """

    code: str = Field(..., repr=False)
    expires_at: datetime
    record_id: str


class RateLimitDecision(BaseModel):
    allowed: bool
    retry_after_seconds: int | None = None
    reason: str | None = None


class VerificationFailure(StrEnum):
    """Why a submitted code was rejected."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    INVALID_CODE = "invalid_code"


class VerificationResult(BaseModel):
    """
    Outcome of a verification attempt.

    ``reason`` is None on success. ``attempts_remaining`` is only set for
    INVALID_CODE.
    """

    success: bool
    reason: VerificationFailure | None = None
    message: str
    attempts_remaining: int | None = None


class OTPStats(BaseModel):
    """Issuance counts for a reporting period."""

    total: int
    by_purpose: dict[str, int]
    by_status: dict[str, int]
    success_rate: float = Field(..., description="Percentage of VERIFIED records")
