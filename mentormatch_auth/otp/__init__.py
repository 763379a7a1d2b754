"""OTP core: issuance, rate limiting, verification and housekeeping."""

from mentormatch_auth.otp.housekeeping import OTPSweeper, cleanup_stale_records
from mentormatch_auth.otp.issuer import OTPIssuer
from mentormatch_auth.otp.models import (
    IssuedOTP,
    OTPStats,
    RateLimitDecision,
    VerificationFailure,
    VerificationResult,
)
from mentormatch_auth.otp.rate_limiter import OTPRateLimiter
from mentormatch_auth.otp.service import OTPService
from mentormatch_auth.otp.verifier import OTPVerifier

__all__ = [
    "IssuedOTP",
    "OTPIssuer",
    "OTPRateLimiter",
    "OTPService",
    "OTPStats",
    "OTPSweeper",
    "OTPVerifier",
    "RateLimitDecision",
    "VerificationFailure",
    "VerificationResult",
    "cleanup_stale_records",
]
