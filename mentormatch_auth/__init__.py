"""MentorMatch Auth - OTP issuance and verification, JWT sessions and FastAPI auth flows."""

from mentormatch_auth.config import OTPAuthConfig
from mentormatch_auth.db import (
    BaseOTPRecordTable,
    BaseUserTable,
    OTPRecord,
    OTPStore,
    SQLAlchemyOTPStore,
    SQLAlchemyUserStore,
    UserStore,
)
from mentormatch_auth.dependencies import (
    get_current_user_dependency,
    get_request_metadata,
    get_token_claims_dependency,
    get_verified_user_dependency,
)
from mentormatch_auth.errors import AppError, register_error_handlers
from mentormatch_auth.logging import configure_logging, get_logger
from mentormatch_auth.notifications import (
    DeliveryResult,
    EmailSender,
    OTPNotification,
    deliver_otp,
)
from mentormatch_auth.otp import (
    IssuedOTP,
    OTPService,
    OTPSweeper,
    RateLimitDecision,
    VerificationFailure,
    VerificationResult,
)
from mentormatch_auth.router import get_auth_router
from mentormatch_auth.service import AuthService
from mentormatch_auth.settings import AuthSettings
from mentormatch_auth.tokens import SessionClaims, SessionTokenIssuer
from mentormatch_auth.types import OTPPurpose, OTPStatus, UserRole

__version__ = "0.1.0"

__all__ = [
    "AppError",
    "AuthService",
    "AuthSettings",
    "BaseOTPRecordTable",
    "BaseUserTable",
    "DeliveryResult",
    "EmailSender",
    "IssuedOTP",
    "OTPAuthConfig",
    "OTPNotification",
    "OTPPurpose",
    "OTPRecord",
    "OTPService",
    "OTPStatus",
    "OTPStore",
    "OTPSweeper",
    "RateLimitDecision",
    "SQLAlchemyOTPStore",
    "SQLAlchemyUserStore",
    "SessionClaims",
    "SessionTokenIssuer",
    "UserRole",
    "UserStore",
    "VerificationFailure",
    "VerificationResult",
    "configure_logging",
    "deliver_otp",
    "get_auth_router",
    "get_current_user_dependency",
    "get_logger",
    "get_request_metadata",
    "get_token_claims_dependency",
    "get_verified_user_dependency",
    "register_error_handlers",
]

# Conditionally export MongoDB classes if motor is installed
try:
    from mentormatch_auth.db import BaseUserDocument, MongoOTPStore, MongoUserStore

    __all__ += ["BaseUserDocument", "MongoOTPStore", "MongoUserStore"]
except ImportError:
    # MongoDB support not installed
    pass
