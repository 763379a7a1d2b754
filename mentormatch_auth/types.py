"""Type definitions for mentormatch-auth."""

from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol, TypeVar


class OTPPurpose(StrEnum):
    """Independent code streams that can exist for the same identity."""

    EMAIL_VERIFICATION = "email-verification"
    PASSWORD_RESET = "password-reset"
    PHONE_VERIFICATION = "phone-verification"


class OTPStatus(StrEnum):
    """Lifecycle states of an issued OTP record."""

    PENDING = "pending"
    VERIFIED = "verified"
    EXPIRED = "expired"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not OTPStatus.PENDING


TERMINAL_STATUSES = (OTPStatus.VERIFIED, OTPStatus.EXPIRED, OTPStatus.FAILED)


class UserRole(StrEnum):
    """Platform roles carried in session tokens."""

    MENTEE = "mentee"
    MENTOR = "mentor"
    ADMIN = "admin"


class AuthUserProtocol(Protocol):
    """Protocol defining required attributes for user models used by the auth flows."""

    id: Any
    email: str
    name: str
    password_hash: str | None
    role: str
    is_email_verified: bool
    is_active: bool
    last_login_at: datetime | None


# Generic type variable for user models
UserType = TypeVar("UserType", bound=AuthUserProtocol)

# Zero-argument callable returning the current aware UTC time
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)
