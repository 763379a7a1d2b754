"""Pydantic schemas for request/response models."""

import ipaddress
import re
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, EmailStr, Field, field_validator  # type: ignore[import-untyped]

from mentormatch_auth.types import OTPPurpose

_NAME_RE = re.compile(r"^[A-Za-z\s]+$")
_PASSWORD_RULE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "and one number"
)


def _check_password_strength(value: str) -> str:
    if not (
        re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)
    ):
        raise ValueError(_PASSWORD_RULE)
    return value


OTPCode = Annotated[
    str,
    Field(min_length=4, max_length=10, pattern=r"^\d+$", description="OTP code to verify"),
]


class RegisterRequest(BaseModel):
    """Request schema for account registration."""

    name: str = Field(..., min_length=2, max_length=50, description="Display name")
    email: EmailStr = Field(..., description="Email address to register")
    password: str = Field(..., min_length=8, max_length=128, repr=False)

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        v = v.strip()
        if not _NAME_RE.match(v):
            raise ValueError("Name can only contain letters and spaces")
        return v

    @field_validator("password")
    @classmethod
    def _check_password(cls, v: str) -> str:
        return _check_password_strength(v)


class VerifyEmailRequest(BaseModel):
    """Request schema for email verification."""

    email: EmailStr = Field(..., description="Email address of the user")
    otp: OTPCode


class ResendOTPRequest(BaseModel):
    """Request schema for issuing a fresh code."""

    email: EmailStr = Field(..., description="Email address to send OTP code to")
    purpose: OTPPurpose = Field(
        default=OTPPurpose.EMAIL_VERIFICATION, description="Code stream to re-issue"
    )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, repr=False)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request schema for resetting a password with a PASSWORD_RESET code."""

    email: EmailStr
    otp: OTPCode
    new_password: str = Field(..., min_length=8, max_length=128, repr=False)

    @field_validator("new_password")
    @classmethod
    def _check_password(cls, v: str) -> str:
        return _check_password_strength(v)


class ChangePasswordRequest(BaseModel):
    """Request schema for an authenticated password change."""

    current_password: str = Field(..., min_length=1, repr=False)
    new_password: str = Field(..., min_length=8, max_length=128, repr=False)

    @field_validator("new_password")
    @classmethod
    def _check_password(cls, v: str) -> str:
        return _check_password_strength(v)


class TokenResponse(BaseModel):
    """Response schema for token generation."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")


class UserProfile(BaseModel):
    """Public view of a user."""

    id: str
    email: str
    name: str
    role: str
    is_email_verified: bool
    last_login_at: datetime | None = None

    @classmethod
    def from_user(cls, user: Any) -> "UserProfile":  # noqa: ANN401
        role = getattr(user.role, "value", user.role)
        return cls(
            id=str(user.id),
            email=user.email,
            name=user.name,
            role=str(role),
            is_email_verified=user.is_email_verified,
            last_login_at=user.last_login_at,
        )


class AuthResponse(BaseModel):
    """Response schema for flows that end in a session."""

    message: str = Field(default="Authentication successful")
    user: UserProfile
    tokens: TokenResponse


class RegistrationResponse(BaseModel):
    message: str
    user_id: str
    email: str
    requires_verification: bool = True


class MessageResponse(BaseModel):
    """Generic message response schema."""

    message: str = Field(..., description="Response message")


class RequestMetadata(BaseModel):
    """Provenance stored on issued codes."""

    ip_address: str | None = None
    user_agent: str | None = Field(default=None, max_length=500)

    @field_validator("ip_address", mode="before")
    @classmethod
    def _check_ip(cls, v: object) -> str | None:
        if not isinstance(v, str) or not v.strip():
            return None
        try:
            return str(ipaddress.ip_address(v.strip()))
        except ValueError:
            return None

    @field_validator("user_agent", mode="before")
    @classmethod
    def _truncate_user_agent(cls, v: object) -> str | None:
        if not isinstance(v, str) or not v:
            return None
        return v[:500]
