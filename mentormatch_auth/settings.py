"""
Environment-sourced settings via pydantic-settings.

Variable names follow the deployed service (JWT_SECRET, OTP_LENGTH,
OTP_EXPIRES_IN, ...). Only this module reads the environment; the OTP
core receives plain values through OTPAuthConfig.
"""

import re
from datetime import timedelta

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str) -> timedelta:
    """
    Parse a compact duration such as "60m", "1h", "7d" or "3600s".

    A bare number is interpreted as seconds.

    Raises:
        ValueError: If the value is not a recognised duration
    """
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit or "s"]: int(amount)})


class AuthSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # JWT
    jwt_secret: str = ""
    jwt_expires_in: str = "60m"
    jwt_issuer: str = "mentormatch-api"
    jwt_audience: str = "mentormatch-app"
    jwt_algorithm: str = "HS256"

    # OTP
    otp_length: int = Field(default=6, ge=4, le=10)
    otp_expires_in: int = Field(default=10, gt=0)  # minutes
    max_otp_attempts: int = Field(default=5, ge=1, le=10)
    otp_rate_limit_window: int = Field(default=3_600_000, gt=0)  # milliseconds
    otp_rate_limit_max: int = Field(default=3, ge=1)
    otp_retention_hours: int = Field(default=24, ge=1)

    # Security
    bcrypt_salt_rounds: int = Field(default=12, ge=4, le=31)
    developer_mode: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production

    @field_validator("jwt_expires_in")
    @classmethod
    def _check_duration(cls, v: str) -> str:
        parse_duration(v)
        return v

    @property
    def access_token_lifetime(self) -> timedelta:
        return parse_duration(self.jwt_expires_in)

    @property
    def otp_expiry(self) -> timedelta:
        return timedelta(minutes=self.otp_expires_in)

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(milliseconds=self.otp_rate_limit_window)

    @property
    def otp_retention(self) -> timedelta:
        return timedelta(hours=self.otp_retention_hours)
