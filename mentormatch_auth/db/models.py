"""Backend-neutral OTP record model."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mentormatch_auth.types import OTPPurpose, OTPStatus


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class OTPRecord(BaseModel):
    """
    One issued one-time code.

    Stores hand these back from every read so the OTP core works the same
    way on MongoDB and SQL. The plaintext ``code`` is kept out of ``repr``
    and must never be serialized into an API response.

    Fields:
        - identity: lowercased email address the code was issued to
        - purpose: code stream (email verification, password reset, ...)
        - status: pending until verified, expired or failed
        - attempts / max_attempts: failed verification counter and its ceiling
        - expires_at: the code is unusable at or after this instant
        - created_at: issuance time, used by the sliding-window rate limit
        - user_id: optional lookup reference to the user
        - ip_address / user_agent: provenance captured at issuance
    """

    id: str | None = Field(default=None, alias="_id")

    identity: str = Field(..., min_length=3, max_length=320)
    purpose: OTPPurpose
    code: str = Field(..., min_length=4, max_length=10, repr=False)
    status: OTPStatus = OTPStatus.PENDING

    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=5, ge=1, le=10)

    expires_at: datetime
    created_at: datetime
    verified_at: datetime | None = None

    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(
        populate_by_name=True,  # Allow both 'id' and '_id'
        from_attributes=True,  # Build directly from SQLAlchemy rows
    )

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _stringify_id(cls, v: object) -> str | None:
        return None if v is None else str(v)

    @field_validator("expires_at", "created_at", "verified_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return None if v is None else ensure_utc(v)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def can_attempt(self, now: datetime) -> bool:
        return (
            self.status is OTPStatus.PENDING
            and not self.is_expired(now)
            and not self.is_exhausted()
        )

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempts, 0)


class OTPStatsRow(BaseModel):
    """Count of records for one (purpose, status) pair."""

    purpose: OTPPurpose
    status: OTPStatus
    count: int
