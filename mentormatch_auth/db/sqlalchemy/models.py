"""SQLAlchemy table mixins for MentorMatch authentication."""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column  # type: ignore[import-untyped]

from mentormatch_auth.db.sqlalchemy.types import UTCDateTime
from mentormatch_auth.types import OTPStatus, UserRole

ID = TypeVar("ID")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BaseUserTable(Generic[ID]):
    """
    Base class for user models used by the auth flows.

    Generic type parameter ID allows for different primary key types (int, UUID, etc.).

    Required fields:
        - email: User's email address (unique, indexed, lowercased)
        - name: Display name used in emails
        - password_hash: bcrypt hash
        - role: mentee, mentor or admin
        - is_email_verified: Whether the email verification code was accepted
        - is_active: False once the account is deactivated
        - last_login_at: Timestamp of the last successful login

    Example:
        ```python
        from sqlalchemy.orm import DeclarativeBase

        class Base(DeclarativeBase):
            pass

        class User(BaseUserTable[int], Base):
            __tablename__ = "users"

            id: Mapped[int] = mapped_column(Integer, primary_key=True)
            timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
        ```
    """

    email: Mapped[str] = mapped_column(
        String(320), unique=True, index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(16), default=UserRole.MENTEE.value, nullable=False
    )

    is_email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, nullable=False
    )


class BaseOTPRecordTable:
    """
    Mixin for the table holding issued OTP codes.

    One row per issuance. Rows are looked up by (identity, purpose, status)
    for verification and by (identity, purpose, created_at) for the
    sliding-window rate limit.

    Example:
        ```python
        class OTPRecordRow(BaseOTPRecordTable, Base):
            __tablename__ = "otp_records"
        ```
    """

    __tablename__ = "otp_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    identity: Mapped[str] = mapped_column(String(320), nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=OTPStatus.PENDING.value, nullable=False
    )

    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=5, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Any, ...]:  # noqa: N805
        return (
            Index(
                f"ix_{cls.__tablename__}_stream_status", "identity", "purpose", "status"
            ),
            Index(
                f"ix_{cls.__tablename__}_stream_created",
                "identity",
                "purpose",
                "created_at",
            ),
        )
