import contextlib
import typing
from collections.abc import AsyncIterator
from datetime import UTC, datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mentormatch_auth.db.models import OTPRecord, OTPStatsRow
from mentormatch_auth.errors import StorageError
from mentormatch_auth.logging import get_logger
from mentormatch_auth.types import TERMINAL_STATUSES, OTPPurpose, OTPStatus, UserType

log = get_logger(__name__)


class _SessionBound:
    session: AsyncSession

    @contextlib.asynccontextmanager
    async def _storage_errors(self, operation: str) -> AsyncIterator[None]:
        """Roll back and translate driver failures into StorageError."""
        try:
            yield
        except SQLAlchemyError as e:
            await self.session.rollback()
            log.error(
                "otp_storage_error",
                backend="sqlalchemy",
                operation=operation,
                error_type=type(e).__name__,
            )
            raise StorageError(
                "The authentication store is temporarily unavailable. Please try again."
            ) from e


class SQLAlchemyOTPStore(_SessionBound):
    """
    SQLAlchemy implementation of the OTPStore protocol.

    Wraps an AsyncSession; status and attempt changes are issued as
    conditional UPDATE statements so concurrent verifications cannot
    overwrite each other.

    Example:
        ```python
        async def get_otp_store(
            session: AsyncSession = Depends(get_async_session)
        ) -> SQLAlchemyOTPStore:
            return SQLAlchemyOTPStore(session, OTPRecordRow)
        ```
    """

    def __init__(self, session: AsyncSession, otp_model: type[typing.Any]) -> None:
        """
        Initialize the OTP store.

        Args:
            session: SQLAlchemy async session
            otp_model: Table class inheriting from BaseOTPRecordTable
        """
        self.session = session
        self.otp_model = otp_model

    def _to_record(self, row: typing.Any) -> OTPRecord:  # noqa: ANN401
        data = {column.key: getattr(row, column.key) for column in row.__table__.columns}
        return OTPRecord.model_validate(data)

    def _stream(self, identity: str, purpose: OTPPurpose) -> typing.Any:  # noqa: ANN401
        model = self.otp_model
        return and_(model.identity == identity, model.purpose == purpose.value)

    async def _fetch(self, record_id: typing.Any) -> OTPRecord | None:  # noqa: ANN401
        statement = (
            select(self.otp_model)
            .where(self.otp_model.id == record_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(statement)
        row = result.scalar_one_or_none()
        return self._to_record(row) if row is not None else None

    async def insert(self, record: OTPRecord) -> OTPRecord:
        """
        Persist a new OTP record.

        Args:
            record: Record to insert (id is ignored)

        Returns:
            The record with its generated id
        """
        data = record.model_dump(exclude={"id"})
        data["purpose"] = record.purpose.value
        data["status"] = record.status.value
        row = self.otp_model(**data)

        async with self._storage_errors("insert"):
            self.session.add(row)
            await self.session.commit()
            await self.session.refresh(row)
        return self._to_record(row)

    async def expire_pending(self, identity: str, purpose: OTPPurpose) -> int:
        """
        Mark all pending records of the stream as expired.

        Returns:
            Number of records expired
        """
        statement = (
            update(self.otp_model)
            .where(
                self._stream(identity, purpose),
                self.otp_model.status == OTPStatus.PENDING.value,
            )
            .values(status=OTPStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        async with self._storage_errors("expire_pending"):
            result = await self.session.execute(statement)
            await self.session.commit()
        return result.rowcount

    async def find_latest_pending(
        self, identity: str, purpose: OTPPurpose
    ) -> OTPRecord | None:
        model = self.otp_model
        statement = (
            select(model)
            .where(self._stream(identity, purpose), model.status == OTPStatus.PENDING.value)
            .order_by(model.created_at.desc(), model.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        async with self._storage_errors("find_latest_pending"):
            result = await self.session.execute(statement)
            row = result.scalar_one_or_none()
        return self._to_record(row) if row is not None else None

    async def count_created_since(
        self, identity: str, purpose: OTPPurpose, since: datetime
    ) -> int:
        model = self.otp_model
        statement = (
            select(func.count())
            .select_from(model)
            .where(self._stream(identity, purpose), model.created_at >= since)
        )
        async with self._storage_errors("count_created_since"):
            result = await self.session.execute(statement)
        return result.scalar_one()

    async def find_oldest_created_since(
        self, identity: str, purpose: OTPPurpose, since: datetime
    ) -> OTPRecord | None:
        model = self.otp_model
        statement = (
            select(model)
            .where(self._stream(identity, purpose), model.created_at >= since)
            .order_by(model.created_at.asc(), model.id.asc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        async with self._storage_errors("find_oldest_created_since"):
            result = await self.session.execute(statement)
            row = result.scalar_one_or_none()
        return self._to_record(row) if row is not None else None

    async def transition(
        self,
        record_id: str,
        status: OTPStatus,
        *,
        verified_at: datetime | None = None,
    ) -> bool:
        """
        Move a pending record to a terminal status.

        Returns:
            True if the record was pending and has been updated
        """
        values: dict[str, typing.Any] = {"status": status.value}
        if verified_at is not None:
            values["verified_at"] = verified_at

        statement = (
            update(self.otp_model)
            .where(
                self.otp_model.id == int(record_id),
                self.otp_model.status == OTPStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._storage_errors("transition"):
            result = await self.session.execute(statement)
            await self.session.commit()
        return result.rowcount == 1

    async def register_failed_attempt(self, record: OTPRecord) -> OTPRecord | None:
        """
        Increment attempts with a conditional update.

        Returns:
            Updated record, or None if it was no longer pending or already exhausted
        """
        model = self.otp_model
        record_id = int(typing.cast(str, record.id))
        statement = (
            update(model)
            .where(
                model.id == record_id,
                model.status == OTPStatus.PENDING.value,
                model.attempts < record.max_attempts,
            )
            .values(attempts=model.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        async with self._storage_errors("register_failed_attempt"):
            result = await self.session.execute(statement)
            await self.session.commit()
            if result.rowcount != 1:
                return None
            return await self._fetch(record_id)

    async def delete_stale(self, retention_cutoff: datetime) -> int:
        """
        Remove terminal records older than the cutoff and records expired before it.

        Returns:
            Number of records removed
        """
        model = self.otp_model
        statement = (
            delete(model)
            .where(
                or_(
                    and_(
                        model.status.in_([s.value for s in TERMINAL_STATUSES]),
                        model.created_at < retention_cutoff,
                    ),
                    model.expires_at < retention_cutoff,
                )
            )
            .execution_options(synchronize_session=False)
        )
        async with self._storage_errors("delete_stale"):
            result = await self.session.execute(statement)
            await self.session.commit()
        return result.rowcount

    async def count_by_purpose_and_status(self, since: datetime) -> list[OTPStatsRow]:
        model = self.otp_model
        statement = (
            select(model.purpose, model.status, func.count())
            .where(model.created_at >= since)
            .group_by(model.purpose, model.status)
        )
        async with self._storage_errors("count_by_purpose_and_status"):
            result = await self.session.execute(statement)
            rows = result.all()
        return [
            OTPStatsRow(purpose=purpose, status=status, count=count)
            for purpose, status, count in rows
        ]


class SQLAlchemyUserStore(_SessionBound, typing.Generic[UserType]):
    """
    SQLAlchemy implementation of the UserStore protocol.

    Example:
        ```python
        async def get_user_store(
            session: AsyncSession = Depends(get_async_session)
        ) -> SQLAlchemyUserStore[User]:
            return SQLAlchemyUserStore(session, User)
        ```
    """

    def __init__(self, session: AsyncSession, user_model: type[UserType]) -> None:
        """
        Initialize the user store.

        Args:
            session: SQLAlchemy async session
            user_model: User model class inheriting from BaseUserTable
        """
        self.session = session
        self.user_model = user_model

    async def get_by_email(self, email: str) -> UserType | None:
        """
        Retrieve user by email address.

        Args:
            email: Email address to search for

        Returns:
            User object if found, None otherwise
        """
        statement = select(self.user_model).where(
            self.user_model.email == email.strip().lower()  # type: ignore[arg-type]
        )
        async with self._storage_errors("get_user_by_email"):
            result = await self.session.execute(statement)
            return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int | str) -> UserType | None:
        """
        Retrieve user by ID.

        Args:
            user_id: User ID to search for

        Returns:
            User object if found, None otherwise
        """
        if isinstance(user_id, str) and user_id.isdigit():
            user_id = int(user_id)
        async with self._storage_errors("get_user_by_id"):
            return await self.session.get(self.user_model, user_id)

    async def create_user(self, email: str, **kwargs: object) -> UserType:
        """
        Create a new user with the given email and additional fields.

        Args:
            email: User's email address
            **kwargs: Additional user fields

        Returns:
            Created user object
        """
        user = self.user_model(email=email.strip().lower(), **kwargs)  # type: ignore[call-arg]
        async with self._storage_errors("create_user"):
            self.session.add(user)
            await self.session.commit()
            await self.session.refresh(user)
        return user

    async def mark_email_verified(self, user: UserType) -> None:
        """
        Mark the user's email as verified.

        Args:
            user: User object to update
        """
        user.is_email_verified = True
        async with self._storage_errors("mark_email_verified"):
            await self.session.commit()
            await self.session.refresh(user)

    async def update_password(self, user: UserType, password_hash: str) -> None:
        """
        Replace the user's password hash.

        Args:
            user: User object to update
            password_hash: New bcrypt hash
        """
        user.password_hash = password_hash
        async with self._storage_errors("update_password"):
            await self.session.commit()
            await self.session.refresh(user)

    async def record_login(self, user: UserType) -> None:
        """
        Stamp the user's last login time.

        Args:
            user: User object to update
        """
        user.last_login_at = datetime.now(UTC)
        async with self._storage_errors("record_login"):
            await self.session.commit()
            await self.session.refresh(user)
