"""Protocols defining the storage interfaces used by the OTP core and auth flows."""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from mentormatch_auth.db.models import OTPRecord, OTPStatsRow
from mentormatch_auth.types import OTPPurpose, OTPStatus


@runtime_checkable
class OTPStore(Protocol):
    """
    Persistence for OTP records.

    All identities passed in are already normalized (lowercased).
    Every write that changes status or attempts is conditional on the
    record still being pending, so terminal records are never mutated.
    Implementations raise StorageError when the backend fails.
    """

    async def insert(self, record: OTPRecord) -> OTPRecord:
        """Persist a new record and return it with its id set."""
        ...

    async def expire_pending(self, identity: str, purpose: OTPPurpose) -> int:
        """Mark every pending record for (identity, purpose) as expired."""
        ...

    async def find_latest_pending(
        self, identity: str, purpose: OTPPurpose
    ) -> OTPRecord | None:
        """Return the most recently created pending record, if any."""
        ...

    async def count_created_since(
        self, identity: str, purpose: OTPPurpose, since: datetime
    ) -> int:
        """Count records of any status created at or after `since`."""
        ...

    async def find_oldest_created_since(
        self, identity: str, purpose: OTPPurpose, since: datetime
    ) -> OTPRecord | None:
        """Return the oldest record created at or after `since`."""
        ...

    async def transition(
        self,
        record_id: str,
        status: OTPStatus,
        *,
        verified_at: datetime | None = None,
    ) -> bool:
        """
        Move a pending record to `status`.

        Returns:
            False if the record was no longer pending (lost a race)
        """
        ...

    async def register_failed_attempt(self, record: OTPRecord) -> OTPRecord | None:
        """
        Atomically increment attempts if the record is still pending and below
        its max_attempts ceiling (compare-and-set on status and attempts).

        Returns:
            The updated record, or None if the conditional update matched nothing
        """
        ...

    async def delete_stale(self, retention_cutoff: datetime) -> int:
        """
        Delete records that can no longer matter.

        Removes terminal records created before `retention_cutoff` and any
        record whose expiry is before `retention_cutoff`. Never deletes a
        pending record that is still within its expiry.
        """
        ...

    async def count_by_purpose_and_status(self, since: datetime) -> list[OTPStatsRow]:
        """Aggregate records created since `since` by (purpose, status)."""
        ...


@runtime_checkable
class UserStore(Protocol):
    """Minimal user persistence needed by the registration and login flows."""

    async def get_by_email(self, email: str) -> Any | None:  # noqa: ANN401
        """Retrieve a user by (normalized) email address."""
        ...

    async def get_by_id(self, user_id: int | str) -> Any | None:  # noqa: ANN401
        """Retrieve a user by id."""
        ...

    async def create_user(self, email: str, **kwargs: object) -> Any:  # noqa: ANN401
        """Create a user with the given email and additional fields."""
        ...

    async def mark_email_verified(self, user: Any) -> None:  # noqa: ANN401
        """Set is_email_verified on the user."""
        ...

    async def update_password(self, user: Any, password_hash: str) -> None:  # noqa: ANN401
        """Replace the user's password hash."""
        ...

    async def record_login(self, user: Any) -> None:  # noqa: ANN401
        """Stamp last_login_at with the current time."""
        ...
