"""Column types for the SQLAlchemy backend."""

from datetime import UTC, datetime

from sqlalchemy import types
from sqlalchemy.engine import Dialect


class UTCDateTime(types.TypeDecorator):
    """
    DateTime column that round-trips timezone-aware UTC values.

    OTP expiry and rate-limit windows compare stored timestamps against an
    aware ``now``. SQLite (and DateTime columns without timezone support)
    hand back naive values, so this type stores naive UTC and re-attaches
    UTC on load.

    Example:
        ```python
        expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
        ```
    """

    impl = types.DateTime
    cache_ok = True

    def process_bind_param(
        self, value: datetime | None, _dialect: Dialect
    ) -> datetime | None:
        """Store aware values as naive UTC; naive input is assumed to be UTC already."""
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(UTC).replace(tzinfo=None)

    def process_result_value(
        self, value: datetime | None, _dialect: Dialect
    ) -> datetime | None:
        """Return loaded values as aware UTC datetimes."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
