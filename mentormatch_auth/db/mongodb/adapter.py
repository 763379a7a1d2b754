"""MongoDB adapters for OTP records and users."""

import contextlib
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any, Generic

try:
    from bson import ObjectId  # type: ignore[import-untyped]
    from motor.motor_asyncio import AsyncIOMotorDatabase  # type: ignore[import-untyped]
    from pymongo import ASCENDING, DESCENDING, ReturnDocument  # type: ignore[import-untyped]
    from pymongo.errors import PyMongoError  # type: ignore[import-untyped]
except ImportError as e:
    raise ImportError(
        "MongoDB support requires motor and pymongo. "
        "Install with: pip install mentormatch-auth[mongodb]"
    ) from e

from mentormatch_auth.db.models import OTPRecord, OTPStatsRow
from mentormatch_auth.errors import StorageError
from mentormatch_auth.logging import get_logger
from mentormatch_auth.types import TERMINAL_STATUSES, OTPPurpose, OTPStatus, UserType

log = get_logger(__name__)


@contextlib.contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StorageError."""
    try:
        yield
    except PyMongoError as e:
        log.error(
            "otp_storage_error",
            backend="mongodb",
            operation=operation,
            error_type=type(e).__name__,
        )
        raise StorageError(
            "The authentication store is temporarily unavailable. Please try again."
        ) from e


def _to_object_id(value: Any) -> Any:  # noqa: ANN401
    """Convert a 24-hex string to ObjectId, leaving anything else unchanged."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


class MongoOTPStore:
    """
    MongoDB implementation of the OTPStore protocol.

    Wraps a Motor database handle; the handle is owned by the application,
    this class never opens or closes connections.

    Example:
        ```python
        from motor.motor_asyncio import AsyncIOMotorClient

        client = AsyncIOMotorClient("mongodb://localhost:27017")
        store = MongoOTPStore(client.mentormatch)
        await store.ensure_indexes(ttl_retention=timedelta(hours=24))
        ```
    """

    def __init__(
        self, database: AsyncIOMotorDatabase, collection_name: str = "otps"
    ) -> None:
        """
        Initialize the MongoDB OTP store.

        Args:
            database: Motor AsyncIOMotorDatabase instance
            collection_name: Name of the OTP collection
        """
        self.database = database
        self.collection = database[collection_name]

    async def ensure_indexes(self, ttl_retention: timedelta | None = None) -> None:
        """
        Create the lookup indexes used by issuance, verification and rate limiting.

        Args:
            ttl_retention: If set, add a TTL index on expires_at so MongoDB
                removes records this long after they expire
        """
        with _storage_errors("ensure_indexes"):
            await self.collection.create_index(
                [("identity", ASCENDING), ("purpose", ASCENDING), ("status", ASCENDING)]
            )
            await self.collection.create_index(
                [("identity", ASCENDING), ("purpose", ASCENDING), ("created_at", DESCENDING)]
            )
            await self.collection.create_index([("user_id", ASCENDING), ("purpose", ASCENDING)])
            if ttl_retention is not None:
                await self.collection.create_index(
                    "expires_at",
                    expireAfterSeconds=int(ttl_retention.total_seconds()),
                )

    def _deserialize(self, doc: dict[str, Any] | None) -> OTPRecord | None:
        if doc is None:
            return None
        # OTPRecord stringifies ObjectIds and re-attaches UTC to naive datetimes
        return OTPRecord.model_validate(doc)

    def _serialize(self, record: OTPRecord) -> dict[str, Any]:
        doc = record.model_dump(exclude={"id"})
        doc["purpose"] = record.purpose.value
        doc["status"] = record.status.value
        doc["user_id"] = _to_object_id(record.user_id)
        return doc

    @staticmethod
    def _stream(identity: str, purpose: OTPPurpose) -> dict[str, Any]:
        return {"identity": identity, "purpose": purpose.value}

    async def insert(self, record: OTPRecord) -> OTPRecord:
        """
        Persist a new OTP record.

        Args:
            record: Record to insert (id is ignored)

        Returns:
            The record with its generated id
        """
        with _storage_errors("insert"):
            result = await self.collection.insert_one(self._serialize(record))
        return record.model_copy(update={"id": str(result.inserted_id)})

    async def expire_pending(self, identity: str, purpose: OTPPurpose) -> int:
        """
        Mark all pending records of the stream as expired.

        Returns:
            Number of records expired
        """
        with _storage_errors("expire_pending"):
            result = await self.collection.update_many(
                {**self._stream(identity, purpose), "status": OTPStatus.PENDING.value},
                {"$set": {"status": OTPStatus.EXPIRED.value}},
            )
        return result.modified_count

    async def find_latest_pending(
        self, identity: str, purpose: OTPPurpose
    ) -> OTPRecord | None:
        with _storage_errors("find_latest_pending"):
            doc = await self.collection.find_one(
                {**self._stream(identity, purpose), "status": OTPStatus.PENDING.value},
                sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
            )
        return self._deserialize(doc)

    async def count_created_since(
        self, identity: str, purpose: OTPPurpose, since: datetime
    ) -> int:
        with _storage_errors("count_created_since"):
            return await self.collection.count_documents(
                {**self._stream(identity, purpose), "created_at": {"$gte": since}}
            )

    async def find_oldest_created_since(
        self, identity: str, purpose: OTPPurpose, since: datetime
    ) -> OTPRecord | None:
        with _storage_errors("find_oldest_created_since"):
            doc = await self.collection.find_one(
                {**self._stream(identity, purpose), "created_at": {"$gte": since}},
                sort=[("created_at", ASCENDING), ("_id", ASCENDING)],
            )
        return self._deserialize(doc)

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
        update: dict[str, Any] = {"status": status.value}
        if verified_at is not None:
            update["verified_at"] = verified_at

        with _storage_errors("transition"):
            result = await self.collection.update_one(
                {"_id": _to_object_id(record_id), "status": OTPStatus.PENDING.value},
                {"$set": update},
            )
        return result.modified_count == 1

    async def register_failed_attempt(self, record: OTPRecord) -> OTPRecord | None:
        """
        Increment attempts with a conditional update.

        Returns:
            Updated record, or None if it was no longer pending or already exhausted
        """
        with _storage_errors("register_failed_attempt"):
            doc = await self.collection.find_one_and_update(
                {
                    "_id": _to_object_id(record.id),
                    "status": OTPStatus.PENDING.value,
                    "attempts": {"$lt": record.max_attempts},
                },
                {"$inc": {"attempts": 1}},
                return_document=ReturnDocument.AFTER,
            )
        return self._deserialize(doc)

    async def delete_stale(self, retention_cutoff: datetime) -> int:
        """
        Remove terminal records older than the cutoff and records expired before it.

        Returns:
            Number of records removed
        """
        with _storage_errors("delete_stale"):
            result = await self.collection.delete_many(
                {
                    "$or": [
                        {
                            "status": {"$in": [s.value for s in TERMINAL_STATUSES]},
                            "created_at": {"$lt": retention_cutoff},
                        },
                        {"expires_at": {"$lt": retention_cutoff}},
                    ]
                }
            )
        return result.deleted_count

    async def count_by_purpose_and_status(self, since: datetime) -> list[OTPStatsRow]:
        pipeline = [
            {"$match": {"created_at": {"$gte": since}}},
            {
                "$group": {
                    "_id": {"purpose": "$purpose", "status": "$status"},
                    "count": {"$sum": 1},
                }
            },
        ]
        with _storage_errors("count_by_purpose_and_status"):
            rows = await self.collection.aggregate(pipeline).to_list(length=None)
        return [
            OTPStatsRow(
                purpose=row["_id"]["purpose"],
                status=row["_id"]["status"],
                count=row["count"],
            )
            for row in rows
        ]


class MongoUserStore(Generic[UserType]):
    """
    MongoDB implementation of the UserStore protocol.

    Example:
        ```python
        users = MongoUserStore(
            database=client.mentormatch,
            collection_name="users",
            user_model_class=User,
        )
        ```
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        collection_name: str,
        user_model_class: type[UserType],
    ) -> None:
        """
        Initialize the MongoDB user store.

        Args:
            database: Motor AsyncIOMotorDatabase instance
            collection_name: Name of the users collection
            user_model_class: Pydantic model class for user documents
        """
        self.database = database
        self.collection = database[collection_name]
        self.user_model_class = user_model_class

    def _deserialize_user(self, doc: dict[str, Any] | None) -> UserType | None:
        """
        Convert a MongoDB document to a Pydantic user model.

        Args:
            doc: MongoDB document dictionary

        Returns:
            User model instance or None if doc is None
        """
        if doc is None:
            return None

        if "_id" in doc and isinstance(doc["_id"], ObjectId):
            doc["_id"] = str(doc["_id"])

        # Naive datetimes come back from mongomock and tz-unaware clients
        for field in ("last_login_at", "created_at"):
            value = doc.get(field)
            if isinstance(value, datetime) and value.tzinfo is None:
                doc[field] = value.replace(tzinfo=UTC)

        return self.user_model_class.model_validate(doc)  # type: ignore[attr-defined]

    @staticmethod
    def _user_filter(user: Any) -> dict[str, Any]:  # noqa: ANN401
        return {"_id": _to_object_id(user.id)}

    async def get_by_email(self, email: str) -> UserType | None:
        """
        Retrieve user by email address.

        Args:
            email: Email address to search for

        Returns:
            User object if found, None otherwise
        """
        with _storage_errors("get_user_by_email"):
            doc = await self.collection.find_one({"email": email.strip().lower()})
        return self._deserialize_user(doc)

    async def get_by_id(self, user_id: int | str) -> UserType | None:
        """
        Retrieve user by ID.

        Args:
            user_id: User ID to search for (string or ObjectId)

        Returns:
            User object if found, None otherwise
        """
        with _storage_errors("get_user_by_id"):
            doc = await self.collection.find_one({"_id": _to_object_id(user_id)})
        return self._deserialize_user(doc)

    async def create_user(self, email: str, **kwargs: object) -> UserType:
        """
        Create a new user with the given email and additional fields.

        Args:
            email: User's email address
            **kwargs: Additional user fields

        Returns:
            Created user object
        """
        user_data: dict[str, Any] = {
            "email": email.strip().lower(),
            "role": "mentee",
            "is_email_verified": False,
            "is_active": True,
            "last_login_at": None,
            "created_at": datetime.now(UTC),
            **kwargs,
        }

        with _storage_errors("create_user"):
            result = await self.collection.insert_one(user_data)
        user_data["_id"] = str(result.inserted_id)

        return self.user_model_class.model_validate(user_data)  # type: ignore[attr-defined]

    async def mark_email_verified(self, user: UserType) -> None:
        """
        Mark the user's email as verified.

        Args:
            user: User object to update
        """
        with _storage_errors("mark_email_verified"):
            await self.collection.update_one(
                self._user_filter(user), {"$set": {"is_email_verified": True}}
            )
        user.is_email_verified = True  # type: ignore[attr-defined]

    async def update_password(self, user: UserType, password_hash: str) -> None:
        """
        Replace the user's password hash.

        Args:
            user: User object to update
            password_hash: New bcrypt hash
        """
        with _storage_errors("update_password"):
            await self.collection.update_one(
                self._user_filter(user), {"$set": {"password_hash": password_hash}}
            )
        user.password_hash = password_hash  # type: ignore[attr-defined]

    async def record_login(self, user: UserType) -> None:
        """
        Stamp the user's last login time.

        Args:
            user: User object to update
        """
        now = datetime.now(UTC)
        with _storage_errors("record_login"):
            await self.collection.update_one(
                self._user_filter(user), {"$set": {"last_login_at": now}}
            )
        user.last_login_at = now  # type: ignore[attr-defined]
