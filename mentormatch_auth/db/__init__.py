"""Storage models, protocols and adapters for mentormatch-auth."""

from mentormatch_auth.db.models import OTPRecord, OTPStatsRow
from mentormatch_auth.db.protocols import OTPStore, UserStore
from mentormatch_auth.db.sqlalchemy.adapter import SQLAlchemyOTPStore, SQLAlchemyUserStore
from mentormatch_auth.db.sqlalchemy.models import BaseOTPRecordTable, BaseUserTable
from mentormatch_auth.db.sqlalchemy.types import UTCDateTime

__all__ = [
    "BaseOTPRecordTable",
    "BaseUserTable",
    "OTPRecord",
    "OTPStatsRow",
    "OTPStore",
    "SQLAlchemyOTPStore",
    "SQLAlchemyUserStore",
    "UTCDateTime",
    "UserStore",
]

# Conditionally export MongoDB classes if motor is installed
try:
    from mentormatch_auth.db.mongodb.adapter import MongoOTPStore, MongoUserStore
    from mentormatch_auth.db.mongodb.models import BaseUserDocument

    __all__ += ["BaseUserDocument", "MongoOTPStore", "MongoUserStore"]
except ImportError:
    # MongoDB support not installed
    pass
