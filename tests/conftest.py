"""Test configuration and fixtures."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import Integer, String
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from mentormatch_auth.config import OTPAuthConfig
from mentormatch_auth.db.sqlalchemy.adapter import SQLAlchemyOTPStore, SQLAlchemyUserStore
from mentormatch_auth.db.sqlalchemy.models import BaseOTPRecordTable, BaseUserTable
from mentormatch_auth.notifications import DeliveryResult
from mentormatch_auth.otp.service import OTPService
from mentormatch_auth.security import hash_password
from mentormatch_auth.types import OTPPurpose

TEST_SECRET = "test-secret-key-minimum-32-chars-long"
TEST_PASSWORD = "Secret123"

# ============================================================================
# Database Models for Testing
# ============================================================================


class Base(DeclarativeBase):
    """Base class for test database models."""


class User(BaseUserTable[int], Base):
    """Test user model."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)


class OTPRow(BaseOTPRecordTable, Base):
    """Test OTP table."""

    __tablename__ = "otp_records"


# ============================================================================
# Test Configuration
# ============================================================================


class MockAuthConfig(OTPAuthConfig):
    """Mock authentication configuration that records sent codes."""

    secret_key = TEST_SECRET
    access_token_lifetime = timedelta(hours=1)
    otp_expiry = timedelta(minutes=10)
    otp_length = 6
    max_otp_attempts = 5
    otp_rate_limit_window = timedelta(hours=1)
    otp_rate_limit_max = 3
    bcrypt_rounds = 4  # Fast hashing in tests

    def __init__(self, developer_mode: bool = False, fail_delivery: bool = False) -> None:
        """Initialize test config."""
        self.developer_mode = developer_mode
        self.fail_delivery = fail_delivery
        self.sent_otps: list[tuple[str, str, OTPPurpose, str | None]] = []
        super().__init__()

    async def send_otp(
        self,
        email: str,
        code: str,
        purpose: OTPPurpose,
        display_name: str | None,
    ) -> DeliveryResult | None:
        """Store sent OTPs for testing instead of actually sending."""
        if self.fail_delivery:
            raise ConnectionError("SMTP server unavailable")
        self.sent_otps.append((email, code, purpose, display_name))
        return None

    def get_additional_claims(self, user: Any) -> dict[str, Any]:  # noqa: ANN401
        return {"tz": getattr(user, "timezone", None)}


class FakeClock:
    """Controllable clock; starts on a whole second so MongoDB millisecond truncation is lossless."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ============================================================================
# Basic Fixtures
# ============================================================================


@pytest.fixture
def test_secret() -> str:
    """Provide a test secret key."""
    return TEST_SECRET


@pytest.fixture
def test_config() -> MockAuthConfig:
    """Provide a test configuration."""
    return MockAuthConfig()


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def async_engine():  # type: ignore[no-untyped-def]
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:  # type: ignore[no-untyped-def]
    """Create an async database session."""
    async_session_maker = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def mongo_db():  # type: ignore[no-untyped-def]
    """Create a mock MongoDB database."""
    mongomock_motor = pytest.importorskip("mongomock_motor")
    client = mongomock_motor.AsyncMongoMockClient()
    return client["test_db"]


@pytest.fixture
def sql_otp_store(async_session: AsyncSession) -> SQLAlchemyOTPStore:
    """Create an SQLAlchemy OTP store."""
    return SQLAlchemyOTPStore(async_session, OTPRow)


@pytest.fixture
def sql_user_store(async_session: AsyncSession) -> SQLAlchemyUserStore[User]:
    """Create an SQLAlchemy user store."""
    return SQLAlchemyUserStore(async_session, User)


@pytest.fixture
def mongo_otp_store(mongo_db):  # type: ignore[no-untyped-def]
    """Create a MongoDB OTP store."""
    from mentormatch_auth.db.mongodb.adapter import MongoOTPStore

    return MongoOTPStore(mongo_db)


@pytest.fixture(params=["sql_otp_store", "mongo_otp_store"], ids=["sqlalchemy", "mongodb"])
def otp_store(request: pytest.FixtureRequest):  # type: ignore[no-untyped-def]
    """Run the test against each OTP store backend."""
    return request.getfixturevalue(request.param)


@pytest.fixture
def otp_service(otp_store, test_config: MockAuthConfig, clock: FakeClock) -> OTPService:  # type: ignore[no-untyped-def]
    """Create an OTP service on the parametrized backend."""
    return OTPService(otp_store, test_config, clock)


@pytest.fixture
async def test_user(sql_user_store: SQLAlchemyUserStore[User]) -> User:
    """Create an unverified test user."""
    return await sql_user_store.create_user(
        email="test@example.com",
        name="Test User",
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
    )


@pytest.fixture
async def verified_user(sql_user_store: SQLAlchemyUserStore[User]) -> User:
    """Create a verified test user."""
    user = await sql_user_store.create_user(
        email="verified@example.com",
        name="Verified User",
        password_hash=hash_password(TEST_PASSWORD, rounds=4),
        timezone="Europe/Oslo",
    )
    await sql_user_store.mark_email_verified(user)
    return user
