"""Tests for the registration, login and password flows."""

import pytest

from mentormatch_auth.db.sqlalchemy.adapter import SQLAlchemyOTPStore, SQLAlchemyUserStore
from mentormatch_auth.errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    VerificationFailedError,
)
from mentormatch_auth.otp.service import OTPService
from mentormatch_auth.security import verify_password
from mentormatch_auth.service import PASSWORD_RESET_MESSAGE, AuthService
from mentormatch_auth.types import OTPPurpose
from tests.conftest import TEST_PASSWORD, FakeClock, MockAuthConfig, User

NEW_PASSWORD = "Changed456"


@pytest.fixture
def auth(
    sql_user_store: SQLAlchemyUserStore[User],
    sql_otp_store: SQLAlchemyOTPStore,
    test_config: MockAuthConfig,
    clock: FakeClock,
) -> AuthService:
    """Create the auth flows over SQLite."""
    return AuthService(sql_user_store, OTPService(sql_otp_store, test_config, clock), test_config)


# ============================================================================
# Registration Tests
# ============================================================================


class TestRegister:
    """Test suite for registration."""

    async def test_creates_unverified_user(self, auth: AuthService) -> None:
        """Should create the account and return a verification notification."""
        outcome = await auth.register("  Ada Lovelace ", "Ada@Example.com", TEST_PASSWORD)

        assert outcome.user.email == "ada@example.com"
        assert outcome.user.name == "Ada Lovelace"
        assert outcome.user.is_email_verified is False
        assert verify_password(TEST_PASSWORD, outcome.user.password_hash)
        assert outcome.message.startswith("Account created successfully")

        assert outcome.notification is not None
        assert outcome.notification.email == "ada@example.com"
        assert outcome.notification.purpose is OTPPurpose.EMAIL_VERIFICATION
        assert outcome.notification.display_name == "Ada Lovelace"

    async def test_reregistering_unverified_reissues(
        self, auth: AuthService, test_user: User
    ) -> None:
        """Should re-issue a code for the existing unverified account."""
        outcome = await auth.register("Someone Else", "test@example.com", "Other123")

        assert outcome.user.id == test_user.id
        assert outcome.message == "Verification code sent to your email"
        assert outcome.notification is not None
        assert verify_password(TEST_PASSWORD, outcome.user.password_hash)

    async def test_verified_email_conflicts(self, auth: AuthService, verified_user: User) -> None:
        with pytest.raises(ConflictError) as exc_info:
            await auth.register("Verified User", "verified@example.com", TEST_PASSWORD)

        assert exc_info.value.field == "email"

    async def test_rate_limited(self, auth: AuthService) -> None:
        """The fourth code within the window should be refused."""
        for _ in range(3):
            await auth.register("Ada Lovelace", "ada@example.com", TEST_PASSWORD)

        with pytest.raises(RateLimitError) as exc_info:
            await auth.register("Ada Lovelace", "ada@example.com", TEST_PASSWORD)

        assert exc_info.value.details == {"retry_after_seconds": 3600}
        assert "60 minutes" in exc_info.value.message


# ============================================================================
# Email Verification Tests
# ============================================================================


class TestVerifyEmail:
    """Test suite for email verification."""

    async def test_verifies_and_starts_session(self, auth: AuthService) -> None:
        registered = await auth.register("Ada Lovelace", "ada@example.com", TEST_PASSWORD)
        assert registered.notification is not None

        outcome = await auth.verify_email("ada@example.com", registered.notification.code)

        assert outcome.message == "Email verified successfully"
        assert outcome.user.is_email_verified is True
        claims = auth.tokens.decode(outcome.access_token)
        assert claims.email_verified is True
        assert claims.sub == str(outcome.user.id)

    async def test_wrong_code(self, auth: AuthService) -> None:
        """Should report the remaining attempts."""
        registered = await auth.register("Ada Lovelace", "ada@example.com", TEST_PASSWORD)
        assert registered.notification is not None
        wrong = "000000" if registered.notification.code != "000000" else "111111"

        with pytest.raises(VerificationFailedError) as exc_info:
            await auth.verify_email("ada@example.com", wrong)

        error = exc_info.value
        assert error.field == "otp"
        assert error.message == "Invalid OTP. 4 attempts remaining."
        assert error.details == {"reason": "invalid_code", "attempts_remaining": 4}

    async def test_no_code(self, auth: AuthService, test_user: User) -> None:
        with pytest.raises(VerificationFailedError) as exc_info:
            await auth.verify_email("test@example.com", "123456")

        assert exc_info.value.details == {"reason": "not_found"}

    async def test_user_deleted_after_issue(self, auth: AuthService) -> None:
        """A valid code for an account that no longer exists should 404."""
        issued = await auth.otp.issue("ghost@example.com", OTPPurpose.EMAIL_VERIFICATION)

        with pytest.raises(NotFoundError):
            await auth.verify_email("ghost@example.com", issued.code)


# ============================================================================
# Resend Tests
# ============================================================================


class TestResendOTP:
    """Test suite for resending codes."""

    async def test_resend_replaces_code(self, auth: AuthService, test_user: User) -> None:
        """Only the newest code should verify."""
        first = await auth.resend_otp("test@example.com")
        second = await auth.resend_otp("test@example.com")
        assert first.notification is not None
        assert second.notification is not None
        assert second.message == "New verification code sent to your email"

        if first.notification.code != second.notification.code:
            with pytest.raises(VerificationFailedError):
                await auth.verify_email("test@example.com", first.notification.code)

        outcome = await auth.verify_email("test@example.com", second.notification.code)
        assert outcome.user.is_email_verified is True

    async def test_unknown_email(self, auth: AuthService) -> None:
        with pytest.raises(NotFoundError):
            await auth.resend_otp("nobody@example.com")

    async def test_already_verified(self, auth: AuthService, verified_user: User) -> None:
        with pytest.raises(ConflictError):
            await auth.resend_otp("verified@example.com")

    async def test_password_reset_never_reveals_account(self, auth: AuthService) -> None:
        outcome = await auth.resend_otp("nobody@example.com", OTPPurpose.PASSWORD_RESET)

        assert outcome.message == PASSWORD_RESET_MESSAGE
        assert outcome.notification is None


# ============================================================================
# Login Tests
# ============================================================================


class TestLogin:
    """Test suite for password login."""

    async def test_success(self, auth: AuthService, verified_user: User) -> None:
        outcome = await auth.login("Verified@Example.com", TEST_PASSWORD)

        assert outcome.message == "Authentication successful"
        assert outcome.user.last_login_at is not None
        assert auth.tokens.decode(outcome.access_token).email == "verified@example.com"

    @pytest.mark.parametrize(
        ("email", "password"),
        [("verified@example.com", "Wrong123"), ("nobody@example.com", TEST_PASSWORD)],
    )
    async def test_invalid_credentials(
        self, auth: AuthService, verified_user: User, email: str, password: str
    ) -> None:
        """Wrong password and unknown email should be indistinguishable."""
        with pytest.raises(AuthenticationError) as exc_info:
            await auth.login(email, password)

        assert exc_info.value.message == "Invalid email or password"

    async def test_unverified(self, auth: AuthService, test_user: User) -> None:
        with pytest.raises(ForbiddenError) as exc_info:
            await auth.login("test@example.com", TEST_PASSWORD)

        assert exc_info.value.details == {
            "requires_verification": True,
            "email": "test@example.com",
        }

    async def test_unverified_wrong_password(self, auth: AuthService, test_user: User) -> None:
        """Account state should not leak without the right password."""
        with pytest.raises(AuthenticationError):
            await auth.login("test@example.com", "Wrong123")

    async def test_deactivated(
        self,
        auth: AuthService,
        verified_user: User,
        sql_user_store: SQLAlchemyUserStore[User],
    ) -> None:
        verified_user.is_active = False
        await sql_user_store.session.commit()

        with pytest.raises(ForbiddenError) as exc_info:
            await auth.login("verified@example.com", TEST_PASSWORD)

        assert "deactivated" in exc_info.value.message


# ============================================================================
# Password Reset Tests
# ============================================================================


class TestPasswordReset:
    """Test suite for forgot and reset password."""

    async def test_full_reset(self, auth: AuthService, verified_user: User) -> None:
        requested = await auth.forgot_password("verified@example.com")
        assert requested.message == PASSWORD_RESET_MESSAGE
        assert requested.notification is not None
        assert requested.notification.purpose is OTPPurpose.PASSWORD_RESET

        outcome = await auth.reset_password(
            "verified@example.com", requested.notification.code, NEW_PASSWORD
        )

        assert outcome.message.startswith("Password reset successfully")
        await auth.login("verified@example.com", NEW_PASSWORD)
        with pytest.raises(AuthenticationError):
            await auth.login("verified@example.com", TEST_PASSWORD)

    async def test_unverified_account_gets_no_code(
        self, auth: AuthService, test_user: User
    ) -> None:
        outcome = await auth.forgot_password("test@example.com")

        assert outcome.message == PASSWORD_RESET_MESSAGE
        assert outcome.notification is None

    async def test_reset_code_is_single_use(self, auth: AuthService, verified_user: User) -> None:
        requested = await auth.forgot_password("verified@example.com")
        assert requested.notification is not None
        code = requested.notification.code
        await auth.reset_password("verified@example.com", code, NEW_PASSWORD)

        with pytest.raises(VerificationFailedError):
            await auth.reset_password("verified@example.com", code, "Another789")

    async def test_verification_code_cannot_reset(
        self, auth: AuthService, test_user: User
    ) -> None:
        """Codes are bound to their purpose."""
        resent = await auth.resend_otp("test@example.com")
        assert resent.notification is not None

        with pytest.raises(VerificationFailedError):
            await auth.reset_password("test@example.com", resent.notification.code, NEW_PASSWORD)

    async def test_rate_limited_reset_stays_generic(
        self, auth: AuthService, verified_user: User
    ) -> None:
        """A full window should silently skip issuance instead of raising."""
        outcomes = [await auth.forgot_password("verified@example.com") for _ in range(4)]
        resent = await auth.resend_otp("verified@example.com", OTPPurpose.PASSWORD_RESET)

        assert {o.message for o in [*outcomes, resent]} == {PASSWORD_RESET_MESSAGE}
        assert all(o.notification is not None for o in outcomes[:3])
        assert outcomes[3].notification is None
        assert resent.notification is None


# ============================================================================
# Change Password Tests
# ============================================================================


class TestChangePassword:
    """Test suite for authenticated password changes."""

    async def test_success(self, auth: AuthService, verified_user: User) -> None:
        outcome = await auth.change_password(verified_user, TEST_PASSWORD, NEW_PASSWORD)

        assert outcome.message == "Password changed successfully"
        assert verify_password(NEW_PASSWORD, verified_user.password_hash)

    async def test_wrong_current(self, auth: AuthService, verified_user: User) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await auth.change_password(verified_user, "Wrong123", NEW_PASSWORD)

        assert exc_info.value.field == "current_password"

    async def test_unchanged(self, auth: AuthService, verified_user: User) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await auth.change_password(verified_user, TEST_PASSWORD, TEST_PASSWORD)

        assert exc_info.value.field == "new_password"
