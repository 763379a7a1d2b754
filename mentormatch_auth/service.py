"""
Registration, verification, login and password flows.

Each flow raises an AppError subclass on failure and returns an outcome on
success. Outcomes that require an email carry an OTPNotification; the
caller (normally the router) schedules its delivery after responding.
"""

from typing import Any

from pydantic import BaseModel

from mentormatch_auth.config import OTPAuthConfig
from mentormatch_auth.db.protocols import UserStore
from mentormatch_auth.errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    VerificationFailedError,
)
from mentormatch_auth.logging import get_logger
from mentormatch_auth.notifications import OTPNotification
from mentormatch_auth.otp.models import RateLimitDecision, VerificationResult
from mentormatch_auth.otp.service import OTPService
from mentormatch_auth.security import hash_password, verify_password
from mentormatch_auth.tokens import SessionTokenIssuer
from mentormatch_auth.types import OTPPurpose

log = get_logger(__name__)

PASSWORD_RESET_MESSAGE = (
    "If an account with this email exists, a password reset code will be sent."
)


class FlowOutcome(BaseModel):
    """Result of a flow that does not end in a session."""

    message: str
    notification: OTPNotification | None = None


class RegistrationOutcome(FlowOutcome):
    user: Any


class SessionOutcome(BaseModel):
    message: str
    user: Any
    access_token: str


def _rate_limit_error(decision: RateLimitDecision) -> RateLimitError:
    return RateLimitError(
        decision.reason or "Too many OTP requests. Please try again later.",
        details={"retry_after_seconds": decision.retry_after_seconds},
    )


def _verification_error(result: VerificationResult) -> VerificationFailedError:
    details: dict[str, Any] = {"reason": result.reason.value if result.reason else None}
    if result.attempts_remaining is not None:
        details["attempts_remaining"] = result.attempts_remaining
    return VerificationFailedError(result.message, field="otp", details=details)


class AuthService:
    """
    Application flows built on the OTP core, a user store and session tokens.

    Example:
        ```python
        auth = AuthService(MongoUserStore(db, "users", User), OTPService(store, config), config)
        outcome = await auth.register("Ada Lovelace", "ada@example.com", "Secret123")
        background_tasks.add_task(deliver_otp, config, outcome.notification)
        ```
    """

    def __init__(
        self,
        users: UserStore,
        otp: OTPService,
        config: OTPAuthConfig,
        tokens: SessionTokenIssuer | None = None,
    ) -> None:
        self.users = users
        self.otp = otp
        self.config = config
        self.tokens = tokens or SessionTokenIssuer(config)

    async def _ensure_can_issue(self, email: str, purpose: OTPPurpose) -> None:
        decision = await self.otp.can_issue(email, purpose)
        if not decision.allowed:
            raise _rate_limit_error(decision)

    async def _issue(
        self,
        user: Any,  # noqa: ANN401
        purpose: OTPPurpose,
        metadata: dict[str, str | None] | None,
    ) -> OTPNotification:
        issued = await self.otp.issue(
            user.email, purpose, user_id=user.id, metadata=metadata
        )
        return OTPNotification(
            email=user.email,
            code=issued.code,
            purpose=purpose,
            display_name=user.name,
        )

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        metadata: dict[str, str | None] | None = None,
    ) -> RegistrationOutcome:
        """
        Create an unverified account and issue an email verification code.

        Registering again with the address of an unverified account re-issues
        the code for that account instead of failing.

        Raises:
            ConflictError: If a verified account already uses the email
            RateLimitError: If too many codes were issued recently
        """
        email = email.strip().lower()
        existing = await self.users.get_by_email(email)
        if existing is not None and existing.is_email_verified:
            raise ConflictError("An account with this email already exists", field="email")

        await self._ensure_can_issue(email, OTPPurpose.EMAIL_VERIFICATION)

        if existing is not None:
            notification = await self._issue(
                existing, OTPPurpose.EMAIL_VERIFICATION, metadata
            )
            log.info("registration_code_reissued", user_id=str(existing.id))
            return RegistrationOutcome(
                message="Verification code sent to your email",
                user=existing,
                notification=notification,
            )

        user = await self.users.create_user(
            email,
            name=name.strip(),
            password_hash=hash_password(password, self.config.bcrypt_rounds),
        )
        notification = await self._issue(user, OTPPurpose.EMAIL_VERIFICATION, metadata)
        log.info("user_registered", user_id=str(user.id))
        return RegistrationOutcome(
            message=(
                "Account created successfully. "
                "Please check your email for verification code."
            ),
            user=user,
            notification=notification,
        )

    async def verify_email(self, email: str, otp: str) -> SessionOutcome:
        """
        Accept an email verification code and start a session.

        Raises:
            VerificationFailedError: If the code is rejected
            NotFoundError: If the account no longer exists
        """
        email = email.strip().lower()
        result = await self.otp.verify(email, OTPPurpose.EMAIL_VERIFICATION, otp)
        if not result.success:
            raise _verification_error(result)

        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        await self.users.mark_email_verified(user)
        log.info("email_verified", user_id=str(user.id))
        return SessionOutcome(
            message="Email verified successfully",
            user=user,
            access_token=self.tokens.issue_token(user),
        )

    async def resend_otp(
        self,
        email: str,
        purpose: OTPPurpose = OTPPurpose.EMAIL_VERIFICATION,
        metadata: dict[str, str | None] | None = None,
    ) -> FlowOutcome:
        """
        Issue a fresh code for a purpose.

        Password reset codes go through forgot_password so the response
        never reveals whether the account exists.

        Raises:
            RateLimitError: If too many codes were issued recently
            NotFoundError: If no account uses the email
            ConflictError: If the email is already verified
        """
        if purpose is OTPPurpose.PASSWORD_RESET:
            return await self.forgot_password(email, metadata)

        email = email.strip().lower()
        await self._ensure_can_issue(email, purpose)

        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError("No account found with this email", field="email")
        if purpose is OTPPurpose.EMAIL_VERIFICATION and user.is_email_verified:
            raise ConflictError("Email is already verified", field="email")

        notification = await self._issue(user, purpose, metadata)
        return FlowOutcome(
            message="New verification code sent to your email",
            notification=notification,
        )

    async def login(self, email: str, password: str) -> SessionOutcome:
        """
        Start a session with email and password.

        Raises:
            AuthenticationError: If the email or password is wrong
            ForbiddenError: If the account is deactivated or not yet verified
        """
        email = email.strip().lower()
        user = await self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            log.info("login_failed", reason="invalid_credentials")
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise ForbiddenError("Account has been deactivated. Please contact support.")
        if not user.is_email_verified:
            raise ForbiddenError(
                "Please verify your email before logging in",
                details={"requires_verification": True, "email": user.email},
            )

        await self.users.record_login(user)
        log.info("user_logged_in", user_id=str(user.id))
        return SessionOutcome(
            message="Authentication successful",
            user=user,
            access_token=self.tokens.issue_token(user),
        )

    async def forgot_password(
        self, email: str, metadata: dict[str, str | None] | None = None
    ) -> FlowOutcome:
        """
        Issue a password reset code to a verified, active account.

        The message is the same whether or not the account exists, and a
        rate-limited request gets it too rather than a 429.
        """
        email = email.strip().lower()
        decision = await self.otp.can_issue(email, OTPPurpose.PASSWORD_RESET)
        if not decision.allowed:
            log.info("password_reset_skipped", email=email, reason="rate_limited")
            return FlowOutcome(message=PASSWORD_RESET_MESSAGE)

        user = await self.users.get_by_email(email)
        if user is None or not user.is_email_verified or not user.is_active:
            log.info("password_reset_skipped", email=email)
            return FlowOutcome(message=PASSWORD_RESET_MESSAGE)

        notification = await self._issue(user, OTPPurpose.PASSWORD_RESET, metadata)
        log.info("password_reset_requested", user_id=str(user.id))
        return FlowOutcome(message=PASSWORD_RESET_MESSAGE, notification=notification)

    async def reset_password(self, email: str, otp: str, new_password: str) -> FlowOutcome:
        """
        Set a new password using a password reset code.

        Raises:
            VerificationFailedError: If the code is rejected
            NotFoundError: If no verified, active account uses the email
        """
        email = email.strip().lower()
        result = await self.otp.verify(email, OTPPurpose.PASSWORD_RESET, otp)
        if not result.success:
            raise _verification_error(result)

        user = await self.users.get_by_email(email)
        if user is None or not user.is_email_verified or not user.is_active:
            raise NotFoundError("User not found")

        await self.users.update_password(
            user, hash_password(new_password, self.config.bcrypt_rounds)
        )
        log.info("password_reset_completed", user_id=str(user.id))
        return FlowOutcome(
            message="Password reset successfully. You can now login with your new password."
        )

    async def change_password(
        self,
        user: Any,  # noqa: ANN401
        current_password: str,
        new_password: str,
    ) -> FlowOutcome:
        """
        Change the password of an authenticated user.

        Raises:
            ValidationError: If the current password is wrong or the new one is unchanged
        """
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect", field="current_password")
        if verify_password(new_password, user.password_hash):
            raise ValidationError(
                "New password must be different from current password",
                field="new_password",
            )

        await self.users.update_password(
            user, hash_password(new_password, self.config.bcrypt_rounds)
        )
        log.info("password_changed", user_id=str(user.id))
        return FlowOutcome(message="Password changed successfully")
