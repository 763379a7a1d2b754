"""Configuration class for MentorMatch authentication."""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from fastapi import HTTPException, status  # type: ignore[import-untyped]

from mentormatch_auth.types import OTPPurpose

if TYPE_CHECKING:
    from mentormatch_auth.notifications import DeliveryResult
    from mentormatch_auth.settings import AuthSettings


class OTPAuthConfig(ABC):
    """
    Abstract configuration class for OTP authentication.

    Users must extend this class and implement the send_otp method.
    Configuration can be set via class attributes, or loaded from
    environment-backed AuthSettings passed to the constructor.

    Example:
        ```python
        class MyAuthConfig(OTPAuthConfig):
            secret_key = "your-secret-key-here"
            access_token_lifetime = timedelta(minutes=60)
            otp_expiry = timedelta(minutes=10)

            async def send_otp(
                self, email: str, code: str, purpose: OTPPurpose, display_name: str | None
            ) -> DeliveryResult:
                await mailer.send(email, render_otp_email(code, purpose, display_name))
                return DeliveryResult(success=True)

        config = MyAuthConfig(AuthSettings())
        ```
    """

    # Required configuration - these must be set
    secret_key: str

    # Session tokens
    algorithm: str = "HS256"
    access_token_lifetime: timedelta = timedelta(minutes=60)
    token_issuer: str = "mentormatch-api"
    token_audience: str = "mentormatch-app"

    # OTP configuration
    otp_length: int = 6
    otp_expiry: timedelta = timedelta(minutes=10)
    max_otp_attempts: int = 5

    # Rate limiting (sliding window over issued codes)
    otp_rate_limit_window: timedelta = timedelta(hours=1)
    otp_rate_limit_max: int = 3

    # Housekeeping
    otp_retention: timedelta = timedelta(hours=24)
    """How long terminal or expired OTP records are kept before the sweep deletes them."""

    # Passwords
    bcrypt_rounds: int = 12

    # Security settings
    developer_mode: bool = False

    def __init__(self, settings: "AuthSettings | None" = None) -> None:
        """Initialize, optionally load settings, and validate configuration."""
        if settings is not None:
            self.load_settings(settings)
        self.validate_secret()

    def load_settings(self, settings: "AuthSettings") -> None:
        """
        Copy environment-sourced values onto this instance.

        Args:
            settings: Parsed AuthSettings
        """
        if settings.jwt_secret:
            self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.access_token_lifetime = settings.access_token_lifetime
        self.token_issuer = settings.jwt_issuer
        self.token_audience = settings.jwt_audience
        self.otp_length = settings.otp_length
        self.otp_expiry = settings.otp_expiry
        self.max_otp_attempts = settings.max_otp_attempts
        self.otp_rate_limit_window = settings.rate_limit_window
        self.otp_rate_limit_max = settings.otp_rate_limit_max
        self.otp_retention = settings.otp_retention
        self.bcrypt_rounds = settings.bcrypt_salt_rounds
        self.developer_mode = settings.developer_mode

    def validate_secret(self) -> None:
        """
        Validate that the secret key is secure.

        In production mode, requires secret to be at least 32 characters.
        In developer mode, any secret is allowed.

        Raises:
            HTTPException: 500 if secret is not secure enough
        """
        if self.developer_mode:
            return

        if not getattr(self, "secret_key", None):
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="secret_key must be set. Generate with: openssl rand -hex 32",
            )

        if len(self.secret_key) < 32:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="secret_key must be at least 32 characters long. "
                "Generate with: openssl rand -hex 32",
            )

    @abstractmethod
    async def send_otp(
        self,
        email: str,
        code: str,
        purpose: OTPPurpose,
        display_name: str | None,
    ) -> "DeliveryResult | None":
        """
        Deliver an OTP code to the user.

        Called after the code has been stored, outside the request that
        issued it. A failure here never invalidates the stored code; the
        user can still verify it or request a resend.

        Args:
            email: Recipient address
            code: Plaintext OTP code
            purpose: What the code is for (selects the email template)
            display_name: Recipient's name for the greeting, if known

        Returns:
            DeliveryResult, or None to signal success
        """
        raise NotImplementedError("send_otp method must be implemented")

    def get_additional_claims(self, _user: Any) -> dict[str, Any]:  # noqa: ANN401
        """
        Get additional claims to include in session tokens.

        Override this method to add custom claims based on the user.

        Args:
            user: User object

        Returns:
            Dictionary of additional claims
        """
        return {}
