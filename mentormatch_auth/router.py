"""API router for MentorMatch authentication endpoints."""

from collections.abc import Callable
from typing import Any

from fastapi import (  # type: ignore[import-untyped]
    APIRouter,
    BackgroundTasks,
    Depends,
    status,
)

from mentormatch_auth.config import OTPAuthConfig
from mentormatch_auth.db.protocols import UserStore
from mentormatch_auth.dependencies import (
    get_current_user_dependency,
    get_request_metadata,
    get_token_claims_dependency,
)
from mentormatch_auth.notifications import deliver_otp
from mentormatch_auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegistrationResponse,
    RequestMetadata,
    ResendOTPRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserProfile,
    VerifyEmailRequest,
)
from mentormatch_auth.service import AuthService, FlowOutcome, SessionOutcome
from mentormatch_auth.tokens import SessionClaims


def get_auth_router(
    get_auth_service: Callable[..., AuthService],
    config: OTPAuthConfig,
) -> APIRouter:
    """
    Create an APIRouter with the authentication endpoints.

    Flow errors are AppError subclasses; register the handlers from
    ``mentormatch_auth.errors.register_error_handlers`` on the app.

    Args:
        get_auth_service: Callable (FastAPI dependency) returning an AuthService
        config: OTP authentication configuration; also used as the email sender

    Returns:
        Configured APIRouter instance

    Example:
        ```python
        from fastapi import FastAPI

        app = FastAPI()
        register_error_handlers(app)
        config = MyAuthConfig(AuthSettings())

        auth_router = get_auth_router(get_auth_service, config)
        app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
        ```
    """
    router = APIRouter()

    def get_user_store(auth: AuthService = Depends(get_auth_service)) -> UserStore:
        return auth.users

    get_current_user = get_current_user_dependency(get_user_store, config)
    get_token_claims = get_token_claims_dependency(config)

    def schedule_delivery(background_tasks: BackgroundTasks, outcome: FlowOutcome) -> None:
        if outcome.notification is not None:
            background_tasks.add_task(deliver_otp, config, outcome.notification)

    def session_response(outcome: SessionOutcome) -> AuthResponse:
        return AuthResponse(
            message=outcome.message,
            user=UserProfile.from_user(outcome.user),
            tokens=TokenResponse(
                access_token=outcome.access_token,
                expires_in=int(config.access_token_lifetime.total_seconds()),
            ),
        )

    @router.post(
        "/register",
        response_model=RegistrationResponse,
        status_code=status.HTTP_201_CREATED,
        summary="Register account",
        description="Create an unverified account and email a verification code",
    )
    async def register(
        request: RegisterRequest,
        background_tasks: BackgroundTasks,
        metadata: RequestMetadata = Depends(get_request_metadata),
        auth: AuthService = Depends(get_auth_service),
    ) -> RegistrationResponse:
        """
        Register a new account.

        Raises:
            ConflictError: 409 if a verified account already uses the email
            RateLimitError: 429 if too many codes were requested
        """
        outcome = await auth.register(
            request.name, request.email, request.password, metadata.model_dump()
        )
        schedule_delivery(background_tasks, outcome)
        return RegistrationResponse(
            message=outcome.message,
            user_id=str(outcome.user.id),
            email=outcome.user.email,
        )

    @router.post(
        "/verify-email",
        response_model=AuthResponse,
        status_code=status.HTTP_200_OK,
        summary="Verify email",
        description="Verify the email verification code and receive an access token",
    )
    async def verify_email(
        request: VerifyEmailRequest,
        auth: AuthService = Depends(get_auth_service),
    ) -> AuthResponse:
        """
        Verify the emailed code.

        Raises:
            VerificationFailedError: 400 if the code is rejected
        """
        return session_response(await auth.verify_email(request.email, request.otp))

    @router.post(
        "/resend-otp",
        response_model=MessageResponse,
        status_code=status.HTTP_200_OK,
        summary="Resend OTP code",
    )
    async def resend_otp(
        request: ResendOTPRequest,
        background_tasks: BackgroundTasks,
        metadata: RequestMetadata = Depends(get_request_metadata),
        auth: AuthService = Depends(get_auth_service),
    ) -> MessageResponse:
        outcome = await auth.resend_otp(
            request.email, request.purpose, metadata.model_dump()
        )
        schedule_delivery(background_tasks, outcome)
        return MessageResponse(message=outcome.message)

    @router.post(
        "/login",
        response_model=AuthResponse,
        status_code=status.HTTP_200_OK,
        summary="Login",
        description="Authenticate with email and password",
    )
    async def login(
        request: LoginRequest,
        auth: AuthService = Depends(get_auth_service),
    ) -> AuthResponse:
        return session_response(await auth.login(request.email, request.password))

    @router.post(
        "/forgot-password",
        response_model=MessageResponse,
        status_code=status.HTTP_200_OK,
        summary="Request password reset code",
    )
    async def forgot_password(
        request: ForgotPasswordRequest,
        background_tasks: BackgroundTasks,
        metadata: RequestMetadata = Depends(get_request_metadata),
        auth: AuthService = Depends(get_auth_service),
    ) -> MessageResponse:
        """Always answers with the same message whether or not the account exists."""
        outcome = await auth.forgot_password(request.email, metadata.model_dump())
        schedule_delivery(background_tasks, outcome)
        return MessageResponse(message=outcome.message)

    @router.post(
        "/reset-password",
        response_model=MessageResponse,
        status_code=status.HTTP_200_OK,
        summary="Reset password",
    )
    async def reset_password(
        request: ResetPasswordRequest,
        auth: AuthService = Depends(get_auth_service),
    ) -> MessageResponse:
        outcome = await auth.reset_password(
            request.email, request.otp, request.new_password
        )
        return MessageResponse(message=outcome.message)

    @router.post(
        "/change-password",
        response_model=MessageResponse,
        status_code=status.HTTP_200_OK,
        summary="Change password",
    )
    async def change_password(
        request: ChangePasswordRequest,
        user: Any = Depends(get_current_user),
        auth: AuthService = Depends(get_auth_service),
    ) -> MessageResponse:
        outcome = await auth.change_password(
            user, request.current_password, request.new_password
        )
        return MessageResponse(message=outcome.message)

    @router.get(
        "/me",
        response_model=UserProfile,
        status_code=status.HTTP_200_OK,
        summary="Current user profile",
    )
    async def me(user: Any = Depends(get_current_user)) -> UserProfile:
        return UserProfile.from_user(user)

    @router.post(
        "/logout",
        response_model=MessageResponse,
        status_code=status.HTTP_200_OK,
        summary="Logout user",
        description="Session tokens are stateless; the client discards its token",
    )
    async def logout(_claims: SessionClaims = Depends(get_token_claims)) -> MessageResponse:
        return MessageResponse(message="Logged out successfully")

    return router
