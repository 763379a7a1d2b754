"""FastAPI dependencies for session authentication and request provenance."""

from collections.abc import Callable
from typing import Any

from fastapi import Depends, HTTPException, Request, status  # type: ignore[import-untyped]
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer  # type: ignore[import-untyped]

from mentormatch_auth.config import OTPAuthConfig
from mentormatch_auth.db.protocols import UserStore
from mentormatch_auth.schemas import RequestMetadata
from mentormatch_auth.tokens import SessionClaims, SessionTokenIssuer

# HTTP Bearer scheme for token extraction
http_bearer_scheme = HTTPBearer()


def get_request_metadata(request: Request) -> RequestMetadata:
    """
    Capture the client IP and user agent of the request.

    The IP is taken from the first X-Forwarded-For entry, then X-Real-IP,
    then the socket peer. Values that are not valid IP addresses are
    dropped; the user agent is truncated to 500 characters.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.headers.get("x-real-ip") or (
            request.client.host if request.client else None
        )
    return RequestMetadata(ip_address=ip, user_agent=request.headers.get("user-agent"))


def get_token_claims_dependency(
    config: OTPAuthConfig,
) -> Callable[..., Any]:
    """
    Create a dependency returning the validated claims of the bearer token.

    Does not touch the user store.

    Example:
        ```python
        claims = Depends(get_token_claims_dependency(config))

        @app.get("/mentors")
        async def list_mentors(claims: SessionClaims = claims):
            return await mentors_for(claims.role)
        ```
    """
    issuer = SessionTokenIssuer(config)

    async def get_token_claims(
        credentials: HTTPAuthorizationCredentials = Depends(http_bearer_scheme),
    ) -> SessionClaims:
        return issuer.decode(credentials.credentials)

    return get_token_claims


def get_current_user_dependency(
    get_user_store: Callable[..., UserStore],
    config: OTPAuthConfig,
) -> Callable[..., Any]:
    """
    Create a dependency for getting the current authenticated user.

    Args:
        get_user_store: Callable that returns a UserStore instance
        config: OTP authentication configuration

    Returns:
        FastAPI dependency function

    Example:
        ```python
        current_user = Depends(get_current_user_dependency(get_user_store, config))

        @app.get("/protected")
        async def protected_route(user = current_user):
            return {"user_id": user.id}
        ```
    """
    get_token_claims = get_token_claims_dependency(config)

    async def get_current_user(
        claims: SessionClaims = Depends(get_token_claims),
        users: UserStore = Depends(get_user_store),
    ) -> Any:  # noqa: ANN401
        """
        Dependency that validates the token and loads its user.

        Raises:
            HTTPException: 401 if the token is invalid or expired
            HTTPException: 404 if the user no longer exists
            HTTPException: 403 if the account is deactivated
        """
        user = await users.get_by_id(claims.sub)
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account has been deactivated",
            )
        return user

    return get_current_user


def get_verified_user_dependency(
    get_user_store: Callable[..., UserStore],
    config: OTPAuthConfig,
) -> Callable[..., Any]:
    """
    Create a dependency for getting a user whose email is verified.

    Example:
        ```python
        verified_user = Depends(get_verified_user_dependency(get_user_store, config))

        @app.post("/bookings")
        async def book(user = verified_user):
            ...
        ```
    """
    get_current_user = get_current_user_dependency(get_user_store, config)

    async def get_verified_user(user: Any = Depends(get_current_user)) -> Any:  # noqa: ANN401
        if not user.is_email_verified:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Please verify your email to access this resource",
            )
        return user

    return get_verified_user
