"""Stateless JWT session tokens."""

from datetime import datetime
from typing import Any

from fastapi import HTTPException, status  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict

from mentormatch_auth.config import OTPAuthConfig
from mentormatch_auth.logging import get_logger
from mentormatch_auth.security import create_access_token, decode_token

log = get_logger(__name__)


class SessionClaims(BaseModel):
    """Decoded session token payload. Extra claims from the config are kept."""

    sub: str
    email: str
    role: str
    email_verified: bool
    type: str
    jti: str
    iat: datetime
    exp: datetime
    iss: str
    aud: str

    model_config = ConfigDict(extra="allow")


class SessionTokenIssuer:
    """
    Issues and decodes session tokens using the config's secret, lifetime,
    issuer and audience.

    There is no revocation list; a token stays valid until it expires.
    """

    def __init__(self, config: OTPAuthConfig) -> None:
        self.config = config

    def issue_token(self, user: Any) -> str:  # noqa: ANN401
        """
        Create a session token for the user.

        Args:
            user: User object (id, email, role, is_email_verified)

        Returns:
            Encoded JWT
        """
        role = getattr(user.role, "value", user.role)
        claims = {
            **self.config.get_additional_claims(user),
            "email": user.email,
            "role": str(role),
            "email_verified": bool(user.is_email_verified),
        }
        token = create_access_token(
            user_id=user.id,
            claims=claims,
            secret_key=self.config.secret_key,
            algorithm=self.config.algorithm,
            lifetime=self.config.access_token_lifetime,
            issuer=self.config.token_issuer,
            audience=self.config.token_audience,
        )
        log.info("session_token_issued", user_id=str(user.id), role=claims["role"])
        return token

    def decode(self, token: str) -> SessionClaims:
        """
        Decode and validate a session token.

        Raises:
            HTTPException: 401 "Access token expired" or "Invalid access token"
        """
        payload: dict[str, Any] = decode_token(
            token,
            self.config.secret_key,
            self.config.algorithm,
            self.config.token_issuer,
            self.config.token_audience,
        )
        if payload.get("type") != "access":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid access token",
            )
        try:
            return SessionClaims.model_validate(payload)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid access token",
            ) from e
