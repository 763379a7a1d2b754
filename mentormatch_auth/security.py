"""Security utilities for OTP generation, password hashing and JWT session tokens."""

import secrets
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
from fastapi import HTTPException, status  # type: ignore[import-untyped]
from jose import ExpiredSignatureError, JWTError, jwt  # type: ignore[import-untyped]

# bcrypt only looks at the first 72 bytes of input
_BCRYPT_MAX_BYTES = 72


def generate_otp(length: int, developer_mode: bool) -> str:
    """
    Generate a cryptographically secure OTP code.

    Each digit is drawn independently, so leading zeros are possible.
    In developer mode, returns a code consisting of zeros for easy testing.

    Args:
        length: Length of the OTP code (typically 4-8 digits)
        developer_mode: If True, return test code of all zeros

    Returns:
        OTP code as a string

    Example:
        >>> generate_otp(6, False)
        '482913'
        >>> generate_otp(6, True)
        '000000'
    """
    if developer_mode:
        return "0" * length

    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def otp_codes_match(stored_code: str, input_code: str) -> bool:
    """
    Compare an OTP code in constant time.

    Exact string comparison: case-sensitive for alphanumeric codes,
    so "000123" and "123" never match.
    """
    return secrets.compare_digest(stored_code.encode(), input_code.encode())


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash a password with bcrypt.

    Args:
        password: Plaintext password
        rounds: bcrypt cost factor

    Returns:
        bcrypt hash as a string
    """
    hashed = bcrypt.hashpw(
        password.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt(rounds=rounds)
    )
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a plaintext password against a bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("utf-8")
        )
    except ValueError:
        # Malformed hash in storage
        return False


def create_access_token(
    user_id: Any,  # noqa: ANN401
    claims: dict[str, Any],
    secret_key: str,
    algorithm: str,
    lifetime: timedelta,
    issuer: str,
    audience: str,
) -> str:
    """
    Create a signed JWT session token.

    Args:
        user_id: User identifier (stored in "sub")
        claims: Session claims (email, role, email_verified, extras)
        secret_key: Secret key for signing token
        algorithm: JWT algorithm (e.g., 'HS256')
        lifetime: Token lifetime
        issuer: "iss" claim
        audience: "aud" claim

    Returns:
        Encoded JWT token string

    Example:
        >>> token = create_access_token(
        ...     user_id="64f1c0...",
        ...     claims={"email": "a@x.com", "role": "mentee", "email_verified": True},
        ...     secret_key="secret",
        ...     algorithm="HS256",
        ...     lifetime=timedelta(minutes=60),
        ...     issuer="mentormatch-api",
        ...     audience="mentormatch-app",
        ... )
    """
    now = datetime.now(UTC)
    payload = {
        **claims,
        "sub": str(user_id),
        "type": "access",
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + lifetime,
        "iss": issuer,
        "aud": audience,
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_token(
    token: str,
    secret_key: str,
    algorithm: str,
    issuer: str,
    audience: str,
) -> dict[str, Any]:
    """
    Decode and verify a JWT session token.

    Expired and otherwise invalid tokens are both rejected with 401; the
    detail only tells them apart for diagnostics.

    Args:
        token: JWT token string
        secret_key: Secret key for verification
        algorithm: Expected JWT algorithm
        issuer: Expected "iss" claim
        audience: Expected "aud" claim

    Returns:
        Decoded token claims as dictionary

    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            issuer=issuer,
            audience=audience,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "require_exp": True,
                "require_iat": True,
                "require_sub": True,
            },
        )
    except ExpiredSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token expired",
        ) from e
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token",
        ) from e
