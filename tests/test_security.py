"""Tests for OTP generation, password hashing and JWT helpers."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

from mentormatch_auth.security import (
    create_access_token,
    decode_token,
    generate_otp,
    hash_password,
    otp_codes_match,
    verify_password,
)

ISSUER = "mentormatch-api"
AUDIENCE = "mentormatch-app"


def make_token(secret: str, lifetime: timedelta = timedelta(hours=1), **claims: object) -> str:
    return create_access_token(
        user_id=123,
        claims=dict(claims),
        secret_key=secret,
        algorithm="HS256",
        lifetime=lifetime,
        issuer=ISSUER,
        audience=AUDIENCE,
    )


# ============================================================================
# OTP Generation Tests
# ============================================================================


class TestGenerateOTP:
    """Test suite for OTP code generation."""

    @pytest.mark.parametrize("length", [4, 6, 8, 10])
    def test_generates_requested_length(self, length: int) -> None:
        """OTP should have the specified number of digits."""
        code = generate_otp(length, developer_mode=False)
        assert len(code) == length
        assert code.isdigit()

    def test_developer_mode_returns_zeros(self) -> None:
        """In developer mode, OTP should be all zeros for easy testing."""
        assert generate_otp(6, developer_mode=True) == "000000"

    def test_generates_different_codes(self) -> None:
        """Each OTP generation should produce different codes (statistically)."""
        codes = {generate_otp(6, developer_mode=False) for _ in range(20)}
        assert len(codes) > 15

    def test_leading_zeros_possible(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Digits are drawn independently, so a code may start with zero."""
        monkeypatch.setattr("mentormatch_auth.security.secrets.randbelow", lambda _n: 0)
        assert generate_otp(6, developer_mode=False) == "000000"


class TestOTPCodesMatch:
    """Test suite for OTP code comparison."""

    def test_accepts_identical_code(self) -> None:
        assert otp_codes_match("004213", "004213")

    def test_rejects_different_code(self) -> None:
        assert not otp_codes_match("004213", "004214")

    def test_no_numeric_normalisation(self) -> None:
        """Leading zeros are significant."""
        assert not otp_codes_match("000123", "123")

    def test_case_sensitive(self) -> None:
        assert not otp_codes_match("ABC123", "abc123")


# ============================================================================
# Password Hashing Tests
# ============================================================================


class TestPasswordHashing:
    """Test suite for bcrypt password hashing."""

    def test_hash_and_verify(self) -> None:
        password_hash = hash_password("Secret123", rounds=4)
        assert password_hash.startswith("$2b$04$")
        assert verify_password("Secret123", password_hash)

    def test_rejects_wrong_password(self) -> None:
        password_hash = hash_password("Secret123", rounds=4)
        assert not verify_password("Secret124", password_hash)

    def test_salted(self) -> None:
        """The same password should hash differently each time."""
        assert hash_password("Secret123", rounds=4) != hash_password("Secret123", rounds=4)

    def test_missing_hash(self) -> None:
        assert not verify_password("Secret123", None)
        assert not verify_password("Secret123", "")

    def test_malformed_hash(self) -> None:
        """A corrupted stored hash should fail verification rather than raise."""
        assert not verify_password("Secret123", "not-a-bcrypt-hash")

    def test_long_passwords_accepted(self) -> None:
        """Passwords longer than bcrypt's 72-byte input limit should still hash."""
        long_password = "A1" * 60
        password_hash = hash_password(long_password, rounds=4)
        assert verify_password(long_password, password_hash)


# ============================================================================
# Access Token Tests
# ============================================================================


class TestAccessToken:
    """Test suite for JWT access token operations."""

    def test_includes_required_claims(self, test_secret: str) -> None:
        """Access token should contain all registered claims."""
        claims = decode_token(make_token(test_secret), test_secret, "HS256", ISSUER, AUDIENCE)

        assert claims["sub"] == "123"
        assert claims["type"] == "access"
        assert claims["iss"] == ISSUER
        assert claims["aud"] == AUDIENCE
        assert "jti" in claims
        assert "exp" in claims
        assert "iat" in claims

    def test_includes_session_claims(self, test_secret: str) -> None:
        """Should carry the supplied session claims."""
        token = make_token(test_secret, email="a@x.com", role="mentor", email_verified=True)

        claims = decode_token(token, test_secret, "HS256", ISSUER, AUDIENCE)

        assert claims["email"] == "a@x.com"
        assert claims["role"] == "mentor"
        assert claims["email_verified"] is True

    def test_registered_claims_win(self, test_secret: str) -> None:
        """Custom claims cannot override sub or type."""
        token = make_token(test_secret, sub="999", type="refresh")

        claims = decode_token(token, test_secret, "HS256", ISSUER, AUDIENCE)

        assert claims["sub"] == "123"
        assert claims["type"] == "access"

    def test_unique_jti_per_token(self, test_secret: str) -> None:
        """Each token should have a unique JWT ID."""
        first = decode_token(make_token(test_secret), test_secret, "HS256", ISSUER, AUDIENCE)
        second = decode_token(make_token(test_secret), test_secret, "HS256", ISSUER, AUDIENCE)
        assert first["jti"] != second["jti"]

    def test_respects_lifetime(self, test_secret: str) -> None:
        """Token expiration should match specified lifetime."""
        before = datetime.now(UTC)
        token = make_token(test_secret, lifetime=timedelta(hours=2))

        claims = decode_token(token, test_secret, "HS256", ISSUER, AUDIENCE)

        exp = datetime.fromtimestamp(claims["exp"], tz=UTC)
        assert timedelta(hours=2) - timedelta(seconds=5) <= exp - before <= timedelta(hours=2, seconds=5)


# ============================================================================
# Token Decoding Tests
# ============================================================================


class TestDecodeToken:
    """Test suite for JWT token decoding and validation."""

    def test_rejects_invalid_signature(self, test_secret: str) -> None:
        """Should reject token signed with a different key."""
        token = make_token("another-secret-key-minimum-32-chars-long")

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token, test_secret, "HS256", ISSUER, AUDIENCE)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid access token"

    def test_rejects_malformed_token(self, test_secret: str) -> None:
        """Should reject a string that is not a JWT."""
        with pytest.raises(HTTPException) as exc_info:
            decode_token("not.a.jwt", test_secret, "HS256", ISSUER, AUDIENCE)

        assert exc_info.value.status_code == 401

    def test_rejects_expired_token(self, test_secret: str) -> None:
        """Should reject an expired token with a distinct detail."""
        token = make_token(test_secret, lifetime=timedelta(seconds=-10))

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token, test_secret, "HS256", ISSUER, AUDIENCE)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Access token expired"

    def test_rejects_wrong_audience(self, test_secret: str) -> None:
        with pytest.raises(HTTPException) as exc_info:
            decode_token(make_token(test_secret), test_secret, "HS256", ISSUER, "other-app")

        assert exc_info.value.status_code == 401

    def test_rejects_wrong_issuer(self, test_secret: str) -> None:
        with pytest.raises(HTTPException) as exc_info:
            decode_token(make_token(test_secret), test_secret, "HS256", "other-api", AUDIENCE)

        assert exc_info.value.status_code == 401

    def test_rejects_token_without_subject(self, test_secret: str) -> None:
        """Should require the sub claim."""
        now = datetime.now(UTC)
        token = jwt.encode(
            {"iat": now, "exp": now + timedelta(hours=1), "iss": ISSUER, "aud": AUDIENCE},
            test_secret,
            algorithm="HS256",
        )

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token, test_secret, "HS256", ISSUER, AUDIENCE)

        assert exc_info.value.status_code == 401
