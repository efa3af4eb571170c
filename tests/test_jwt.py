"""
Tests for JWT token utilities.

Tests cover:
- Access token creation
- Decoding and expiry handling
- Subject extraction
"""

from datetime import datetime, timedelta, timezone

import jwt

from inkwell.core.config import settings
from inkwell.core.jwt import create_access_token, decode_token, get_token_subject


class TestAccessToken:
    """Tests for access token creation."""

    def test_contains_subject_and_type(self):
        payload = decode_token(create_access_token("alice@example.com"))

        assert payload is not None
        assert payload["sub"] == "alice@example.com"
        assert payload["type"] == "access"

    def test_default_expiry(self):
        """Default lifetime comes from ACCESS_TOKEN_EXPIRE_MINUTES."""
        before = datetime.now(timezone.utc)
        payload = decode_token(create_access_token("alice@example.com"))

        expires = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        expected = before + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        assert abs((expires - expected).total_seconds()) < 5

    def test_custom_expiry(self):
        before = datetime.now(timezone.utc)
        payload = decode_token(create_access_token("alice@example.com", expires_delta=timedelta(minutes=5)))

        expires = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        assert abs((expires - (before + timedelta(minutes=5))).total_seconds()) < 5

    def test_subject_is_stringified(self):
        payload = decode_token(create_access_token(42))
        assert payload["sub"] == "42"


class TestDecodeToken:
    def test_expired(self):
        token = create_access_token("alice@example.com", expires_delta=timedelta(seconds=-10))
        assert decode_token(token) is None

    def test_wrong_secret(self):
        token = jwt.encode(
            {"sub": "alice@example.com", "type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "some-other-secret",
            algorithm=settings.ALGORITHM,
        )
        assert decode_token(token) is None

    def test_garbage(self):
        assert decode_token("not.a.token") is None
        assert decode_token("") is None


class TestTokenSubject:
    def test_valid(self):
        assert get_token_subject(create_access_token("alice@example.com")) == "alice@example.com"

    def test_rejects_other_token_types(self):
        token = jwt.encode(
            {"sub": "alice@example.com", "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )
        assert get_token_subject(token) is None

    def test_invalid(self):
        assert get_token_subject("garbage") is None
