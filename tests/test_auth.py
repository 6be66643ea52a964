"""
Tests for password hashing and access tokens
"""

import pytest
from datetime import datetime, timedelta, timezone

import jwt

from fintrack.errors import AuthFailure
from fintrack.services.auth import (
    EXPIRED_TOKEN,
    INVALID_TOKEN,
    MISSING_TOKEN,
    PasswordHasher,
    TokenService,
)


SECRET = "unit-test-secret-key-0123456789abcdef"
USER_ID = "65a000000000000000000001"


@pytest.fixture
def tokens():
    return TokenService(secret_key=SECRET, algorithm="HS256", expires_hours=1)


class TestPasswordHasher:
    """Tests for bcrypt hashing."""

    def test_hash_and_verify(self):
        """Test a hash verifies only the original password."""
        hasher = PasswordHasher(rounds=4)
        hashed = hasher.hash("secret123")

        assert hashed != "secret123"
        assert hasher.verify("secret123", hashed) is True
        assert hasher.verify("secret124", hashed) is False

    def test_hashes_are_salted(self):
        """Test the same password hashes differently each time."""
        hasher = PasswordHasher(rounds=4)
        assert hasher.hash("secret123") != hasher.hash("secret123")

    def test_malformed_hash(self):
        """Test a corrupt stored hash fails closed."""
        assert PasswordHasher(rounds=4).verify("secret123", "not-a-bcrypt-hash") is False

    def test_long_passwords_truncate_consistently(self):
        """Test passwords past 72 bytes hash without error."""
        hasher = PasswordHasher(rounds=4)
        password = "x" * 100
        assert hasher.verify(password, hasher.hash(password)) is True


class TestTokenService:
    """Tests for issuing and verifying tokens."""

    def test_round_trip(self, tokens):
        """Test a fresh token resolves to its user."""
        claims = tokens.decode(tokens.issue(USER_ID))
        assert claims.user_id == USER_ID
        assert claims.expires_at - claims.issued_at == timedelta(hours=1)

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing(self, tokens, token):
        """Test an absent token has its own message."""
        with pytest.raises(AuthFailure, match=MISSING_TOKEN):
            tokens.decode(token)

    def test_expired(self, tokens):
        """Test a token past its lifetime is reported as expired."""
        token = tokens.issue(USER_ID, now=datetime.now(timezone.utc) - timedelta(hours=2))
        with pytest.raises(AuthFailure, match=EXPIRED_TOKEN):
            tokens.decode(token)

    def test_wrong_secret(self, tokens):
        """Test a token signed with another key is invalid."""
        other = TokenService(secret_key="another-secret-key-0123456789abcdef")
        with pytest.raises(AuthFailure, match=INVALID_TOKEN):
            tokens.decode(other.issue(USER_ID))

    def test_garbage(self, tokens):
        """Test a string that is not a JWT is invalid."""
        with pytest.raises(AuthFailure, match=INVALID_TOKEN):
            tokens.decode("not.a.token")

    def test_missing_subject(self, tokens):
        """Test a signed token without a subject is invalid."""
        token = jwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(AuthFailure, match=INVALID_TOKEN):
            tokens.decode(token)
