"""Authentication services: password hashing and access tokens."""

from fintrack.services.auth.passwords import PasswordHasher
from fintrack.services.auth.tokens import (
    ACCOUNT_DEACTIVATED,
    EXPIRED_TOKEN,
    INVALID_TOKEN,
    MISSING_TOKEN,
    UNKNOWN_USER,
    TokenClaims,
    TokenService,
)

__all__ = [
    "PasswordHasher",
    "TokenClaims",
    "TokenService",
    "ACCOUNT_DEACTIVATED",
    "EXPIRED_TOKEN",
    "INVALID_TOKEN",
    "MISSING_TOKEN",
    "UNKNOWN_USER",
]
