"""
Password Hashing

bcrypt with a configurable cost factor. Only the first 72 bytes of a
password take part in the hash; longer input is cut there explicitly.
"""

from typing import Optional

import bcrypt

from fintrack.config import get_settings


_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Hashes and verifies passwords."""

    def __init__(self, rounds: Optional[int] = None):
        self._rounds = rounds or get_settings().auth.bcrypt_rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """False for a wrong password or a malformed stored hash."""
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except ValueError:
            return False
