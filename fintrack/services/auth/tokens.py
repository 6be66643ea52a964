"""
Access Tokens

Signed JWTs carrying the user id as `sub`. Tokens are stateless: there is
no server-side session, so logout is only an acknowledgement and a token
stays valid until it expires.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from fintrack.config import get_settings
from fintrack.errors import AuthFailure


MISSING_TOKEN = "Access denied. No token provided."
INVALID_TOKEN = "Invalid token."
EXPIRED_TOKEN = "Token expired."
UNKNOWN_USER = "Invalid token. User not found."
ACCOUNT_DEACTIVATED = "Account is deactivated."


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access token."""

    user_id: str
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues and verifies access tokens."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expires_hours: Optional[int] = None,
    ):
        settings = get_settings().auth
        self._secret_key = secret_key or settings.secret_key
        self._algorithm = algorithm or settings.algorithm
        self._lifetime = timedelta(hours=expires_hours or settings.expires_hours)

    def issue(self, user_id: str, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        payload = {
            "sub": user_id,
            "iat": issued_at,
            "exp": issued_at + self._lifetime,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: Optional[str]) -> TokenClaims:
        """
        Verify signature and expiry.

        Raises:
            AuthFailure: Missing, malformed, tampered or expired token
        """
        if not token:
            raise AuthFailure(MISSING_TOKEN)

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthFailure(EXPIRED_TOKEN)
        except jwt.InvalidTokenError:
            raise AuthFailure(INVALID_TOKEN)

        return TokenClaims(
            user_id=str(payload["sub"]),
            issued_at=datetime.fromtimestamp(payload.get("iat", 0), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
