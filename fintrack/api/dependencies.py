"""
Request Dependencies

The auth gate lives here: any route that depends on `get_current_user`
is only reached with a verified, active user.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fintrack.audit import create_correlation_id
from fintrack.models.user import User
from fintrack.orchestrator import AppComponents


# auto_error=False so a missing header reaches our own 401 message
bearer_scheme = HTTPBearer(auto_error=False)


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_correlation_id(x_request_id: Optional[str] = Header(default=None)) -> UUID:
    """Use the caller's X-Request-ID when it is a UUID, otherwise start a new one."""
    if x_request_id:
        try:
            return UUID(x_request_id)
        except ValueError:
            pass
    return create_correlation_id()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    components: AppComponents = Depends(get_components),
    correlation_id: UUID = Depends(get_correlation_id),
) -> User:
    token = credentials.credentials if credentials else None
    return components.accounts.authenticate(token, correlation_id)
