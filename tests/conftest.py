"""
Shared fixtures.

Everything runs against an in-memory mongomock database; no server,
no network. bcrypt runs at its lowest cost so the suite stays fast.
"""

import os

import mongomock
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("JWT_BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length")
os.environ.setdefault("APP_ENVIRONMENT", "test")

from fintrack.api import create_app
from fintrack.config import get_settings
from fintrack.models.user import UserRegister
from fintrack.orchestrator import create_app_components


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def database():
    return mongomock.MongoClient()["finance_tracker_test"]


@pytest.fixture
def components(database):
    components = create_app_components(database=database)
    components.connection.ensure_indexes()
    return components


@pytest.fixture
def client(components):
    # Not used as a context manager, so startup (ping) never runs
    return TestClient(create_app(components))


def register_user(components, username: str, email: str, password: str = "secret123"):
    """Create an account directly through the flow. Returns (user, token)."""
    return components.accounts.register(
        UserRegister(username=username, email=email, password=password)
    )


@pytest.fixture
def owner(components):
    user, _ = register_user(components, "alice", "alice@example.com")
    return user


@pytest.fixture
def intruder(components):
    user, _ = register_user(components, "mallory", "mallory@example.com")
    return user


@pytest.fixture
def auth_headers(components):
    _, token = register_user(components, "bob", "bob@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers(components):
    _, token = register_user(components, "eve", "eve@example.com")
    return {"Authorization": f"Bearer {token}"}
