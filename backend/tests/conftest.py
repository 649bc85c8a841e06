"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
TEST_API_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ["API_SECRET"] = TEST_API_SECRET
os.environ.setdefault("JWT_SECRET_KEY", f"test-jwt-{secrets.token_urlsafe(32)}")
# TestClient talks plain http, so Secure cookies would never be sent back
os.environ["SECURE_COOKIES"] = "false"
os.environ.setdefault("STATE_RATE_LIMIT", "1000/minute")

from app.config import get_settings  # noqa: E402
from app.database import _stores  # noqa: E402
from app.main import app  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_database(tmp_path, monkeypatch):
    """Give every test its own SQLite file and a fresh rate-limit window."""
    db_path = tmp_path / "app-state.db"
    monkeypatch.setenv("DATABASE_PATH", str(db_path))
    get_settings.cache_clear()
    limiter.reset()
    yield db_path
    get_settings.cache_clear()
    _stores.clear()


@pytest.fixture
def client():
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Auth headers carrying the shared API secret."""
    return {"Authorization": f"Bearer {TEST_API_SECRET}"}


@pytest.fixture
def api_secret():
    """The shared secret configured for this test run."""
    return TEST_API_SECRET
