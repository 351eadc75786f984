"""
Global test configuration and fixtures.

Every test gets its own app instance, and with it a fresh session table
and an empty in-memory bucket. Nothing touches real object storage.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from filedrop.api.dependencies import build_storage_config
from filedrop.config.settings import Settings
from filedrop.core.auth.sessions import SESSION_COOKIE_NAME
from filedrop.infrastructure.storage.client import MockStorageClient
from filedrop.main import create_app

TEST_PASSWORD = "correct-horse-battery"


class TickingClock:
    """Returns a strictly increasing UTC time on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self._now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._step = step

    def __call__(self) -> datetime:
        self._now += self._step
        return self._now


@pytest.fixture
def test_settings() -> Settings:
    """Settings for a mock-mode app with a known password."""
    return Settings(
        _env_file=None,
        admin_password=TEST_PASSWORD,
        r2_mock_mode=True,
        r2_public_url="https://files.example.com",
        app_url="https://dash.example.com",
        r2_bucket_limit=10 * 1024 * 1024,
        max_upload_size_mb=1,
    )


@pytest.fixture
def storage(test_settings) -> MockStorageClient:
    return MockStorageClient(build_storage_config(test_settings), clock=TickingClock())


@pytest.fixture
def app(test_settings, storage):
    application = create_app(test_settings)
    application.state.storage_client = storage
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def authed_client(client, test_settings):
    """A client holding a valid session cookie."""
    response = client.post("/api/auth", json={"password": test_settings.admin_password})
    assert response.status_code == 200
    assert client.cookies.get(SESSION_COOKIE_NAME)
    return client


@pytest.fixture
def password(test_settings) -> str:
    return test_settings.admin_password
