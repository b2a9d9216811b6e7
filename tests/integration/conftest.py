"""
Integration test configuration.

Builds the real application through create_app() with an in-memory primary
store (FlakyStore, switchable "down") and a static identity provider, so the
full HTTP/WebSocket stack runs without MongoDB, Redis or an identity server.
"""

import pytest
from fastapi.testclient import TestClient

from app import create_app
from config import (
    AnalyticsSettings,
    AppSettings,
    DatabaseSettings,
    IdentitySettings,
    LoggingSettings,
    RedisSettings,
    SentrySettings,
)

APP_URL = "https://l.test"


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in integration tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        env="test",
        app_url=APP_URL,
        db=DatabaseSettings(mongodb_uri=None, store_timeout_seconds=0.2),
        redis=RedisSettings(redis_uri=None),
        identity=IdentitySettings(),
        analytics=AnalyticsSettings(click_history_limit=100, blocked_domains=["l.test"]),
        logging=LoggingSettings(log_level="WARNING"),
        sentry=SentrySettings(sentry_dsn=""),
    )


@pytest.fixture
def client(settings, primary_store, identity_provider):
    app = create_app(
        settings, primary_store=primary_store, identity_provider=identity_provider
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def shorten(client, auth_headers):
    """POST /api/shorten as alice (or *token*) and return the JSON body."""

    def _shorten(url="https://example.com/page", token="alice-token", **extra):
        resp = client.post(
            "/api/shorten", json={"url": url, **extra}, headers=auth_headers(token)
        )
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _shorten
