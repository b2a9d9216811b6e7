"""Integration tests for GET /health."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from errors import register_error_handlers
from infrastructure.storage.gateway import StorageGateway
from infrastructure.storage.memory_store import MemoryDocumentStore
from routes.health_routes import router as health_router


def _build_test_app(
    primary_ok: bool = True,
    primary_configured: bool = True,
    redis_ok: bool = True,
    redis_configured: bool = True,
) -> FastAPI:
    """
    Build a minimal FastAPI app with mocked stores/Redis injected via lifespan.
    No real network connections are made.
    """
    primary = None
    if primary_configured:
        primary = MemoryDocumentStore()
        if not primary_ok:
            primary.ping = AsyncMock(side_effect=ConnectionError("connection refused"))

    if not redis_configured:
        mock_redis = None
    else:
        mock_redis = AsyncMock()
        if redis_ok:
            mock_redis.ping = AsyncMock(return_value=True)
        else:
            mock_redis.ping = AsyncMock(side_effect=RedisConnectionError("redis down"))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.gateway = StorageGateway(primary, MemoryDocumentStore(), timeout=0.2)
        app.state.redis = mock_redis
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    return app


class TestHealthEndpoint:
    def test_healthy_when_both_ok(self):
        app = _build_test_app()
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"store": "ok", "redis": "ok"}

    def test_degraded_when_primary_fails(self):
        app = _build_test_app(primary_ok=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["checks"]["store"] == "error"

    def test_degraded_when_running_on_fallback_only(self):
        app = _build_test_app(primary_configured=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["checks"]["store"] == "fallback"

    def test_degraded_when_redis_fails(self):
        app = _build_test_app(redis_ok=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["checks"]["redis"] == "error"

    def test_degraded_when_redis_not_configured(self):
        app = _build_test_app(redis_configured=False)
        with TestClient(app) as client:
            resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "degraded"
        assert body["checks"]["redis"] == "not_configured"


def test_full_app_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["checks"]["store"] == "ok"
    assert "X-Request-ID" in resp.headers
