"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient
from pymongo.errors import PyMongoError

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.dual_cache import DualCache
from infrastructure.cache.redis_client import create_redis_client
from infrastructure.identity.jwt_provider import JwtIdentityProvider
from infrastructure.identity.protocol import IdentityProvider
from infrastructure.realtime.broker import TopicBroker
from infrastructure.storage.gateway import StorageGateway
from infrastructure.storage.memory_store import MemoryDocumentStore
from infrastructure.storage.mongo_store import MongoDocumentStore
from infrastructure.storage.protocol import DocumentStore
from routes.analytics_routes import router as analytics_router
from routes.health_routes import router as health_router
from routes.link_routes import router as link_router
from routes.realtime_routes import router as realtime_router
from routes.redirect_routes import router as redirect_router
from services.analytics_publisher import AnalyticsPublisher
from services.click_aggregator import ClickAggregator
from services.global_rollup import GlobalRollup
from services.link_registry import LinkRegistry
from shared.log_context import register_request_logging
from shared.logging import get_logger, setup_logging
from shared.validators import reserved_path_segments

log = get_logger(__name__)


async def _connect_primary_store(
    settings: AppSettings,
) -> tuple[Optional[AsyncMongoClient], Optional[DocumentStore]]:
    """Connect to MongoDB; (None, None) when unconfigured or unreachable."""
    if not settings.db.mongodb_uri:
        log.warning("primary_store_not_configured", mode="in_process_only")
        return None, None

    client: AsyncMongoClient = AsyncMongoClient(
        settings.db.mongodb_uri,
        serverSelectionTimeoutMS=settings.db.mongo_server_selection_timeout_ms,
    )
    store = MongoDocumentStore(client[settings.db.db_name])
    try:
        await asyncio.wait_for(store.ping(), settings.db.store_timeout_seconds)
    except (PyMongoError, asyncio.TimeoutError, OSError) as e:
        log.warning(
            "primary_store_unreachable",
            mode="in_process_only",
            error=str(e) or "timeout",
            error_type=type(e).__name__,
        )
        await client.close()
        return None, None

    log.info("primary_store_connected", db_name=settings.db.db_name)
    return client, store


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    primary_store: Optional[DocumentStore] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    ``primary_store`` and ``identity_provider`` replace the MongoDB store and
    the JWT verifier (tests, alternative deployments).
    """
    if settings is None:
        settings = AppSettings()

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    setup_logging(settings.logging, production=settings.is_production)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client = None
        primary = primary_store
        if primary is None:
            mongo_client, primary = await _connect_primary_store(settings)

        gateway = StorageGateway(
            primary,
            MemoryDocumentStore(),
            timeout=settings.db.store_timeout_seconds,
        )
        redis_client = await create_redis_client(
            settings.redis.redis_uri, settings.db.store_timeout_seconds
        )

        analytics = settings.analytics
        broker = TopicBroker()
        rollup = GlobalRollup(
            gateway,
            window_days=analytics.rollup_window_days,
            max_window_days=analytics.rollup_max_window_days,
            conversion_rate=analytics.conversion_rate,
        )
        publisher = AnalyticsPublisher(broker, rollup)

        app.state.settings = settings
        app.state.gateway = gateway
        app.state.redis = redis_client
        app.state.rollup_cache = DualCache(
            redis_client,
            primary_ttl=settings.redis.rollup_cache_ttl_seconds,
            stale_ttl=settings.redis.rollup_cache_stale_ttl_seconds,
        )
        app.state.broker = broker
        app.state.global_rollup = rollup
        app.state.publisher = publisher
        app.state.click_aggregator = ClickAggregator(
            gateway, publisher, history_limit=analytics.click_history_limit
        )
        app.state.link_registry = LinkRegistry(
            gateway,
            code_length=analytics.short_code_length,
            blocked_domains=analytics.blocked_domains,
            reserved_codes=reserved_path_segments(
                [route.path for route in app.routes] + [settings.docs_url or ""]
            ),
        )
        app.state.identity_provider = identity_provider or JwtIdentityProvider(
            settings.identity
        )
        log.info("app_started", degraded=gateway.degraded, redis=redis_client is not None)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await publisher.aclose()
        if mongo_client is not None:
            await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Browser credentials cannot be combined with a wildcard origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_request_logging(app)

    app.include_router(health_router)
    app.include_router(link_router)
    app.include_router(analytics_router)
    app.include_router(realtime_router)
    # Catch-all /{short_code} goes last
    app.include_router(redirect_router)

    return app
