"""
HTTP middleware for automatic request logging and context management.

Provides:
- Automatic request ID generation for correlation
- Request/response logging with timing
- Context bound through structlog contextvars for the whole request
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request

from shared.logging import get_logger, hash_ip
from shared.request_utils import get_client_ip

# Redirects are high-volume; only API traffic logs a completion line at INFO.
_INFO_PREFIXES = ("/api/", "/health", "/ws")


def generate_request_id() -> str:
    """Generate a unique request ID for correlation."""
    return f"req_{uuid.uuid4().hex[:12]}"


def _log_request_end(path: str, method: str, status_code: int, duration_ms: int) -> None:
    log = get_logger("link360.request")
    if status_code >= 500:
        log_fn = log.error
    elif status_code >= 400:
        log_fn = log.warning
    elif path.startswith(_INFO_PREFIXES):
        log_fn = log.info
    else:
        log_fn = log.debug

    log_fn(
        "request_completed",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
    )


def register_request_logging(app: FastAPI) -> None:
    """Register the request logging middleware on *app*."""

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = time.perf_counter()
        request_id = generate_request_id()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            ip_hash=hash_ip(get_client_ip(request)),
        )

        response = await call_next(request)

        duration_ms = int((time.perf_counter() - start) * 1000)
        _log_request_end(
            request.url.path, request.method, response.status_code, duration_ms
        )
        response.headers["X-Request-ID"] = request_id
        return response
