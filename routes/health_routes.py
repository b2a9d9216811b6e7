"""
Health check endpoint.

GET /health: checks the durable store and Redis.
Rules:
- Durable store answering → "healthy".
- Running on the in-process store (primary absent or not answering) →
  "degraded" (200); the service keeps working with weaker durability.
- Redis failure or absence → "degraded" (200); Redis is optional.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from schemas.dto.responses.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    gateway = request.app.state.gateway
    if gateway.degraded:
        checks["store"] = "fallback"
        overall = "degraded"
    elif await gateway.ping():
        checks["store"] = "ok"
    else:
        checks["store"] = "error"
        overall = "degraded"

    redis = request.app.state.redis
    if redis is None:
        checks["redis"] = "not_configured"
        overall = "degraded"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except (RedisError, OSError):
            checks["redis"] = "error"
            overall = "degraded"

    return JSONResponse(
        status_code=200,
        content=HealthResponse(status=overall, checks=checks).model_dump(),
    )
