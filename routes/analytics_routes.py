"""
Analytics read and tracking endpoints.

GET  /api/analytics/geo/latest         global rollup (demo payload when anonymous
                                       or when storage cannot serve it)
GET  /api/analytics/geo/{short_code}   per-link geographic rollup, optional range
GET  /api/analytics/{short_code}       record plus geographic breakdown
POST /api/track/impression/{short_code}
POST /api/track/share/{short_code}     kept for old clients; shares come from UTM clicks
"""

from __future__ import annotations

import copy
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dependencies import (
    get_click_aggregator,
    get_gateway,
    get_global_rollup,
    get_rollup_cache,
    optional_identity,
)
from errors import StoreUnavailableError, ValidationError
from infrastructure.cache.dual_cache import DualCache
from infrastructure.identity.protocol import Identity
from infrastructure.storage.gateway import StorageGateway
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from services.click_aggregator import ClickAggregator
from services.global_rollup import DEMO_GLOBAL_STATS, GlobalRollup
from shared.datetime_utils import parse_datetime
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["analytics"])


def _demo_payload() -> dict:
    return {"stats": copy.deepcopy(DEMO_GLOBAL_STATS)}


def _parse_bound(value: Optional[str], field: str):
    if value is None or value == "":
        return None
    moment = parse_datetime(value)
    if moment is None:
        raise ValidationError(f"Invalid {field}", field=field)
    return moment


# Declared before /analytics/geo/{short_code} so "latest" is not taken as a code.
@router.get("/analytics/geo/latest")
async def latest_global_stats(
    window_days: Optional[int] = Query(default=None, alias="windowDays"),
    identity: Optional[Identity] = Depends(optional_identity),
    gateway: StorageGateway = Depends(get_gateway),
    rollup: GlobalRollup = Depends(get_global_rollup),
    cache: DualCache = Depends(get_rollup_cache),
) -> dict:
    if identity is None or gateway.degraded:
        return _demo_payload()

    days = rollup.clamp_window(window_days)
    try:
        stats = await cache.get_or_set(
            f"rollup:global:{days}",
            lambda: rollup.compute(days, strict=True),
        )
    except StoreUnavailableError:
        log.warning("global_rollup_unavailable", window_days=days)
        return _demo_payload()
    return {"stats": stats}


@router.get(
    "/analytics/geo/{short_code}",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def link_geo_stats(
    short_code: str,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    aggregator: ClickAggregator = Depends(get_click_aggregator),
) -> dict:
    return await aggregator.get_geo_stats(
        short_code,
        _parse_bound(start_date, "startDate"),
        _parse_bound(end_date, "endDate"),
    )


@router.get("/analytics/{short_code}", responses={404: {"model": ErrorResponse}})
async def link_analytics(
    short_code: str,
    aggregator: ClickAggregator = Depends(get_click_aggregator),
) -> dict:
    return await aggregator.get_analytics(short_code)


@router.post(
    "/track/impression/{short_code}",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
)
async def track_impression(
    short_code: str,
    aggregator: ClickAggregator = Depends(get_click_aggregator),
) -> MessageResponse:
    await aggregator.record_impression(short_code)
    return MessageResponse(success=True)


@router.post("/track/share/{short_code}", response_model=MessageResponse)
async def track_share(short_code: str) -> MessageResponse:
    return MessageResponse(success=True, message="Shares tracked via UTM parameters")
