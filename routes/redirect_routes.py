"""
Short link redirects. Registered last so the catch-all path never shadows
the API routes.

HEAD /{short_code}   counts an impression only; always 200, no body
GET  /{short_code}   classifies the visitor, records the click, 302 redirect
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from dependencies import get_click_aggregator
from errors import NotFoundError
from schemas.dto.responses.common import ErrorResponse
from services.click_aggregator import ClickAggregator
from shared.logging import get_logger
from shared.request_utils import get_visitor_location
from shared.visitor import classify_visitor

log = get_logger(__name__)

router = APIRouter(tags=["redirect"])


@router.head("/{short_code}")
async def preview_link(
    short_code: str,
    aggregator: ClickAggregator = Depends(get_click_aggregator),
) -> Response:
    try:
        await aggregator.record_impression(short_code)
    except NotFoundError:
        log.debug("impression_for_unknown_code", short_code=short_code)
    return Response(status_code=200)


@router.get(
    "/{short_code}",
    response_class=RedirectResponse,
    status_code=302,
    responses={404: {"model": ErrorResponse}},
)
async def redirect_link(
    short_code: str,
    request: Request,
    aggregator: ClickAggregator = Depends(get_click_aggregator),
) -> RedirectResponse:
    user_agent = request.headers.get("User-Agent")
    classification = classify_visitor(
        user_agent,
        http_referrer=request.headers.get("Referer"),
        utm_source=request.query_params.get("utm_source"),
    )
    target = await aggregator.record_click(
        short_code,
        classification,
        location=get_visitor_location(request.headers),
        user_agent=user_agent,
    )
    return RedirectResponse(target, status_code=302)
