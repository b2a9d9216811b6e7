"""
Link management endpoints (bearer token required).

POST   /api/shorten              create a short link
GET    /api/user/links           caller's links, newest first
DELETE /api/links/{short_code}   owner-only delete
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from config import AppSettings
from dependencies import get_link_registry, get_settings, require_identity
from infrastructure.identity.protocol import Identity
from schemas.dto.requests.link import ShortenRequest
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from schemas.dto.responses.link import ShortenResponse, UserLinksResponse
from services.link_registry import LinkRegistry
from shared.request_utils import get_base_url

router = APIRouter(prefix="/api", tags=["links"])


@router.post(
    "/shorten",
    response_model=ShortenResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def shorten(
    body: ShortenRequest,
    request: Request,
    identity: Identity = Depends(require_identity),
    registry: LinkRegistry = Depends(get_link_registry),
    settings: AppSettings = Depends(get_settings),
) -> ShortenResponse:
    link = await registry.create(
        body.url,
        identity,
        get_base_url(request, settings.app_url),
        custom_code=body.custom_short_code,
        utm_params=body.utm_params.as_dict() if body.utm_params else None,
    )
    return ShortenResponse(
        shortUrl=link.short_url,
        shortCode=link.short_code,
        originalUrl=link.original_url,
        isCustom=link.is_custom,
    )


@router.get("/user/links", response_model=UserLinksResponse)
async def user_links(
    identity: Identity = Depends(require_identity),
    registry: LinkRegistry = Depends(get_link_registry),
) -> UserLinksResponse:
    return UserLinksResponse(links=await registry.list_by_owner(identity.user_id))


@router.delete(
    "/links/{short_code}",
    response_model=MessageResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_link(
    short_code: str,
    identity: Identity = Depends(require_identity),
    registry: LinkRegistry = Depends(get_link_registry),
) -> MessageResponse:
    await registry.delete(short_code, identity.user_id)
    return MessageResponse(success=True, message="Link deleted successfully")
