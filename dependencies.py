"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Collaborators are built once in the app
lifespan and read back from app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from config import AppSettings
from errors import AuthenticationError
from infrastructure.cache.dual_cache import DualCache
from infrastructure.identity.protocol import Identity, IdentityProvider
from infrastructure.storage.gateway import StorageGateway
from services.click_aggregator import ClickAggregator
from services.global_rollup import GlobalRollup
from services.link_registry import LinkRegistry


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_gateway(request: Request) -> StorageGateway:
    return request.app.state.gateway


def get_link_registry(request: Request) -> LinkRegistry:
    return request.app.state.link_registry


def get_click_aggregator(request: Request) -> ClickAggregator:
    return request.app.state.click_aggregator


def get_global_rollup(request: Request) -> GlobalRollup:
    return request.app.state.global_rollup


def get_rollup_cache(request: Request) -> DualCache:
    return request.app.state.rollup_cache


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


async def require_identity(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """Return the verified caller; 401 when the bearer token is missing or rejected."""
    token = _bearer_token(request)
    if token is None:
        raise AuthenticationError("Unauthorized")
    return await provider.verify(token)


async def optional_identity(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Optional[Identity]:
    """Return the verified caller, or None for anonymous or invalid tokens."""
    token = _bearer_token(request)
    if token is None:
        return None
    try:
        return await provider.verify(token)
    except AuthenticationError:
        return None
