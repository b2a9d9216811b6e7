"""
Response DTOs for link endpoints.

ShortenResponse   POST /api/shorten  (200)
UserLinksResponse GET /api/user/links  (200)

Response shapes are the API contract: camelCase keys match the dashboard
client exactly.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class ShortenResponse(BaseModel):
    """Response body for a newly created short link."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    shortUrl: str
    shortCode: str
    originalUrl: str
    isCustom: bool


class UserLinksResponse(BaseModel):
    """Response body for GET /api/user/links.

    Each item is a stored link document plus an ``analytics`` summary
    (counters and breakdown maps, without click history).
    """

    model_config = ConfigDict(populate_by_name=True)

    links: list[dict[str, Any]]
