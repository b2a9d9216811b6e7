"""
Request DTOs for link shortening.

ShortenRequest  POST /api/shorten (JSON body)

Field names are camelCase on the wire (``utmParams``, ``customShortCode``)
to match the existing dashboard client; snake_case names are accepted too.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UtmParamsIn(BaseModel):
    """UTM parameters to merge into the target URL; empty values are ignored."""

    model_config = ConfigDict(populate_by_name=True)

    source: Optional[str] = None
    medium: Optional[str] = None
    campaign: Optional[str] = None
    term: Optional[str] = None
    content: Optional[str] = None

    def as_dict(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


class ShortenRequest(BaseModel):
    """Request body for creating a new short link.

    ``custom_short_code`` is validated by the link registry (length and
    charset) so the caller gets the specific 400 message.
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str = ""
    utm_params: Optional[UtmParamsIn] = Field(default=None, alias="utmParams")
    custom_short_code: Optional[str] = Field(default=None, alias="customShortCode")

    @field_validator("url", mode="before")
    @classmethod
    def _strip_url(cls, v):
        return v.strip() if isinstance(v, str) else v

