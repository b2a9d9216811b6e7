"""
Link document model.

Maps to the ``links`` collection, keyed by short code. A link is written
once on shorten and never mutated afterwards; it is only ever deleted
(together with its analytics record).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from schemas.models.base import DocumentModel


class UtmParams(DocumentModel):
    """UTM fields parsed from the final target URL (empty string when absent)."""

    source: str = ""
    medium: str = ""
    campaign: str = ""
    term: str = ""
    content: str = ""


class LinkDoc(DocumentModel):
    """Document model for the ``links`` collection."""

    short_code: str
    original_url: str
    short_url: str
    user_id: str
    user_email: str = ""
    created_at: datetime
    utm_params: UtmParams = Field(default_factory=UtmParams)
    is_custom: bool = False
