"""
Analytics document models.

Maps to the ``analytics`` collection, keyed by the same short code as the
link it belongs to. The record is co-created with its link and only ever
changed through atomic field increments and appends to ``clickHistory``.

Invariants kept by the click aggregator:
  impressions >= clicks
  every devices/browsers/referrers increment has exactly one ClickEvent
  appended in the same update
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from schemas.models.base import DocumentModel


class ClickLocation(DocumentModel):
    """Visitor location as reported by the upstream proxy."""

    country: str = "Unknown"
    city: str = "Unknown"
    region: str = "Unknown"
    country_code: str = "XX"
    latitude: float = 0.0
    longitude: float = 0.0


class ClickEvent(DocumentModel):
    """One entry of ``clickHistory``. Immutable once appended."""

    timestamp: datetime
    device: str
    browser: str
    referrer: str
    user_agent: str
    is_shared: bool = False
    location: ClickLocation = Field(default_factory=ClickLocation)


class AnalyticsDoc(DocumentModel):
    """Document model for the ``analytics`` collection."""

    impressions: int = 0
    clicks: int = 0
    shares: int = 0
    devices: dict[str, int] = Field(default_factory=dict)
    browsers: dict[str, int] = Field(default_factory=dict)
    referrers: dict[str, int] = Field(default_factory=dict)
    click_history: list[ClickEvent] = Field(default_factory=list)


def new_analytics_document() -> dict:
    """Return the stored form of an empty analytics record."""
    return AnalyticsDoc().to_document()
