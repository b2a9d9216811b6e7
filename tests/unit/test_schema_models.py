"""Unit tests for stored document models."""

from datetime import datetime, timezone

import pytest

from schemas.models.analytics import (
    AnalyticsDoc,
    ClickEvent,
    ClickLocation,
    new_analytics_document,
)
from schemas.models.base import DocumentModel
from schemas.models.link import LinkDoc, UtmParams


# ── Helpers ───────────────────────────────────────────────────────────────────


def now():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# ── DocumentModel ─────────────────────────────────────────────────────────────


class TestDocumentModel:
    def test_from_document_returns_none_for_none(self):
        assert DocumentModel.from_document(None) is None
        assert LinkDoc.from_document(None) is None

    def test_extra_fields_ignored(self):
        doc = UtmParams.from_document({"source": "x", "_id": "abc"})
        assert doc.source == "x"
        assert "_id" not in doc.model_dump()


# ── LinkDoc ───────────────────────────────────────────────────────────────────


class TestLinkDoc:
    def _doc(self, **overrides):
        data = {
            "shortCode": "abc1234",
            "originalUrl": "https://example.com/",
            "shortUrl": "https://l.test/abc1234",
            "userId": "alice",
            "createdAt": "2024-05-01T12:00:00Z",
        }
        data.update(overrides)
        return data

    def test_from_camel_case_document(self):
        link = LinkDoc.from_document(self._doc())
        assert link.short_code == "abc1234"
        assert link.created_at == now()
        assert link.user_email == ""
        assert link.is_custom is False
        assert link.utm_params == UtmParams()

    def test_populate_by_snake_case_name(self):
        link = LinkDoc(
            short_code="abc",
            original_url="https://example.com/",
            short_url="https://l.test/abc",
            user_id="alice",
            created_at=now(),
            is_custom=True,
        )
        assert link.is_custom is True

    def test_to_document_uses_camel_case_and_json_types(self):
        doc = LinkDoc.from_document(self._doc(utmParams={"source": "news"})).to_document()
        assert set(doc) == {
            "shortCode",
            "originalUrl",
            "shortUrl",
            "userId",
            "userEmail",
            "createdAt",
            "utmParams",
            "isCustom",
        }
        assert isinstance(doc["createdAt"], str)
        assert doc["utmParams"]["source"] == "news"
        assert doc["utmParams"]["medium"] == ""


# ── Analytics ─────────────────────────────────────────────────────────────────


class TestClickLocation:
    def test_defaults(self):
        loc = ClickLocation()
        assert (loc.country, loc.city, loc.region) == ("Unknown", "Unknown", "Unknown")
        assert loc.country_code == "XX"
        assert loc.to_document()["countryCode"] == "XX"


class TestClickEvent:
    def test_round_trip_keys(self):
        event = ClickEvent(
            timestamp=now(),
            device="Mobile",
            browser="Safari",
            referrer="WhatsApp",
            user_agent="Mozilla/5.0 (iPhone)",
        )
        doc = event.to_document()
        assert doc["userAgent"] == "Mozilla/5.0 (iPhone)"
        assert doc["isShared"] is False
        assert doc["location"]["latitude"] == 0.0

    def test_missing_required_field_raises(self):
        with pytest.raises(ValueError):
            ClickEvent.from_document({"device": "Mobile"})


class TestAnalyticsDoc:
    def test_new_analytics_document_is_zeroed(self):
        doc = new_analytics_document()
        assert doc == {
            "impressions": 0,
            "clicks": 0,
            "shares": 0,
            "devices": {},
            "browsers": {},
            "referrers": {},
            "clickHistory": [],
        }

    def test_independent_default_maps(self):
        a, b = AnalyticsDoc(), AnalyticsDoc()
        a.devices["Mobile"] = 1
        assert b.devices == {}

    def test_parses_history(self):
        doc = AnalyticsDoc.from_document(
            {
                "clicks": 1,
                "impressions": 1,
                "clickHistory": [
                    {
                        "timestamp": "2024-05-01T12:00:00Z",
                        "device": "Desktop",
                        "browser": "Chrome",
                        "referrer": "Google",
                        "userAgent": "ua",
                    }
                ],
            }
        )
        assert doc.click_history[0].timestamp == now()
        assert doc.click_history[0].location.city == "Unknown"
