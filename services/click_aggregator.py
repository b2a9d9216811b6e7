"""
Click aggregator: merges visits into per-link analytics records.

Every click is one atomic store update: counter increments on dotted paths
plus one append to ``clickHistory`` (capped to the newest N events). The
caller never reads, modifies and writes back the record, so concurrent
clicks on the same code cannot lose an increment. A click always counts as
an impression too, which keeps ``impressions >= clicks``.

Geographic and temporal breakdowns are derived on read by folding the
retained click history.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from errors import NotFoundError, ValidationError
from infrastructure.storage.gateway import StorageGateway
from infrastructure.storage.protocol import ANALYTICS, LINKS
from schemas.models.analytics import ClickEvent, ClickLocation, new_analytics_document
from services.analytics_publisher import AnalyticsPublisher
from services.global_rollup import UNKNOWN, event_location, fold_events
from shared.datetime_utils import parse_datetime, utc_now
from shared.logging import get_logger, should_sample
from shared.time_bucket_utils import bucket_label, fill_missing_buckets, get_optimal_bucket_config
from shared.visitor import VisitorClassification

log = get_logger(__name__)

USER_AGENT_MAX_LENGTH = 200

_UNSAFE_KEY_CHARS = re.compile(r"[.$\x00-\x1F\x7F-\x9F]")


def counter_key(label: str) -> str:
    """Make a label safe to use as a breakdown-map key in a dotted path."""
    return _UNSAFE_KEY_CHARS.sub("_", label) or UNKNOWN


def geographical_breakdown(click_history: Any) -> dict[str, dict[str, Any]]:
    """Per-country clicks with city, browser and device breakdowns."""
    countries: dict[str, dict[str, Any]] = {}
    for event in click_history if isinstance(click_history, list) else []:
        if not isinstance(event, dict):
            continue
        country, city, _ = event_location(event)
        entry = countries.setdefault(
            country, {"clicks": 0, "cities": {}, "browsers": {}, "devices": {}}
        )
        entry["clicks"] += 1
        entry["cities"][city] = entry["cities"].get(city, 0) + 1
        browser = event.get("browser") or UNKNOWN
        entry["browsers"][browser] = entry["browsers"].get(browser, 0) + 1
        device = event.get("device") or UNKNOWN
        entry["devices"][device] = entry["devices"].get(device, 0) + 1
    return countries


def _oldest_timestamp(click_history: list) -> Optional[datetime]:
    moments = [
        parse_datetime(event.get("timestamp"))
        for event in click_history
        if isinstance(event, dict)
    ]
    return min((m for m in moments if m is not None), default=None)


class ClickAggregator:
    def __init__(
        self,
        gateway: StorageGateway,
        publisher: AnalyticsPublisher,
        history_limit: int = 5000,
    ) -> None:
        self._gateway = gateway
        self._publisher = publisher
        self._history_limit = history_limit

    async def record_impression(self, short_code: str) -> dict:
        """Count one impression and publish the refreshed record.

        Raises NotFoundError when the code is unknown.
        """
        if not await self._gateway.exists(LINKS, short_code):
            raise NotFoundError("Link not found")

        record = await self._gateway.update(
            ANALYTICS,
            short_code,
            increments={"impressions": 1},
            upsert_document=new_analytics_document(),
        )
        if record is None:
            raise NotFoundError("Link not found")

        if should_sample("impression"):
            log.info("impression_recorded", short_code=short_code)
        self._publisher.publish_link_update(short_code, "impression", record)
        return record

    async def record_click(
        self,
        short_code: str,
        classification: VisitorClassification,
        location: Optional[ClickLocation] = None,
        user_agent: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """Record a click and return the target URL to redirect to.

        Raises NotFoundError when the code is unknown.
        """
        link = await self._gateway.get(LINKS, short_code)
        if link is None:
            raise NotFoundError("Link not found")

        event = ClickEvent(
            timestamp=timestamp or utc_now(),
            device=classification.device,
            browser=classification.browser,
            referrer=classification.referrer,
            user_agent=(user_agent or UNKNOWN)[:USER_AGENT_MAX_LENGTH],
            is_shared=classification.is_shared,
            location=location or ClickLocation(),
        )
        increments = {
            "impressions": 1,
            "clicks": 1,
            f"devices.{counter_key(classification.device)}": 1,
            f"browsers.{counter_key(classification.browser)}": 1,
            f"referrers.{counter_key(classification.referrer)}": 1,
        }
        if classification.is_shared:
            increments["shares"] = 1

        record = await self._gateway.update(
            ANALYTICS,
            short_code,
            increments=increments,
            append={"clickHistory": event.to_document()},
            append_limit=self._history_limit,
            upsert_document=new_analytics_document(),
        )

        if record is None:
            log.warning("analytics_record_missing", short_code=short_code)
        else:
            if should_sample("url_redirect"):
                log.info(
                    "click_recorded",
                    short_code=short_code,
                    device=classification.device,
                    browser=classification.browser,
                    referrer=classification.referrer,
                    is_shared=classification.is_shared,
                )
            self._publisher.publish_link_update(short_code, "click", record)
            self._publisher.schedule_global_refresh()

        return link["originalUrl"]

    async def get_analytics(self, short_code: str) -> dict[str, Any]:
        """Return ``{link, analytics}`` with a derived ``geographicalData`` map."""
        link = await self._gateway.get(LINKS, short_code)
        record = await self._gateway.get(ANALYTICS, short_code) if link else None
        if link is None or record is None:
            raise NotFoundError("Link not found")

        return {
            "link": link,
            "analytics": {
                **record,
                "geographicalData": geographical_breakdown(record.get("clickHistory")),
            },
        }

    async def get_geo_stats(
        self,
        short_code: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Per-link geographic rollup of clicks within ``[start, end]``."""
        if start is not None and end is not None and start > end:
            raise ValidationError("startDate must be before endDate", field="startDate")

        record = await self._gateway.get(ANALYTICS, short_code)
        if record is None:
            raise NotFoundError("Analytics not found")

        history = record.get("clickHistory")
        history = history if isinstance(history, list) else []
        stats = fold_events(history, since=start, until=end, track_timeline=True)
        stats["clicksByTime"] = self._clicks_by_time(
            stats["timeRangeClicks"], start, end, oldest=_oldest_timestamp(history)
        )
        return {"shortCode": short_code, "stats": stats}

    @staticmethod
    def _clicks_by_time(
        timeline: list[dict[str, Any]],
        start: Optional[datetime],
        end: Optional[datetime],
        oldest: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        """Zero-filled click series over the requested range.

        The range is clamped to what the record can hold data for: not before
        the oldest retained click and not after now.
        """
        moments = [
            moment
            for moment in (parse_datetime(entry.get("timestamp")) for entry in timeline)
            if moment is not None
        ]
        if not moments:
            return []

        earliest = min(moments) if oldest is None else min(oldest, min(moments))
        latest = max(max(moments), utc_now())
        range_start = max(start, earliest) if start else min(moments)
        range_end = min(end, latest) if end else max(moments)
        config = get_optimal_bucket_config(range_start, range_end)

        counts: dict[str, int] = {}
        for moment in moments:
            label = bucket_label(moment, config)
            counts[label] = counts.get(label, 0) + 1
        return fill_missing_buckets(counts, range_start, range_end, config)
