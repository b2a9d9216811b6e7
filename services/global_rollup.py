"""Global rollup: cross-link aggregates over a trailing window of clicks.

A full scan of every analytics record's retained click history, folded into
totals and per-country/city/device/browser counts. Nothing is stored
incrementally, so the cost is linear in the stored history; the window is
clamped and the recompute after a click runs in the background (see
AnalyticsPublisher).

``conversions`` is a synthetic estimate: every retained click converts with
a fixed probability. It is flagged ``conversionsAreSimulated`` in the output
and must not be read as measured data.
"""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from infrastructure.storage.gateway import StorageGateway
from infrastructure.storage.protocol import ANALYTICS
from shared.datetime_utils import parse_datetime, utc_now
from shared.logging import get_logger

log = get_logger(__name__)

UNKNOWN = "Unknown"

# Public-safe payload served to anonymous dashboards and while storage is down
DEMO_GLOBAL_STATS: dict[str, Any] = {
    "totalClicks": 6,
    "conversions": 4,
    "countries": {
        "United States": {"clicks": 3, "coordinates": [-95.7129, 37.0902]},
        "India": {"clicks": 2, "coordinates": [78.9629, 20.5937]},
        "United Kingdom": {"clicks": 1, "coordinates": [-3.4359, 55.3781]},
    },
    "cities": {
        "New York": {"clicks": 2, "country": "United States", "coordinates": [-74.0060, 40.7128]},
        "Mumbai": {"clicks": 1, "country": "India", "coordinates": [72.8777, 19.0760]},
        "London": {"clicks": 1, "country": "United Kingdom", "coordinates": [-0.1276, 51.5074]},
    },
    "devices": {"Mobile": 4, "Desktop": 2},
    "browsers": {"Chrome": 3, "Safari": 2, "Firefox": 1},
    "conversionsAreSimulated": True,
    "demo": True,
}


def _label(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return UNKNOWN


def _coordinate(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def event_location(event: dict) -> tuple[str, str, list[float]]:
    """Return (country, city, [lon, lat]) tolerating missing/malformed fields."""
    location = event.get("location")
    if not isinstance(location, dict):
        location = {}
    coordinates = [
        _coordinate(location.get("longitude")),
        _coordinate(location.get("latitude")),
    ]
    return _label(location.get("country")), _label(location.get("city")), coordinates


def fold_events(
    events: Iterable[Any],
    *,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    conversion_rate: float = 0.0,
    track_timeline: bool = False,
) -> dict[str, Any]:
    """Fold click events into aggregate counts.

    Events outside ``[since, until]`` are skipped; when a bound is set an
    event with an unparsable timestamp is skipped too. Country and city
    entries take their coordinates from the first event seen in the bucket.
    Conversions are only estimated when *rng* is given.
    """
    stats: dict[str, Any] = {
        "totalClicks": 0,
        "conversions": 0,
        "countries": {},
        "cities": {},
        "devices": {},
        "browsers": {},
    }
    timeline: list[dict[str, Any]] = []

    for event in events:
        if not isinstance(event, dict):
            continue
        timestamp = parse_datetime(event.get("timestamp"))
        if since is not None or until is not None:
            if timestamp is None:
                continue
            if since is not None and timestamp < since:
                continue
            if until is not None and timestamp > until:
                continue

        stats["totalClicks"] += 1
        if rng is not None and rng.random() < conversion_rate:
            stats["conversions"] += 1

        country, city, coordinates = event_location(event)
        country_entry = stats["countries"].setdefault(
            country, {"clicks": 0, "coordinates": coordinates}
        )
        country_entry["clicks"] += 1
        city_entry = stats["cities"].setdefault(
            city, {"clicks": 0, "country": country, "coordinates": coordinates}
        )
        city_entry["clicks"] += 1

        device = _label(event.get("device"))
        stats["devices"][device] = stats["devices"].get(device, 0) + 1
        browser = _label(event.get("browser"))
        stats["browsers"][browser] = stats["browsers"].get(browser, 0) + 1

        if track_timeline:
            timeline.append({"timestamp": event.get("timestamp"), "country": country})

    if track_timeline:
        stats["timeRangeClicks"] = timeline
    return stats


class GlobalRollup:
    def __init__(
        self,
        gateway: StorageGateway,
        window_days: int = 30,
        max_window_days: int = 365,
        conversion_rate: float = 0.1043,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._gateway = gateway
        self.window_days = window_days
        self.max_window_days = max_window_days
        self.conversion_rate = conversion_rate
        self._rng = rng or random.Random()

    def clamp_window(self, window_days: Optional[int]) -> int:
        days = self.window_days if window_days is None else window_days
        return max(1, min(int(days), self.max_window_days))

    async def compute(
        self,
        window_days: Optional[int] = None,
        *,
        strict: bool = False,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Aggregate every retained click of the trailing window.

        With *strict*, an unavailable primary store raises
        StoreUnavailableError instead of answering from the fallback alone.
        """
        days = self.clamp_window(window_days)
        since = (now or utc_now()) - timedelta(days=days)
        records = await self._gateway.scan(ANALYTICS, strict=strict)

        def history() -> Iterable[Any]:
            for _, record in records:
                click_history = record.get("clickHistory")
                if isinstance(click_history, list):
                    yield from click_history

        stats = fold_events(
            history(),
            since=since,
            rng=self._rng,
            conversion_rate=self.conversion_rate,
        )
        stats["conversionsAreSimulated"] = True
        stats["windowDays"] = days
        log.debug(
            "global_rollup_computed",
            records=len(records),
            total_clicks=stats["totalClicks"],
            window_days=days,
        )
        return stats
