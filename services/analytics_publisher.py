"""Pushes analytics updates to live dashboard subscribers.

Per-link updates go to ``analytics:<code>`` as ``{"type", "data"}``; global
rollups go to the global topic as ``{"stats": ...}``. Publishing is
best-effort: every failure is logged and swallowed, never raised into the
request that triggered it.

Global recomputes are coalesced: at most one runs at a time, and any number
of clicks arriving while it runs schedule exactly one follow-up.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from infrastructure.realtime.broker import TopicBroker
from services.global_rollup import GlobalRollup
from shared.logging import get_logger, should_sample

log = get_logger(__name__)

GLOBAL_TOPIC = "global-analytics"


def link_topic(short_code: str) -> str:
    return f"analytics:{short_code}"


class AnalyticsPublisher:
    def __init__(self, broker: TopicBroker, rollup: GlobalRollup) -> None:
        self._broker = broker
        self._rollup = rollup
        self._task: Optional[asyncio.Task] = None
        self._dirty = False

    def publish_link_update(self, short_code: str, kind: str, record: dict) -> None:
        try:
            delivered = self._broker.publish(
                link_topic(short_code), {"type": kind, "data": record}
            )
        except Exception as e:
            log.error(
                "realtime_publish_failed",
                topic=link_topic(short_code),
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        if should_sample("realtime_publish"):
            log.debug(
                "realtime_published",
                short_code=short_code,
                kind=kind,
                subscribers=delivered,
            )

    def schedule_global_refresh(self) -> None:
        """Recompute and publish the global rollup in the background."""
        self._dirty = True
        if self._task is None or self._task.done():
            try:
                self._task = asyncio.get_running_loop().create_task(self._run_refresh())
            except RuntimeError as e:
                log.error("global_refresh_schedule_failed", error=str(e))

    async def _run_refresh(self) -> None:
        while self._dirty:
            self._dirty = False
            if not self._broker.subscriber_count(GLOBAL_TOPIC):
                continue
            try:
                stats = await self._rollup.compute()
                self._broker.publish(GLOBAL_TOPIC, {"stats": stats})
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(
                    "global_refresh_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def flush(self) -> None:
        """Wait for the pending background refresh, if any."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def aclose(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
