"""In-process topic broker for live dashboard updates.

Best-effort fan-out to currently connected subscribers only: nothing is
persisted or replayed. ``publish`` enqueues synchronously on each
subscriber, so messages on one topic reach a subscriber in publish order.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from shared.logging import get_logger

log = get_logger(__name__)


class Subscriber(Protocol):
    def deliver(self, topic: str, message: Any) -> None: ...


class QueueSubscriber:
    """Subscriber backed by a bounded queue, drained by the connection's sender."""

    def __init__(self, maxsize: int = 256, name: str = "") -> None:
        self.queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.name = name
        self.dropped = 0

    def deliver(self, topic: str, message: Any) -> None:
        try:
            self.queue.put_nowait((topic, message))
        except asyncio.QueueFull:
            self.dropped += 1
            log.warning(
                "subscriber_queue_full",
                subscriber=self.name,
                topic=topic,
                dropped=self.dropped,
            )


class TopicBroker:
    def __init__(self) -> None:
        self._topics: dict[str, set[Subscriber]] = {}

    def subscribe(self, subscriber: Subscriber, topic: str) -> None:
        self._topics.setdefault(topic, set()).add(subscriber)

    def unsubscribe(self, subscriber: Subscriber, topic: str | None = None) -> None:
        """Leave *topic*, or every topic when none is given."""
        topics = [topic] if topic is not None else list(self._topics)
        for name in topics:
            members = self._topics.get(name)
            if not members:
                continue
            members.discard(subscriber)
            if not members:
                del self._topics[name]

    def publish(self, topic: str, message: Any) -> int:
        """Deliver *message* to every subscriber of *topic*; return the count."""
        members = self._topics.get(topic)
        if not members:
            return 0
        delivered = 0
        for subscriber in list(members):
            try:
                subscriber.deliver(topic, message)
                delivered += 1
            except Exception as e:
                log.error(
                    "subscriber_delivery_failed",
                    topic=topic,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))
