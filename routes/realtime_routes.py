"""
Live dashboard channel.

WS /ws speaks JSON frames ``{"event": ..., "data": ...}``.

Client → server:
    subscribe                   data: short code
    subscribe-global-analytics
    unsubscribe                 data: short code (optional; omitted leaves all)
Server → client:
    analytics:<code>            {"type": "click" | "impression", "data": record}
    analytics-update            {"stats": global rollup}
    subscribed / unsubscribed   {"topic": ...}
    error                       {"message": ...}

Each connection drains its own bounded queue, so a slow client only ever
loses its own messages.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from infrastructure.realtime.broker import QueueSubscriber, TopicBroker
from services.analytics_publisher import GLOBAL_TOPIC, link_topic
from shared.log_context import generate_request_id
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["realtime"])

SUBSCRIBE_ERROR = "Failed to subscribe to analytics"

# Queue marker for frames that are sent as-is (acks and errors)
_REPLY = ""


def _event_name(topic: str) -> str:
    return "analytics-update" if topic == GLOBAL_TOPIC else topic


async def _send_loop(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    while True:
        topic, message = await subscriber.queue.get()
        if topic == _REPLY:
            await websocket.send_json(message)
        else:
            await websocket.send_json({"event": _event_name(topic), "data": message})


def _handle_frame(
    frame: Any, broker: TopicBroker, subscriber: QueueSubscriber
) -> dict[str, Any]:
    """Apply one client frame and return the acknowledgement to send."""
    if not isinstance(frame, dict):
        return {"event": "error", "data": {"message": SUBSCRIBE_ERROR}}

    event = frame.get("event")
    data = frame.get("data")

    if event == "subscribe":
        if not isinstance(data, str) or not data.strip():
            return {"event": "error", "data": {"message": SUBSCRIBE_ERROR}}
        topic = link_topic(data.strip())
        broker.subscribe(subscriber, topic)
        log.info("realtime_subscribed", connection=subscriber.name, topic=topic)
        return {"event": "subscribed", "data": {"topic": topic}}

    if event == "subscribe-global-analytics":
        broker.subscribe(subscriber, GLOBAL_TOPIC)
        log.info("realtime_subscribed", connection=subscriber.name, topic=GLOBAL_TOPIC)
        return {"event": "subscribed", "data": {"topic": GLOBAL_TOPIC}}

    if event == "unsubscribe":
        topic = link_topic(data.strip()) if isinstance(data, str) and data.strip() else None
        broker.unsubscribe(subscriber, topic)
        return {"event": "unsubscribed", "data": {"topic": topic}}

    return {"event": "error", "data": {"message": f"Unknown event: {event}"}}


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket) -> None:
    broker: TopicBroker = websocket.app.state.broker
    settings = websocket.app.state.settings
    await websocket.accept()

    subscriber = QueueSubscriber(
        maxsize=settings.analytics.subscriber_queue_size,
        name=generate_request_id(),
    )
    sender = asyncio.create_task(_send_loop(websocket, subscriber))
    log.info("realtime_connected", connection=subscriber.name)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                frame = None
            # Acks go through the same queue so they stay ordered with updates
            subscriber.deliver(_REPLY, _handle_frame(frame, broker, subscriber))
    except WebSocketDisconnect as e:
        log.info("realtime_disconnected", connection=subscriber.name, code=e.code)
    finally:
        broker.unsubscribe(subscriber)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log.warning(
                "realtime_sender_failed",
                connection=subscriber.name,
                error=str(e),
                error_type=type(e).__name__,
            )
