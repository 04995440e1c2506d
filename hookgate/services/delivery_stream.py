"""
Live SSE relay of delivery outcomes.

Outcomes published by ``RedisDeliverySink`` are forwarded to connected
clients as ``delivery`` events. Nothing is buffered or replayed; a client
only sees deliveries that happen while it is connected. Keepalive pings
are left to ``EventSourceResponse``.
"""

from __future__ import annotations

import json
from typing import AsyncGenerator

import structlog
from fastapi import Request

from hookgate.core.redis import get_redis
from hookgate.dispatch.sinks import DELIVERY_PUBSUB_CHANNEL

log = structlog.get_logger()

HEARTBEAT_INTERVAL = 30  # seconds
POLL_TIMEOUT = 1.0


async def delivery_event_generator(
    request: Request,
    only_failures: bool = False,
) -> AsyncGenerator[dict, None]:
    """Yield one SSE event per published delivery outcome."""
    redis = await get_redis()
    pubsub = redis.pubsub()
    await pubsub.subscribe(DELIVERY_PUBSUB_CHANNEL)

    try:
        while not await request.is_disconnected():
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=POLL_TIMEOUT
            )
            if message is None or message["type"] != "message":
                continue

            try:
                outcome = json.loads(message["data"])
            except (TypeError, json.JSONDecodeError):
                log.warning("delivery_stream.bad_message", data=str(message["data"])[:200])
                continue

            if only_failures and outcome.get("success"):
                continue

            yield {
                "event": "delivery",
                "data": json.dumps(outcome),
            }
    finally:
        await pubsub.unsubscribe(DELIVERY_PUBSUB_CHANNEL)
        await pubsub.aclose()
