"""
Delivery outcome sinks.

The dispatcher reports every outcome to an optional sink out of band.
Outcomes are never stored; ``RedisDeliverySink`` only publishes them for
live consumers (the /deliveries/stream SSE endpoint).
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol

import redis.asyncio as redis

DELIVERY_PUBSUB_CHANNEL = "hookgate:deliveries:pubsub"


@dataclass
class DeliveryOutcome:
    """Result of one outbound delivery attempt."""
    subscription_id: Optional[int]
    target: str
    event: str
    table: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    duration_ms: float = 0.0
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["at"] = self.at.isoformat()
        return data


class DeliverySink(Protocol):
    async def record(self, outcome: DeliveryOutcome) -> None: ...


class RedisDeliverySink:
    """Publish delivery outcomes on Redis Pub/Sub."""

    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[redis.Redis]],
        channel: str = DELIVERY_PUBSUB_CHANNEL,
    ):
        self._redis_factory = redis_factory
        self._channel = channel

    async def record(self, outcome: DeliveryOutcome) -> None:
        client = await self._redis_factory()
        await client.publish(self._channel, json.dumps(outcome.to_dict()))
