"""
Outbound delivery of matched change events.

One POST per matched subscription, all launched concurrently. Each
delivery owns its own error handling: a slow, failing or unreachable
target only affects its own outcome. Nothing is retried and nothing is
raised back to the listener.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from hookgate.models.subscription import Subscription
from hookgate.schemas.events import ChangeEvent

from .metrics import MetricsCollector
from .sinks import DeliveryOutcome, DeliverySink

log = structlog.get_logger()

DEFAULT_DELIVERY_TIMEOUT = 10.0


def build_delivery_payload(event: ChangeEvent, subscription: Subscription) -> dict[str, Any]:
    """Normalized envelope POSTed to every target."""
    return {
        "event": event.operation,
        "table": event.table,
        "column_check": subscription.target_column or "ALL",
        "data": event.new_data,
        "old_data": event.old_data,
        "timestamp": event.timestamp.isoformat(),
    }


class Dispatcher:
    """Fans a change event out to its matched subscriptions."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_DELIVERY_TIMEOUT,
        sink: DeliverySink | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._client = client
        self._timeout = timeout
        self._sink = sink
        self._metrics = metrics

    async def dispatch(
        self, event: ChangeEvent, subscriptions: Sequence[Subscription]
    ) -> list[DeliveryOutcome]:
        """Deliver ``event`` to every subscription; returns one outcome each."""
        if not subscriptions:
            return []
        outcomes = await asyncio.gather(
            *(self._deliver(event, sub) for sub in subscriptions)
        )
        failed = sum(1 for o in outcomes if not o.success)
        log.info(
            "dispatcher.event_dispatched",
            operation=event.operation,
            table=event.table,
            targets=len(outcomes),
            failed=failed,
        )
        return list(outcomes)

    async def _deliver(self, event: ChangeEvent, subscription: Subscription) -> DeliveryOutcome:
        payload = build_delivery_payload(event, subscription)
        started = time.monotonic()
        status_code: int | None = None
        error: str | None = None

        try:
            resp = await asyncio.wait_for(
                self._client.post(subscription.url, json=payload, timeout=self._timeout),
                timeout=self._timeout,
            )
            status_code = resp.status_code
            if not resp.is_success:
                error = f"HTTP {resp.status_code}"
        except (asyncio.TimeoutError, httpx.TimeoutException):
            error = f"timed out after {self._timeout}s"
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"

        outcome = DeliveryOutcome(
            subscription_id=subscription.id,
            target=subscription.url,
            event=event.operation,
            table=event.table,
            success=error is None,
            status_code=status_code,
            error=error,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
        )
        if self._metrics:
            self._metrics.observe("delivery_duration_seconds", outcome.duration_ms / 1000)

        if outcome.success:
            log.info(
                "dispatcher.delivered",
                subscription_id=subscription.id,
                target=subscription.url,
                status=status_code,
            )
            if self._metrics:
                self._metrics.inc("deliveries_sent_total")
        else:
            log.warning(
                "dispatcher.delivery_failed",
                subscription_id=subscription.id,
                target=subscription.url,
                status=status_code,
                error=error,
            )
            if self._metrics:
                self._metrics.inc("deliveries_failed_total")

        await self._report(outcome)
        return outcome

    async def _report(self, outcome: DeliveryOutcome) -> None:
        if self._sink is None:
            return
        try:
            await self._sink.record(outcome)
        except Exception as exc:
            log.warning("dispatcher.sink_error", target=outcome.target, error=str(exc))
