"""
Gatekeeper gate: synchronous, fail-closed validation in front of protected
endpoints.

Gatekeepers are active subscriptions with no table scope whose event set
carries the gatekeeper tag. On every guarded call:

- no gatekeepers registered -> allowed
- otherwise the raw request body is POSTed to every gatekeeper at once,
  each call bounded by a fixed timeout
- the first failure (non-2xx, timeout, transport error) blocks the call;
  remaining calls are cancelled and awaited before the decision is returned
- allowed only when every call answered 2xx
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from fastapi import Depends, Request

from hookgate.models.subscription import Subscription

from .metrics import MetricsCollector
from .registry import SubscriptionReader

log = structlog.get_logger()

GATEKEEPER_EVENT = "GATEKEEPER"
DEFAULT_GATE_TIMEOUT = 3.0


class GatekeeperRejection(Exception):
    """A single gatekeeper did not approve the request."""

    def __init__(self, target: str, reason: str):
        super().__init__(f"Blocked by {target}: {reason}")
        self.target = target
        self.reason = reason


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    checked: int = 0
    target: Optional[str] = None
    reason: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return not self.allowed

    @property
    def details(self) -> str:
        if self.allowed:
            return ""
        if self.target:
            return f"Blocked by {self.target}: {self.reason}"
        return self.reason or "blocked"


class GatekeeperBlocked(Exception):
    """Raised by the FastAPI dependency when the gate blocks a request."""

    def __init__(self, decision: GateDecision):
        super().__init__(decision.details)
        self.decision = decision


class GatekeeperGate:
    """Evaluates gatekeeper subscriptions for one guarded call at a time."""

    def __init__(
        self,
        reader: SubscriptionReader,
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_GATE_TIMEOUT,
        event_tag: str = GATEKEEPER_EVENT,
        metrics: MetricsCollector | None = None,
    ):
        self._reader = reader
        self._client = client
        self._timeout = timeout
        self._event_tag = event_tag
        self._metrics = metrics

    async def gatekeepers(self) -> list[Subscription]:
        """Current gatekeeper-class subscriptions, read fresh."""
        candidates = await self._reader.list_active(global_only=True)
        return [sub for sub in candidates if self._event_tag in sub.events]

    async def evaluate(self, body: bytes, content_type: str | None = None) -> GateDecision:
        """Decide whether a guarded call with ``body`` may proceed."""
        try:
            gatekeepers = await self.gatekeepers()
        except Exception as exc:
            log.error("gatekeeper.registry_error", error=str(exc))
            return self._blocked(GateDecision(
                allowed=False, reason=f"gatekeeper registry unavailable: {exc}"
            ))

        if not gatekeepers:
            return self._allowed(GateDecision(allowed=True))

        log.info("gatekeeper.checking", gatekeepers=len(gatekeepers))
        headers = {"Content-Type": content_type or "application/json"}
        tasks = [
            asyncio.create_task(self._validate(sub, body, headers))
            for sub in gatekeepers
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in tasks:
            if task.cancelled():
                continue
            exc = task.exception()
            if isinstance(exc, GatekeeperRejection):
                return self._blocked(GateDecision(
                    allowed=False,
                    checked=len(gatekeepers),
                    target=exc.target,
                    reason=exc.reason,
                ))
            if exc is not None:
                return self._blocked(GateDecision(
                    allowed=False, checked=len(gatekeepers), reason=str(exc)
                ))

        return self._allowed(GateDecision(allowed=True, checked=len(gatekeepers)))

    async def _validate(
        self, subscription: Subscription, body: bytes, headers: dict[str, str]
    ) -> None:
        try:
            resp = await asyncio.wait_for(
                self._client.post(
                    subscription.url, content=body, headers=headers, timeout=self._timeout
                ),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise GatekeeperRejection(subscription.url, f"timed out after {self._timeout}s")
        except Exception as exc:
            raise GatekeeperRejection(subscription.url, f"{type(exc).__name__}: {exc}")

        if not resp.is_success:
            raise GatekeeperRejection(subscription.url, f"HTTP {resp.status_code}")

    def _allowed(self, decision: GateDecision) -> GateDecision:
        if self._metrics:
            self._metrics.inc("gate_allowed_total")
        if decision.checked:
            log.info("gatekeeper.allowed", gatekeepers=decision.checked)
        return decision

    def _blocked(self, decision: GateDecision) -> GateDecision:
        if self._metrics:
            self._metrics.inc("gate_blocked_total")
        log.warning(
            "gatekeeper.blocked",
            target=decision.target,
            reason=decision.reason,
            gatekeepers=decision.checked,
        )
        return decision


def get_gate(request: Request) -> GatekeeperGate:
    """FastAPI dependency: the application's gate."""
    return request.app.state.gate


async def require_gatekeeper_clearance(
    request: Request,
    gate: GatekeeperGate = Depends(get_gate),
) -> GateDecision:
    """Guard dependency: blocks the endpoint unless every gatekeeper approves."""
    body = await request.body()
    decision = await gate.evaluate(body, request.headers.get("content-type"))
    if decision.blocked:
        raise GatekeeperBlocked(decision)
    return decision
