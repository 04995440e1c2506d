"""Tests for the fail-closed gatekeeper gate."""

import asyncio

import httpx
import pytest

from hookgate.dispatch.gatekeeper import GatekeeperGate
from hookgate.dispatch.metrics import MetricsCollector
from hookgate.models.subscription import Subscription


class _StaticReader:
    """Registry stand-in that filters like ``SubscriptionReader``."""

    def __init__(self, subscriptions=None, error: Exception | None = None):
        self.subscriptions = list(subscriptions or [])
        self.error = error

    async def list_active(self, global_only: bool = False):
        if self.error:
            raise self.error
        return [
            sub for sub in self.subscriptions
            if sub.active and (not global_only or sub.table_name is None)
        ]


def _gatekeeper(sub_id: int, url: str, **overrides) -> Subscription:
    fields = {"id": sub_id, "url": url, "events": ["GATEKEEPER"], "active": True}
    fields.update(overrides)
    return Subscription(**fields)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def _ok(request):
    return httpx.Response(200)


class TestGateSelection:
    @pytest.mark.asyncio
    async def test_no_gatekeepers_allows(self):
        async def handler(request):
            raise AssertionError("no gatekeeper call expected")

        async with _client(handler) as client:
            decision = await GatekeeperGate(_StaticReader(), client).evaluate(b"{}")
        assert decision.allowed is True
        assert decision.checked == 0

    @pytest.mark.asyncio
    async def test_table_scoped_and_untagged_subscriptions_are_not_gatekeepers(self):
        reader = _StaticReader([
            _gatekeeper(1, "http://scoped.test/", table_name="orders"),
            _gatekeeper(2, "http://untagged.test/", events=["INSERT"]),
            _gatekeeper(3, "http://inactive.test/", active=False),
        ])
        async with _client(_ok) as client:
            assert await GatekeeperGate(reader, client).gatekeepers() == []

    @pytest.mark.asyncio
    async def test_custom_event_tag(self):
        reader = _StaticReader([_gatekeeper(1, "http://a.test/", events=["GUARD"])])
        async with _client(_ok) as client:
            gate = GatekeeperGate(reader, client, event_tag="GUARD")
            assert [s.id for s in await gate.gatekeepers()] == [1]


class TestGateDecisions:
    @pytest.mark.asyncio
    async def test_all_approve(self):
        reader = _StaticReader([_gatekeeper(1, "http://a.test/"), _gatekeeper(2, "http://b.test/")])
        metrics = MetricsCollector()
        async with _client(_ok) as client:
            decision = await GatekeeperGate(reader, client, metrics=metrics).evaluate(b"{}")
        assert decision.allowed is True
        assert decision.checked == 2
        assert metrics.get("gate_allowed_total") == 1

    @pytest.mark.asyncio
    async def test_non_2xx_blocks(self):
        async def handler(request):
            return httpx.Response(403 if request.url.host == "deny.test" else 200)

        reader = _StaticReader([_gatekeeper(1, "http://ok.test/"), _gatekeeper(2, "http://deny.test/")])
        metrics = MetricsCollector()
        async with _client(handler) as client:
            decision = await GatekeeperGate(reader, client, metrics=metrics).evaluate(b"{}")

        assert decision.blocked is True
        assert decision.target == "http://deny.test/"
        assert decision.reason == "HTTP 403"
        assert decision.details == "Blocked by http://deny.test/: HTTP 403"
        assert metrics.get("gate_blocked_total") == 1

    @pytest.mark.asyncio
    async def test_transport_error_blocks(self):
        async def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        reader = _StaticReader([_gatekeeper(1, "http://down.test/")])
        async with _client(handler) as client:
            decision = await GatekeeperGate(reader, client).evaluate(b"{}")
        assert decision.blocked is True
        assert "ConnectError" in decision.reason

    @pytest.mark.asyncio
    async def test_timeout_blocks(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        reader = _StaticReader([_gatekeeper(1, "http://slow.test/")])
        async with _client(handler) as client:
            decision = await asyncio.wait_for(
                GatekeeperGate(reader, client, timeout=0.1).evaluate(b"{}"), timeout=2
            )
        assert decision.blocked is True
        assert "timed out" in decision.reason

    @pytest.mark.asyncio
    async def test_registry_failure_blocks(self):
        reader = _StaticReader(error=RuntimeError("db unavailable"))
        async with _client(_ok) as client:
            decision = await GatekeeperGate(reader, client).evaluate(b"{}")
        assert decision.blocked is True
        assert decision.target is None
        assert "db unavailable" in decision.details

    @pytest.mark.asyncio
    async def test_disabling_the_failing_gatekeeper_reopens_the_gate(self):
        async def handler(request):
            return httpx.Response(500)

        failing = _gatekeeper(1, "http://deny.test/")
        reader = _StaticReader([failing])
        async with _client(handler) as client:
            gate = GatekeeperGate(reader, client)
            assert (await gate.evaluate(b"{}")).blocked is True
            failing.active = False
            assert (await gate.evaluate(b"{}")).allowed is True


class TestGateCalls:
    @pytest.mark.asyncio
    async def test_body_and_content_type_forwarded_verbatim(self):
        seen = []

        async def handler(request: httpx.Request):
            seen.append((request.method, request.content, request.headers.get("content-type")))
            return httpx.Response(200)

        body = b'{"email": "a@b.c",  "password": "x"}'
        reader = _StaticReader([_gatekeeper(1, "http://a.test/")])
        async with _client(handler) as client:
            await GatekeeperGate(reader, client).evaluate(body, "application/json; charset=utf-8")

        assert seen == [("POST", body, "application/json; charset=utf-8")]

    @pytest.mark.asyncio
    async def test_first_failure_cancels_pending_calls(self):
        cancelled = asyncio.Event()

        async def handler(request: httpx.Request):
            if request.url.host == "deny.test":
                return httpx.Response(500)
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return httpx.Response(200)

        reader = _StaticReader([_gatekeeper(1, "http://slow.test/"), _gatekeeper(2, "http://deny.test/")])
        async with _client(handler) as client:
            decision = await asyncio.wait_for(
                GatekeeperGate(reader, client, timeout=10).evaluate(b"{}"), timeout=2
            )

        assert decision.blocked is True
        assert decision.target == "http://deny.test/"
        assert cancelled.is_set()
