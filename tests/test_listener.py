"""Tests for the change listener: per-notification routing and the LISTEN loop."""

import asyncio
import json

import pytest

from hookgate.dispatch.listener import ChangeListener
from hookgate.dispatch.metrics import MetricsCollector
from hookgate.dispatch.registry import SubscriptionReader
from hookgate.models.subscription import Subscription
from hookgate.schemas.subscriptions import SubscriptionCreate, SubscriptionUpdate
from hookgate.services import subscriptions as subscription_service


class FakeConnection:
    """Minimal asyncpg connection: listener callbacks plus close()."""

    def __init__(self):
        self.listeners = {}
        self.termination_listeners = []
        self.closed = False

    async def add_listener(self, channel, callback):
        self.listeners[channel] = callback

    def add_termination_listener(self, callback):
        self.termination_listeners.append(callback)

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True

    def notify(self, channel, payload):
        self.listeners[channel](self, 1234, channel, payload)

    def terminate(self):
        self.closed = True
        for callback in self.termination_listeners:
            callback(self)


class RecordingDispatcher:
    def __init__(self):
        self.calls = []
        self.dispatched = asyncio.Event()

    async def dispatch(self, event, subscriptions):
        self.calls.append((event, [s.id for s in subscriptions]))
        self.dispatched.set()
        return []


class StaticReader:
    def __init__(self, subscriptions=None, error=None):
        self.subscriptions = subscriptions or []
        self.error = error

    async def list_active(self, global_only=False):
        if self.error:
            raise self.error
        return [s for s in self.subscriptions if s.active]


def _sub(sub_id, **overrides):
    fields = {"id": sub_id, "url": f"http://t{sub_id}.test/", "events": ["INSERT"], "active": True}
    fields.update(overrides)
    return Subscription(**fields)


def _notification(operation="INSERT", table="orders", **extra):
    return json.dumps({"operation": operation, "table": table, "data": {"id": 1}, **extra})


def _listener(reader, dispatcher, **kwargs):
    return ChangeListener(
        dsn="postgresql://unused",
        channel="table_changes",
        reader=reader,
        dispatcher=dispatcher,
        **kwargs,
    )


async def _wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestHandleNotification:
    @pytest.mark.asyncio
    async def test_matched_subscriptions_are_dispatched(self):
        dispatcher = RecordingDispatcher()
        reader = StaticReader([_sub(1), _sub(2, table_name="users"), _sub(3, events=["DELETE"])])
        metrics = MetricsCollector()
        listener = _listener(reader, dispatcher, metrics=metrics)

        await listener.handle_notification(_notification())

        assert len(dispatcher.calls) == 1
        event, ids = dispatcher.calls[0]
        assert event.table == "orders"
        assert ids == [1]
        assert metrics.get("notifications_received_total") == 1

    @pytest.mark.asyncio
    async def test_no_match_skips_dispatch(self):
        dispatcher = RecordingDispatcher()
        listener = _listener(StaticReader([_sub(1, events=["UPDATE"])]), dispatcher)
        assert await listener.handle_notification(_notification()) == []
        assert dispatcher.calls == []

    @pytest.mark.asyncio
    async def test_malformed_notification_is_dropped(self):
        dispatcher = RecordingDispatcher()
        metrics = MetricsCollector()
        listener = _listener(StaticReader([_sub(1)]), dispatcher, metrics=metrics)

        assert await listener.handle_notification("{not json") == []
        assert dispatcher.calls == []
        assert metrics.get("notifications_dropped_total") == 1

    @pytest.mark.asyncio
    async def test_registry_failure_drops_event(self):
        dispatcher = RecordingDispatcher()
        listener = _listener(StaticReader(error=RuntimeError("db down")), dispatcher)
        assert await listener.handle_notification(_notification()) == []
        assert dispatcher.calls == []

    @pytest.mark.asyncio
    async def test_toggle_is_visible_to_next_event(self, session_factory):
        async with session_factory() as session:
            sub = await subscription_service.create_subscription(
                SubscriptionCreate(url="http://a.test/", events=["INSERT"]), session
            )

        dispatcher = RecordingDispatcher()
        listener = _listener(SubscriptionReader(session_factory), dispatcher)

        await listener.handle_notification(_notification())
        assert dispatcher.calls[-1][1] == [sub.id]

        async with session_factory() as session:
            await subscription_service.update_subscription(
                sub.id, SubscriptionUpdate(active=False), session
            )
        await listener.handle_notification(_notification())
        assert len(dispatcher.calls) == 1

        async with session_factory() as session:
            await subscription_service.update_subscription(
                sub.id, SubscriptionUpdate(active=True), session
            )
        await listener.handle_notification(_notification())
        assert len(dispatcher.calls) == 2


class TestListenLoop:
    @pytest.mark.asyncio
    async def test_notifications_flow_through_the_connection(self):
        conn = FakeConnection()

        async def connect():
            return conn

        dispatcher = RecordingDispatcher()
        listener = _listener(StaticReader([_sub(1)]), dispatcher, connect=connect)
        await listener.start()
        try:
            await _wait_for(lambda: listener.connected)
            assert "table_changes" in conn.listeners

            conn.notify("table_changes", "garbage")
            conn.notify("table_changes", _notification())
            await asyncio.wait_for(dispatcher.dispatched.wait(), timeout=2)
            assert len(dispatcher.calls) == 1
        finally:
            await listener.stop()

        assert conn.closed is True
        assert listener.connected is False

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_listening(self):
        conn = FakeConnection()

        async def connect():
            return conn

        class FlakyDispatcher(RecordingDispatcher):
            async def dispatch(self, event, subscriptions):
                if not self.calls:
                    self.calls.append(None)
                    raise RuntimeError("boom")
                return await super().dispatch(event, subscriptions)

        dispatcher = FlakyDispatcher()
        listener = _listener(StaticReader([_sub(1)]), dispatcher, connect=connect)
        await listener.start()
        try:
            await _wait_for(lambda: listener.connected)
            conn.notify("table_changes", _notification())
            conn.notify("table_changes", _notification())
            await asyncio.wait_for(dispatcher.dispatched.wait(), timeout=2)
            assert listener.reconnect_count == 0
        finally:
            await listener.stop()

    @pytest.mark.asyncio
    async def test_reconnects_after_termination(self):
        connections = []

        async def connect():
            conn = FakeConnection()
            connections.append(conn)
            return conn

        metrics = MetricsCollector()
        listener = _listener(
            StaticReader(), RecordingDispatcher(), metrics=metrics,
            connect=connect, reconnect_base=0.01, reconnect_max=0.05,
        )
        await listener.start()
        try:
            await _wait_for(lambda: listener.connected)
            connections[0].terminate()
            await _wait_for(lambda: len(connections) == 2 and listener.connected)
            assert listener.reconnect_count == 1
            assert metrics.get("listener_reconnects_total") == 1
            assert metrics.get("listener_connected") == 1
        finally:
            await listener.stop()

    @pytest.mark.asyncio
    async def test_retries_failed_connects_with_backoff(self):
        attempts = []

        async def connect():
            attempts.append(asyncio.get_running_loop().time())
            if len(attempts) < 3:
                raise OSError("connection refused")
            return FakeConnection()

        listener = _listener(
            StaticReader(), RecordingDispatcher(),
            connect=connect, reconnect_base=0.01, reconnect_max=1.0,
        )
        await listener.start()
        try:
            await _wait_for(lambda: listener.connected)
            assert len(attempts) == 3
            assert listener.reconnect_count == 2
        finally:
            await listener.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        listener = _listener(StaticReader(), RecordingDispatcher())
        await listener.stop()
        assert listener.running is False
