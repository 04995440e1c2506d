"""
Change listener for the Postgres notification channel.

Holds one dedicated LISTEN connection for the process lifetime with:
- Automatic reconnection with exponential backoff
- Sequential handling: each notification is processed to completion
  before the next one is read
- Graceful shutdown support

Malformed notifications and per-event failures are logged and dropped;
they never touch the connection. Losing the connection is a separate
fault that triggers a reconnect.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import asyncpg
import structlog

from .decoder import DecodeError, decode_change_event
from .dispatcher import Dispatcher
from .matcher import match_subscriptions
from .metrics import MetricsCollector
from .registry import SubscriptionReader
from .sinks import DeliveryOutcome

log = structlog.get_logger()

# Reconnection parameters
RECONNECT_BASE_SECONDS = 1.0
RECONNECT_MAX_SECONDS = 60.0
RECONNECT_MULTIPLIER = 2.0

Connector = Callable[[], Awaitable[Any]]

_CONNECTION_LOST = object()


class ListenerConnectionLost(ConnectionError):
    """The LISTEN connection was terminated by the server or network."""


class ChangeListener:
    """
    Persistent subscription to the change-notification channel.

    Routes each notification through decode -> registry snapshot -> match
    -> dispatch.
    """

    def __init__(
        self,
        dsn: str,
        channel: str,
        reader: SubscriptionReader,
        dispatcher: Dispatcher,
        metrics: MetricsCollector | None = None,
        connect: Connector | None = None,
        reconnect_base: float = RECONNECT_BASE_SECONDS,
        reconnect_max: float = RECONNECT_MAX_SECONDS,
    ):
        self._dsn = dsn
        self._channel = channel
        self._reader = reader
        self._dispatcher = dispatcher
        self._metrics = metrics
        self._connect = connect or (lambda: asyncpg.connect(self._dsn))
        self._reconnect_base = reconnect_base
        self._reconnect_max = reconnect_max

        self._running = False
        self._connected = False
        self._established = False
        self._reconnect_count = 0
        self._task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def running(self) -> bool:
        return self._running

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    async def start(self) -> None:
        """Start the listen loop as a background task."""
        if self._task and not self._task.done():
            return
        self._running = True
        self._task = asyncio.create_task(self._listen_loop())

    async def stop(self) -> None:
        """Stop listening and release the connection."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._set_connected(False)
        log.info("change_listener.stopped", channel=self._channel)

    async def handle_notification(self, payload: str) -> list[DeliveryOutcome]:
        """Process one raw notification payload end to end."""
        if self._metrics:
            self._metrics.inc("notifications_received_total")

        try:
            event = decode_change_event(payload)
        except DecodeError as exc:
            if self._metrics:
                self._metrics.inc("notifications_dropped_total")
            log.warning(
                "change_listener.decode_error",
                error=str(exc),
                payload=str(payload)[:200],
            )
            return []

        try:
            subscriptions = await self._reader.list_active()
        except Exception as exc:
            if self._metrics:
                self._metrics.inc("notifications_dropped_total")
            log.error(
                "change_listener.registry_error",
                operation=event.operation,
                table=event.table,
                error=str(exc),
            )
            return []

        matched = match_subscriptions(event, subscriptions)
        log.info(
            "change_listener.event_matched",
            operation=event.operation,
            table=event.table,
            active=len(subscriptions),
            matched=len(matched),
        )
        if not matched:
            return []
        return await self._dispatcher.dispatch(event, matched)

    def _set_connected(self, value: bool) -> None:
        self._connected = value
        if self._metrics:
            self._metrics.set_gauge("listener_connected", 1 if value else 0)

    async def _listen_loop(self) -> None:
        backoff = self._reconnect_base

        while self._running:
            try:
                await self._connect_and_listen()
                backoff = self._reconnect_base
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if self._established:
                    # Backoff only grows across consecutive failed connects.
                    backoff = self._reconnect_base
                log.warning(
                    "change_listener.connection_lost",
                    channel=self._channel,
                    error=str(exc),
                    backoff=backoff,
                )
            finally:
                self._set_connected(False)

            if not self._running:
                break

            self._reconnect_count += 1
            if self._metrics:
                self._metrics.inc("listener_reconnects_total")
            log.info(
                "change_listener.reconnecting",
                channel=self._channel,
                backoff=backoff,
                attempt=self._reconnect_count,
            )
            await asyncio.sleep(backoff)
            backoff = min(backoff * RECONNECT_MULTIPLIER, self._reconnect_max)

    async def _connect_and_listen(self) -> None:
        self._established = False
        queue: asyncio.Queue = asyncio.Queue()

        def on_notification(connection, pid, channel, payload) -> None:
            queue.put_nowait(payload)

        def on_termination(connection) -> None:
            queue.put_nowait(_CONNECTION_LOST)

        conn = await self._connect()
        try:
            conn.add_termination_listener(on_termination)
            await conn.add_listener(self._channel, on_notification)
            self._established = True
            self._set_connected(True)
            log.info("change_listener.connected", channel=self._channel)

            while self._running:
                item = await queue.get()
                if item is _CONNECTION_LOST:
                    raise ListenerConnectionLost(
                        f"LISTEN connection for {self._channel!r} terminated"
                    )
                try:
                    await self.handle_notification(item)
                except Exception:
                    log.exception("change_listener.handler_error", channel=self._channel)
        finally:
            await self._close(conn)

    async def _close(self, conn) -> None:
        try:
            if not conn.is_closed():
                await conn.close()
        except Exception as exc:
            log.debug("change_listener.close_error", error=str(exc))
