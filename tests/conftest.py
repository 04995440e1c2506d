"""
Shared fixtures: an SQLite registry, the app wired to it, and a live
webhook receiver.
"""

import asyncio
import socket
from typing import Any

import pytest
import uvicorn
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from hookgate.api.v1.simulator import get_notifier
from hookgate.core.config import Settings
from hookgate.core.database import get_session, init_db, make_session_factory
from hookgate.main import create_app

from .receivers import create_receiver_app

TEST_TABLE_DDL = """
CREATE TABLE test_webhook (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR,
    description VARCHAR,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""


class _UvicornServer:
    def __init__(self, app, host: str, port: int):
        self.config = uvicorn.Config(app, host=host, port=port, log_level="error")
        self.server = uvicorn.Server(self.config)
        self._task: asyncio.Task | None = None

    async def start(self):
        self._task = asyncio.create_task(self.server.serve())
        for _ in range(100):
            if self.server.started:
                return
            await asyncio.sleep(0.05)
        raise RuntimeError("Server did not start")

    async def stop(self):
        self.server.should_exit = True
        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=5)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                self._task.cancel()


def _pick_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class RecordingNotifier:
    """Stands in for pg_notify: keeps every payload the simulator emits."""

    def __init__(self):
        self.payloads: list[dict[str, Any]] = []

    async def notify(self, session, payload: dict[str, Any]) -> None:
        self.payloads.append(payload)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hookgate.db'}")
    await init_db(engine)
    async with engine.begin() as conn:
        await conn.execute(text(TEST_TABLE_DDL))
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def settings():
    return Settings(
        listener_enabled=False,
        publish_deliveries=False,
        gatekeeper_timeout_seconds=2.0,
        log_format="text",
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(settings, session_factory, notifier):
    app = create_app(settings, session_factory=session_factory)

    async def _session_override():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_notifier] = lambda: notifier
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def receiver():
    """Live HTTP receiver; yields (base_url, state)."""
    app = create_receiver_app()
    port = _pick_port()
    srv = _UvicornServer(app, "127.0.0.1", port)
    await srv.start()
    yield f"http://127.0.0.1:{port}", app.state.receiver
    await srv.stop()


@pytest.fixture
def unreachable_url():
    """A local URL nothing is listening on."""
    return f"http://127.0.0.1:{_pick_port()}/hook"
