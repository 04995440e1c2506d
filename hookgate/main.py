"""
hookgate API Server

Entry point for the FastAPI application. Wires the dispatch engine
(listener, dispatcher, gatekeeper gate) to the registry database.
"""

from __future__ import annotations

import argparse

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import sessionmaker

from hookgate import __version__
from hookgate.core.config import Settings, get_settings
from hookgate.core.database import async_session_factory
from hookgate.core.logging import configure_logging
from hookgate.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from hookgate.core.redis import close_redis, get_redis
from hookgate.api.v1 import router as api_v1_router
from hookgate.api.v1.auth import router as auth_router
from hookgate.dispatch.dispatcher import Dispatcher
from hookgate.dispatch.gatekeeper import GatekeeperBlocked, GatekeeperGate
from hookgate.dispatch.listener import ChangeListener
from hookgate.dispatch.metrics import MetricsCollector
from hookgate.dispatch.registry import SubscriptionReader
from hookgate.dispatch.sinks import RedisDeliverySink
from hookgate.services.simulator import PgChangeNotifier

log = structlog.get_logger()


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``session_factory`` feeds the registry reader shared by the change
    listener and the gatekeeper gate; it defaults to the configured database.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="hookgate",
        description="Database change webhooks with gatekeeper validation.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Dispatch engine
    metrics = MetricsCollector()
    # Separate pools: a slow fan-out must not hold connections gate calls need.
    delivery_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.delivery_timeout_seconds),
    )
    gate_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.gatekeeper_timeout_seconds),
    )
    reader = SubscriptionReader(session_factory or async_session_factory)
    sink = RedisDeliverySink(get_redis) if settings.publish_deliveries else None
    dispatcher = Dispatcher(
        delivery_client,
        timeout=settings.delivery_timeout_seconds,
        sink=sink,
        metrics=metrics,
    )
    listener = ChangeListener(
        dsn=settings.listen_dsn,
        channel=settings.notify_channel,
        reader=reader,
        dispatcher=dispatcher,
        metrics=metrics,
        reconnect_base=settings.listener_reconnect_base_seconds,
        reconnect_max=settings.listener_reconnect_max_seconds,
    )

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.listener = listener
    app.state.delivery_client = delivery_client
    app.state.gate_client = gate_client
    app.state.gate = GatekeeperGate(
        reader,
        gate_client,
        timeout=settings.gatekeeper_timeout_seconds,
        event_tag=settings.gatekeeper_event,
        metrics=metrics,
    )
    app.state.notifier = PgChangeNotifier(settings.notify_channel)

    # Middleware (order matters: outermost first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.exception_handler(GatekeeperBlocked)
    async def gatekeeper_blocked_handler(request: Request, exc: GatekeeperBlocked):
        return JSONResponse(
            status_code=403,
            content={
                "error": {
                    "code": "GATEKEEPER_BLOCKED",
                    "message": "Request blocked by middleware webhook",
                    "status": 403,
                    "target": exc.decision.target,
                    "details": exc.decision.details,
                },
                "gatekeeper_blocked": True,
            },
        )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Ready once the change listener holds its LISTEN connection."""
        body = {
            "status": "ready",
            "listener": {
                "enabled": settings.listener_enabled,
                "connected": listener.connected,
                "reconnects": listener.reconnect_count,
            },
        }
        if settings.listener_enabled and not listener.connected:
            body["status"] = "starting"
            return JSONResponse(status_code=503, content=body)
        return body

    @app.get("/metrics", tags=["System"], response_class=PlainTextResponse)
    async def metrics_endpoint():
        return metrics.to_prometheus()

    @app.on_event("startup")
    async def on_startup():
        log.info(
            "hookgate.starting",
            channel=settings.notify_channel,
            listener_enabled=settings.listener_enabled,
        )
        if settings.listener_enabled:
            await listener.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("hookgate.shutting_down")
        await listener.stop()
        await delivery_client.aclose()
        await gate_client.aclose()
        await close_redis()

    return app


def run() -> None:
    """CLI entry point: serve the API with uvicorn."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="hookgate change-event webhook server")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    args = parser.parse_args()

    uvicorn.run(
        "hookgate.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
