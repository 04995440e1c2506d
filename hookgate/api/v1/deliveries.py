"""
Delivery outcome stream.

GET /api/v1/deliveries/stream   SSE feed of live delivery outcomes
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from hookgate.services.delivery_stream import HEARTBEAT_INTERVAL, delivery_event_generator

router = APIRouter()


@router.get("/stream")
async def stream_deliveries(request: Request, only_failures: bool = False):
    """Stream delivery outcomes as they happen. Nothing is replayed."""
    return EventSourceResponse(
        delivery_event_generator(request, only_failures=only_failures),
        ping=HEARTBEAT_INTERVAL,
    )
