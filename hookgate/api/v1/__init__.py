"""
API v1 Router

Registry management, request bins, schema helpers and the simulator.
"""

from fastapi import APIRouter

from hookgate import __version__
from . import deliveries, listeners, schema, simulator, subscriptions

router = APIRouter()

router.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
router.include_router(schema.router, prefix="/tables", tags=["Schema"])
router.include_router(listeners.router, tags=["Listeners"])
router.include_router(simulator.router, tags=["Simulator"])
router.include_router(deliveries.router, prefix="/deliveries", tags=["Deliveries"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": __version__,
        "endpoints": [
            "/subscriptions",
            "/tables",
            "/listeners",
            "/logs",
            "/test-data",
            "/deliveries/stream",
        ],
    }
