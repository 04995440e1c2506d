"""
Data-mutation simulator (gatekeeper-protected).

POST /api/v1/test-data   Insert/update/delete/read a row and notify
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hookgate.core.database import get_session
from hookgate.dispatch.gatekeeper import require_gatekeeper_clearance
from hookgate.schemas.simulator import SimulationRequest
from hookgate.services import simulator as simulator_service
from hookgate.services.simulator import ChangeNotifier

router = APIRouter()


def get_notifier(request: Request) -> ChangeNotifier:
    return request.app.state.notifier


@router.post(
    "/test-data",
    dependencies=[Depends(require_gatekeeper_clearance)],
)
async def simulate_change(
    body: SimulationRequest,
    session: AsyncSession = Depends(get_session),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> dict[str, Any]:
    return await simulator_service.simulate(body, session, notifier)
