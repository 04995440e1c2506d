"""
Request bin endpoints.

POST   /api/v1/listeners                  Create a bin
GET    /api/v1/listeners                  List bins
DELETE /api/v1/listeners/{id}             Delete a bin and its logs
POST   /api/v1/listeners/{uuid}/trigger   Capture a request (webhook target)
GET    /api/v1/listeners/{id}/logs        Latest captures for one bin
GET    /api/v1/logs/all                   Latest captures across bins
DELETE /api/v1/logs/clear                 Delete every capture
DELETE /api/v1/logs/{id}                  Delete one capture
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hookgate.core.database import get_session
from hookgate.schemas.listeners import (
    ListenerCreate,
    ListenerLogRead,
    ListenerRead,
    MessageResponse,
)
from hookgate.services import listeners as listener_service

router = APIRouter()


@router.post("/listeners", response_model=ListenerRead, status_code=201)
async def create_listener(
    body: ListenerCreate,
    session: AsyncSession = Depends(get_session),
):
    return await listener_service.create_listener(body.name, session)


@router.get("/listeners", response_model=list[ListenerRead])
async def list_listeners(session: AsyncSession = Depends(get_session)):
    return await listener_service.list_listeners(session)


@router.delete("/listeners/{listener_id}", response_model=MessageResponse)
async def delete_listener(listener_id: int, session: AsyncSession = Depends(get_session)):
    await listener_service.delete_listener(listener_id, session)
    return MessageResponse(message="Listener deleted")


@router.post("/listeners/{listener_uuid}/trigger", response_model=MessageResponse)
async def trigger_listener(
    listener_uuid: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Webhook target: record method, headers and body."""
    raw = await request.body()
    body = listener_service.decode_body(raw, request.headers.get("content-type"))
    await listener_service.capture_request(
        listener_uuid,
        request.method,
        dict(request.headers),
        body,
        session,
    )
    return MessageResponse(message="Webhook received")


@router.get("/listeners/{listener_id}/logs", response_model=list[ListenerLogRead])
async def get_listener_logs(listener_id: int, session: AsyncSession = Depends(get_session)):
    return await listener_service.listener_logs(listener_id, session)


@router.get("/logs/all", response_model=list[ListenerLogRead])
async def get_all_logs(session: AsyncSession = Depends(get_session)):
    return await listener_service.all_logs(session)


@router.delete("/logs/clear", response_model=MessageResponse)
async def clear_logs(session: AsyncSession = Depends(get_session)):
    await listener_service.clear_logs(session)
    return MessageResponse(message="All logs cleared")


@router.delete("/logs/{log_id}", response_model=MessageResponse)
async def delete_log(log_id: int, session: AsyncSession = Depends(get_session)):
    await listener_service.delete_log(log_id, session)
    return MessageResponse(message="Log deleted")
