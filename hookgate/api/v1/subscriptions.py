"""
Subscription registry endpoints.

GET    /api/v1/subscriptions          List subscriptions (newest first)
POST   /api/v1/subscriptions          Register a webhook
PUT    /api/v1/subscriptions/{id}     Toggle active / replace events
DELETE /api/v1/subscriptions/{id}     Remove a webhook
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hookgate.core.database import get_session
from hookgate.schemas.listeners import MessageResponse
from hookgate.schemas.subscriptions import (
    SubscriptionCreate,
    SubscriptionRead,
    SubscriptionUpdate,
)
from hookgate.services import subscriptions as subscription_service

router = APIRouter()


@router.get("", response_model=list[SubscriptionRead])
async def list_subscriptions(session: AsyncSession = Depends(get_session)):
    return await subscription_service.list_subscriptions(session)


@router.post("", response_model=SubscriptionRead, status_code=201)
async def create_subscription(
    body: SubscriptionCreate,
    session: AsyncSession = Depends(get_session),
):
    """Register a webhook. ``table_name`` null = every table; with the
    GATEKEEPER event it also gates protected endpoints."""
    return await subscription_service.create_subscription(body, session)


@router.put("/{subscription_id}", response_model=SubscriptionRead)
async def update_subscription(
    subscription_id: int,
    body: SubscriptionUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await subscription_service.update_subscription(subscription_id, body, session)


@router.delete("/{subscription_id}", response_model=MessageResponse)
async def delete_subscription(
    subscription_id: int,
    session: AsyncSession = Depends(get_session),
):
    await subscription_service.delete_subscription(subscription_id, session)
    return MessageResponse(message="Webhook deleted")
