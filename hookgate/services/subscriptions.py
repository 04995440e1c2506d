"""
Subscription registry service: CRUD over the ``webhooks`` table.

The dispatch engine never calls into this module; it only reads the
table through ``SubscriptionReader``.
"""

from __future__ import annotations

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hookgate.models.subscription import Subscription
from hookgate.schemas.subscriptions import SubscriptionCreate, SubscriptionUpdate

log = structlog.get_logger()


async def list_subscriptions(session: AsyncSession) -> list[Subscription]:
    """All subscriptions, newest first."""
    result = await session.execute(select(Subscription).order_by(Subscription.id.desc()))
    return list(result.scalars().all())


async def create_subscription(req: SubscriptionCreate, session: AsyncSession) -> Subscription:
    subscription = Subscription(
        url=req.url,
        events=req.events,
        table_name=req.table_name,
        target_column=req.target_column,
        active=True,
    )
    session.add(subscription)
    await session.commit()
    await session.refresh(subscription)

    log.info(
        "subscriptions.created",
        subscription_id=subscription.id,
        url=subscription.url,
        events=subscription.events,
        table=subscription.table_name,
        column=subscription.target_column,
    )
    return subscription


async def _get_or_404(subscription_id: int, session: AsyncSession) -> Subscription:
    subscription = await session.get(Subscription, subscription_id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return subscription


async def update_subscription(
    subscription_id: int, req: SubscriptionUpdate, session: AsyncSession
) -> Subscription:
    """Partial update of ``active`` and/or ``events``."""
    changes = req.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    subscription = await _get_or_404(subscription_id, session)
    for key, value in changes.items():
        setattr(subscription, key, value)

    session.add(subscription)
    await session.commit()
    await session.refresh(subscription)

    log.info("subscriptions.updated", subscription_id=subscription_id, **changes)
    return subscription


async def delete_subscription(subscription_id: int, session: AsyncSession) -> None:
    subscription = await _get_or_404(subscription_id, session)
    await session.delete(subscription)
    await session.commit()
    log.info("subscriptions.deleted", subscription_id=subscription_id)
