"""
Read-only access to the subscription registry.

Every call runs a fresh query; toggles made through the registry API are
visible to the very next event or gate evaluation.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hookgate.models.subscription import Subscription


class SubscriptionReader:
    """Snapshot reader over the ``webhooks`` table."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def list_active(self, global_only: bool = False) -> list[Subscription]:
        """Active subscriptions; ``global_only`` keeps those with no table scope."""
        stmt = select(Subscription).where(Subscription.active == True)  # noqa: E712
        if global_only:
            stmt = stmt.where(Subscription.table_name.is_(None))
        stmt = stmt.order_by(Subscription.id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
