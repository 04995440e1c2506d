"""Schema introspection for the subscription form: user tables and columns."""

from __future__ import annotations

import sqlalchemy as sa
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

INTERNAL_TABLES = frozenset({"webhooks", "webhook_listeners", "listener_logs", "alembic_version"})
HIDDEN_COLUMNS = frozenset({"id", "created_at", "updated_at"})


async def list_user_tables(session: AsyncSession) -> list[str]:
    names = await session.run_sync(
        lambda sync_session: sa.inspect(sync_session.connection()).get_table_names()
    )
    return sorted(name for name in names if name not in INTERNAL_TABLES)


async def list_columns(table: str, session: AsyncSession) -> list[str]:
    """Column names of a user table, minus bookkeeping columns."""
    if table not in await list_user_tables(session):
        raise HTTPException(status_code=404, detail=f"Table '{table}' not found")
    columns = await session.run_sync(
        lambda sync_session: sa.inspect(sync_session.connection()).get_columns(table)
    )
    return [col["name"] for col in columns if col["name"] not in HIDDEN_COLUMNS]


async def reflect_table(table: str, session: AsyncSession) -> sa.Table:
    """Reflect a user table so it can be queried without string-built SQL."""
    return await session.run_sync(
        lambda sync_session: sa.Table(
            table, sa.MetaData(), autoload_with=sync_session.connection()
        )
    )
