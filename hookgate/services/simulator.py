"""
Data-mutation simulator.

Performs one insert/update/delete/read against a user table and announces
it on the change channel, the same way a database trigger would. Used to
exercise subscriptions by hand.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Protocol

import sqlalchemy as sa
import structlog
from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from hookgate.schemas.events import (
    DELETE_OPERATIONS,
    INSERT_OPERATIONS,
    UPDATE_OPERATIONS,
)
from hookgate.schemas.simulator import SimulationRequest

from .schema import INTERNAL_TABLES, list_user_tables, reflect_table

log = structlog.get_logger()


class ChangeNotifier(Protocol):
    async def notify(self, session: AsyncSession, payload: dict[str, Any]) -> None: ...


class PgChangeNotifier:
    """Publishes change payloads with ``pg_notify`` inside the caller's transaction."""

    def __init__(self, channel: str):
        self._channel = channel

    async def notify(self, session: AsyncSession, payload: dict[str, Any]) -> None:
        await session.execute(
            sa.text("SELECT pg_notify(:channel, :payload)"),
            {"channel": self._channel, "payload": json.dumps(payload, default=str)},
        )


def _row_dict(row) -> dict[str, Any]:
    return jsonable_encoder(dict(row._mapping))


async def _latest(table: sa.Table, session: AsyncSession) -> Optional[dict[str, Any]]:
    result = await session.execute(sa.select(table).order_by(table.c.id.desc()).limit(1))
    row = result.first()
    return _row_dict(row) if row is not None else None


async def _by_id(table: sa.Table, row_id: Any, session: AsyncSession) -> dict[str, Any]:
    result = await session.execute(sa.select(table).where(table.c.id == row_id))
    return _row_dict(result.one())


async def _insert(table: sa.Table, column: str, value: str, session: AsyncSession) -> dict[str, Any]:
    result = await session.execute(sa.insert(table).values({column: value}))
    return await _by_id(table, result.inserted_primary_key[0], session)


async def simulate(
    req: SimulationRequest,
    session: AsyncSession,
    notifier: ChangeNotifier,
) -> dict[str, Any]:
    """Apply ``req`` and emit the matching change notification."""
    if req.table in INTERNAL_TABLES:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Cannot simulate data on internal table '{req.table}'. "
                "Please select a user table like 'test_webhook'."
            ),
        )
    if req.table not in await list_user_tables(session):
        raise HTTPException(status_code=404, detail=f"Table '{req.table}' not found")

    table = await reflect_table(req.table, session)
    if "id" not in table.c:
        raise HTTPException(status_code=400, detail=f"Table '{req.table}' has no 'id' column")
    if req.column not in table.c:
        raise HTTPException(
            status_code=400, detail=f"Column '{req.column}' not found on '{req.table}'"
        )

    action = req.action
    old_row: Optional[dict[str, Any]] = None

    if action in INSERT_OPERATIONS:
        row = await _insert(table, req.column, req.name, session)
    elif action in UPDATE_OPERATIONS:
        latest = await _latest(table, session)
        if latest is None:
            log.info("simulator.upsert_insert", table=req.table, action=action)
            row = await _insert(table, req.column, req.name, session)
        else:
            old_row = latest
            await session.execute(
                sa.update(table).where(table.c.id == latest["id"]).values({req.column: req.name})
            )
            row = await _by_id(table, latest["id"], session)
    elif action in DELETE_OPERATIONS:
        latest = await _latest(table, session)
        if latest is None:
            raise HTTPException(status_code=404, detail="No data found to modify")
        old_row = latest
        await session.execute(sa.delete(table).where(table.c.id == latest["id"]))
        row = latest
    else:
        row = await _latest(table, session) or {"message": "No data found"}

    payload = {
        "operation": action,
        "table": req.table,
        "data": row,
        "old_data": old_row,
    }
    await notifier.notify(session, payload)
    await session.commit()

    log.info("simulator.applied", table=req.table, action=action)
    return {**row, "_table": req.table, "_action": action}
