"""
Schema helpers for building subscriptions.

GET /api/v1/tables                  User tables
GET /api/v1/tables/{name}/columns   Columns of one table
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hookgate.core.database import get_session
from hookgate.services import schema as schema_service

router = APIRouter()


@router.get("", response_model=list[str])
async def list_tables(session: AsyncSession = Depends(get_session)):
    return await schema_service.list_user_tables(session)


@router.get("/{name}/columns", response_model=list[str])
async def list_columns(name: str, session: AsyncSession = Depends(get_session)):
    return await schema_service.list_columns(name, session)
