"""Request bins: internal capture endpoints and the requests they received."""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, JSONType, _utcnow


class WebhookListener(CreatedAtMixin, table=True):
    __tablename__ = "webhook_listeners"

    id: Optional[int] = Field(default=None, primary_key=True)
    uuid: str = Field(
        default_factory=lambda: str(uuid4()),
        nullable=False,
        unique=True,
        index=True,
    )
    name: str = Field(default="Untitled Listener", nullable=False)


class ListenerLog(SQLModel, table=True):
    __tablename__ = "listener_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    listener_id: int = Field(
        sa_column=sa.Column(
            sa.Integer,
            sa.ForeignKey("webhook_listeners.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    method: str = Field(nullable=False)
    headers: dict = Field(default_factory=dict, sa_type=JSONType, nullable=False)
    body: Optional[Any] = Field(default=None, sa_type=JSONType)
    timestamp: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
