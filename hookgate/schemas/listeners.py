"""Request-bin schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ListenerCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)


class ListenerRead(BaseModel):
    id: int
    uuid: str
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ListenerLogRead(BaseModel):
    id: int
    listener_id: int
    method: str
    headers: dict[str, Any]
    body: Optional[Any] = None
    timestamp: datetime
    listener_name: Optional[str] = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str
