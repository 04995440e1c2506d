"""Subscription registry request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .events import normalize_operation


def _normalize_events(events: list[str]) -> list[str]:
    seen: list[str] = []
    for name in events:
        tag = normalize_operation(name)
        if not tag:
            raise ValueError("event names must be non-empty")
        if tag not in seen:
            seen.append(tag)
    return seen


class SubscriptionCreate(BaseModel):
    url: str = Field(min_length=1)
    events: list[str] = Field(min_length=1)
    table_name: Optional[str] = None  # None = every table (global scope)
    target_column: Optional[str] = None

    @field_validator("events")
    @classmethod
    def _events(cls, value: list[str]) -> list[str]:
        return _normalize_events(value)

    @field_validator("table_name", "target_column", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SubscriptionUpdate(BaseModel):
    active: Optional[bool] = None
    events: Optional[list[str]] = Field(default=None, min_length=1)

    @field_validator("events")
    @classmethod
    def _events(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return None if value is None else _normalize_events(value)


class SubscriptionRead(BaseModel):
    id: int
    url: str
    events: list[str]
    table_name: Optional[str] = None
    target_column: Optional[str] = None
    active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
