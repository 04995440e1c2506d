"""Subscription model: one registered webhook target."""

from typing import Optional

from sqlmodel import Field

from .base import CreatedAtMixin, JSONType


class Subscription(CreatedAtMixin, table=True):
    __tablename__ = "webhooks"

    id: Optional[int] = Field(default=None, primary_key=True)
    url: str = Field(nullable=False)
    events: list[str] = Field(default_factory=list, sa_type=JSONType, nullable=False)
    table_name: Optional[str] = Field(default=None, index=True)  # None = global scope
    target_column: Optional[str] = Field(default=None)
    active: bool = Field(default=True, nullable=False, index=True)

    @property
    def is_global(self) -> bool:
        return self.table_name is None
