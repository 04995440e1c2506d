"""Change-event types shared by the decoder, matcher, dispatcher and simulator."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

INSERT_OPERATIONS = frozenset({"INSERT", "POST"})
UPDATE_OPERATIONS = frozenset({"UPDATE", "PUT", "PATCH"})
DELETE_OPERATIONS = frozenset({"DELETE"})
READ_OPERATIONS = frozenset({"GET", "PULL"})

# Operations whose notification carries a pre-change row.
PRIOR_ROW_OPERATIONS = UPDATE_OPERATIONS | DELETE_OPERATIONS

KNOWN_OPERATIONS = INSERT_OPERATIONS | UPDATE_OPERATIONS | DELETE_OPERATIONS | READ_OPERATIONS


def normalize_operation(value: str) -> str:
    return value.strip().upper()


class ChangeEvent(BaseModel):
    """A single row-level change, as announced on the notification channel."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    operation: str = Field(min_length=1)
    table: str = Field(min_length=1)
    new_data: dict[str, Any] = Field(default_factory=dict, alias="data")
    old_data: Optional[dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("operation", mode="before")
    @classmethod
    def _normalize_operation(cls, value: Any) -> Any:
        if isinstance(value, str):
            return normalize_operation(value)
        return value

    @field_validator("new_data", mode="before")
    @classmethod
    def _null_row_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @model_validator(mode="before")
    @classmethod
    def _drop_prior_row_when_not_applicable(cls, data: Any) -> Any:
        # Inserts and reads never carry a pre-change row.
        if isinstance(data, dict):
            operation = data.get("operation")
            if isinstance(operation, str) and normalize_operation(operation) not in PRIOR_ROW_OPERATIONS:
                data = {key: value for key, value in data.items() if key != "old_data"}
        return data

    @property
    def is_update(self) -> bool:
        return self.operation in UPDATE_OPERATIONS
