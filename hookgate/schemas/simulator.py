"""Data-mutation simulator and demo login schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .events import KNOWN_OPERATIONS, normalize_operation


class SimulationRequest(BaseModel):
    name: str = ""
    table: str = "test_webhook"
    column: str = "name"
    action: str = "POST"

    @field_validator("action")
    @classmethod
    def _action(cls, value: str) -> str:
        action = normalize_operation(value)
        if action not in KNOWN_OPERATIONS:
            raise ValueError(f"unsupported action {value!r}")
        return action


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    token: str
    message: str
