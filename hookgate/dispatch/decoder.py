"""
Decoding of raw change notifications.

A notification payload is a single JSON object on the change channel.
Anything that does not describe a change event raises ``DecodeError``;
the listener logs and drops it.
"""

from __future__ import annotations

from pydantic import ValidationError

from hookgate.schemas.events import ChangeEvent


class DecodeError(ValueError):
    """The notification payload is not a well-formed change event."""

    def __init__(self, message: str, payload: str | bytes | None = None):
        super().__init__(message)
        self.payload = payload


def decode_change_event(payload: str | bytes) -> ChangeEvent:
    """Parse a notification payload into a ``ChangeEvent``."""
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"payload is not UTF-8: {exc}", payload) from exc

    if not payload or not payload.strip():
        raise DecodeError("empty notification payload", payload)

    try:
        return ChangeEvent.model_validate_json(payload)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise DecodeError(f"invalid change notification: {errors}", payload) from exc
