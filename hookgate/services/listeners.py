"""
Request bins: internal HTTP targets that record what they receive.

Handy as delivery or gatekeeper targets while wiring up subscriptions.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl

import structlog
from fastapi import HTTPException
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hookgate.models.listener import ListenerLog, WebhookListener
from hookgate.models.subscription import Subscription

log = structlog.get_logger()

LOG_PAGE_SIZE = 50


async def create_listener(name: str | None, session: AsyncSession) -> WebhookListener:
    listener = WebhookListener(name=name or "Untitled Listener")
    session.add(listener)
    await session.commit()
    await session.refresh(listener)
    log.info("listeners.created", listener_id=listener.id, uuid=listener.uuid)
    return listener


async def list_listeners(session: AsyncSession) -> list[WebhookListener]:
    result = await session.execute(
        select(WebhookListener).order_by(WebhookListener.created_at.desc(), WebhookListener.id.desc())
    )
    return list(result.scalars().all())


async def delete_listener(listener_id: int, session: AsyncSession) -> None:
    listener = await session.get(WebhookListener, listener_id)
    if listener is None:
        raise HTTPException(status_code=404, detail="Listener not found")
    await session.execute(delete(ListenerLog).where(ListenerLog.listener_id == listener_id))
    await session.delete(listener)
    await session.commit()


def decode_body(raw: bytes, content_type: str | None) -> Any:
    """Store JSON bodies as JSON, form posts as a field dict, anything else as text."""
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    if content_type and "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(text, keep_blank_values=True))
    if content_type and "json" in content_type:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


async def _ensure_enabled(listener_uuid: str, session: AsyncSession) -> None:
    """A bin registered as a webhook target is refused while that webhook is inactive."""
    result = await session.execute(
        select(Subscription.active)
        .where(Subscription.url.endswith(f"{listener_uuid}/trigger"))
        .order_by(Subscription.id)
        .limit(1)
    )
    active = result.scalar_one_or_none()
    if active is not None and not active:
        log.info("listeners.capture_refused", uuid=listener_uuid)
        raise HTTPException(status_code=403, detail="Webhook is disabled")


async def capture_request(
    listener_uuid: str,
    method: str,
    headers: dict[str, str],
    body: Any,
    session: AsyncSession,
) -> ListenerLog:
    """Record one inbound request against the bin identified by ``listener_uuid``."""
    await _ensure_enabled(listener_uuid, session)
    result = await session.execute(
        select(WebhookListener).where(WebhookListener.uuid == listener_uuid)
    )
    listener = result.scalar_one_or_none()
    if listener is None:
        raise HTTPException(status_code=404, detail="Listener not found")

    entry = ListenerLog(listener_id=listener.id, method=method, headers=headers, body=body)
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    log.info("listeners.captured", listener_id=listener.id, method=method)
    return entry


async def listener_logs(listener_id: int, session: AsyncSession) -> list[ListenerLog]:
    result = await session.execute(
        select(ListenerLog)
        .where(ListenerLog.listener_id == listener_id)
        .order_by(ListenerLog.timestamp.desc(), ListenerLog.id.desc())
        .limit(LOG_PAGE_SIZE)
    )
    return list(result.scalars().all())


async def all_logs(session: AsyncSession) -> list[dict[str, Any]]:
    """Latest captured requests across every bin, with the bin's name."""
    result = await session.execute(
        select(ListenerLog, WebhookListener.name)
        .join(WebhookListener, WebhookListener.id == ListenerLog.listener_id)
        .order_by(ListenerLog.timestamp.desc(), ListenerLog.id.desc())
        .limit(LOG_PAGE_SIZE)
    )
    return [
        {**entry.model_dump(), "listener_name": name}
        for entry, name in result.all()
    ]


async def delete_log(log_id: int, session: AsyncSession) -> None:
    entry = await session.get(ListenerLog, log_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Log not found")
    await session.delete(entry)
    await session.commit()


async def clear_logs(session: AsyncSession) -> int:
    result = await session.execute(delete(ListenerLog))
    await session.commit()
    return result.rowcount or 0
