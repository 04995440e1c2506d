"""
Subscription matching.

Pure predicates over (event, subscription); no I/O. Rules, in order:

1. inactive subscriptions never match
2. the event's operation must be in the subscription's event set
3. ``table_name`` is either unset (any table) or equal to the event table
4. the column-delta filter applies only to update-class events that carry
   a prior row; there the named column must have changed. For every other
   event ``target_column`` is ignored.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from hookgate.models.subscription import Subscription
from hookgate.schemas.events import ChangeEvent


def _normalize_numbers(value: Any) -> Any:
    # 1 and 1.0 are the same column value once they cross a JSON boundary.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _normalize_numbers(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_numbers(item) for item in value]
    return value


def canonical_value(value: Any) -> str:
    """Stable serialized form used for column comparisons."""
    return json.dumps(_normalize_numbers(value), sort_keys=True, separators=(",", ":"), default=str)


def column_changed(event: ChangeEvent, column: str) -> bool:
    """True if ``column`` differs between the prior and the new row."""
    old = (event.old_data or {}).get(column)
    new = event.new_data.get(column)
    return canonical_value(old) != canonical_value(new)


def column_filter_applies(event: ChangeEvent, subscription: Subscription) -> bool:
    return bool(subscription.target_column) and event.is_update and event.old_data is not None


def matches(event: ChangeEvent, subscription: Subscription) -> bool:
    """Decide whether ``subscription`` should receive ``event``."""
    if not subscription.active:
        return False
    if event.operation not in subscription.events:
        return False
    if subscription.table_name is not None and subscription.table_name != event.table:
        return False
    if column_filter_applies(event, subscription):
        return column_changed(event, subscription.target_column)
    return True


def match_subscriptions(
    event: ChangeEvent, subscriptions: Iterable[Subscription]
) -> list[Subscription]:
    """All subscriptions in a snapshot that match ``event``."""
    return [sub for sub in subscriptions if matches(event, sub)]
