"""
hookgate: Postgres change-event webhooks and gatekeeper checks.

Listens for row-level change notifications, fans them out to subscribed
HTTP targets, and gates protected endpoints behind synchronous
validation webhooks.
"""

__version__ = "0.1.0"
