# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import CreatedAtMixin  # noqa: F401
from .subscription import Subscription  # noqa: F401
from .listener import WebhookListener, ListenerLog  # noqa: F401
