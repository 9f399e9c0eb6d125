"""Dependencies shared by the notification services.

The composition root (the FastAPI app, a scheduler process or a test
fixture) binds one ``NotificationContext``; command handlers look it up
with ``current_context()``. Services themselves take it as a constructor
argument.
"""

from dataclasses import dataclass, field

from safety_notifications.delivery.channel import Channels
from safety_notifications.policy import ReadErrorPolicy
from safety_notifications.store import Store


@dataclass
class NotificationContext:
    channels: Channels = field(default_factory=Channels)
    store: Store = field(default_factory=Store)
    policy: ReadErrorPolicy = field(default_factory=ReadErrorPolicy)


_bound: NotificationContext | None = None


def bind_context(context: NotificationContext) -> NotificationContext:
    global _bound
    _bound = context
    return context


def current_context() -> NotificationContext:
    """Return the bound context, binding a default (fake channels) on first use."""
    global _bound
    if _bound is None:
        _bound = NotificationContext()
    return _bound


def unbind_context() -> None:
    global _bound
    _bound = None
