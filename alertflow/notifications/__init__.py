"""Change-event notification.

Components:
- Notifier: ABC for notifier backends
- LogNotifier / WebhookNotifier / RedisNotifier: Concrete backends
- NotifierConfig: Pydantic settings selecting backends and dispatch limits
- NotificationDispatcher: Per-notifier lanes with failure isolation
"""

from alertflow.notifications.config import NotifierConfig
from alertflow.notifications.dispatcher import NotificationDispatcher
from alertflow.notifications.notifiers import (
    LogNotifier,
    Notifier,
    RedisNotifier,
    WebhookNotifier,
    build_notifiers,
)

__all__ = [
    "LogNotifier",
    "NotificationDispatcher",
    "Notifier",
    "NotifierConfig",
    "RedisNotifier",
    "WebhookNotifier",
    "build_notifiers",
]
