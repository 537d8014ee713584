#Marks notifications as a package.
#The engine only *calls* a NotificationDispatcher; delivery (sockets, push)
#belongs to whatever implementation is plugged in here.

from .dispatcher import NotificationDispatcher, LoggingDispatcher
from .webhook import WebhookDispatcher, WebhookError, webhook_dispatcher_from_env
from .fanout import NotificationFanout

__all__ = [
    "NotificationDispatcher",
    "LoggingDispatcher",
    "WebhookDispatcher",
    "WebhookError",
    "webhook_dispatcher_from_env",
    "NotificationFanout",
]
