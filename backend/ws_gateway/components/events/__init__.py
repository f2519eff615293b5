"""
Notification types pushed to subscribers.
"""

from ws_gateway.components.events.types import (
    NotificationType,
    NotificationMessage,
    GameCreated,
    GameDeleted,
)

__all__ = [
    "NotificationType",
    "NotificationMessage",
    "GameCreated",
    "GameDeleted",
]
