"""
Subscription connection lifecycle and keep-alive handling.
"""

from ws_gateway.components.connection.heartbeat import handle_heartbeat, is_ping
from ws_gateway.components.connection.subscription import (
    ConnectionState,
    DeliveryOutcome,
    SubscriptionConnection,
)

__all__ = [
    "handle_heartbeat",
    "is_ping",
    "ConnectionState",
    "DeliveryOutcome",
    "SubscriptionConnection",
]
