"""
WebSocket routes of the subscription gateway.
"""

from fastapi import APIRouter, Depends, WebSocket

from shared.config.settings import get_settings
from shared.security.auth import get_authenticator
from ws_gateway.broker import NotificationBroker
from ws_gateway.components.core.dependencies import get_broker
from ws_gateway.components.endpoints.subscriptions import SubscriptionEndpoint

router = APIRouter(tags=["subscriptions"])


@router.websocket("/ws/subscriptions")
async def game_subscriptions(
    websocket: WebSocket,
    broker: NotificationBroker = Depends(get_broker),
):
    """
    Live game notifications.

    Credential: ?authorization=Bearer <jwt>, ?token=<jwt>, or the
    Authorization header. Rejected handshakes get HTTP 401.

    Frames pushed to the client:
    - {"type": "game_created", "game": {...}}
    - {"type": "game_deleted", "id": 7}
    - {"type": "ka"} every keep-alive interval

    Send "ping" to receive {"type": "pong"}.
    """
    endpoint = SubscriptionEndpoint(websocket, broker, get_authenticator(), get_settings())
    await endpoint.run()
