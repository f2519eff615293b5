"""
Subscription WebSocket Endpoint.

Drives one client through the connection lifecycle:
origin check -> token check -> accept -> register -> wait until closed.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fastapi import WebSocket

from shared.config.logging import get_logger
from shared.config.settings import Settings
from shared.security.auth import TokenAuthenticator
from ws_gateway.components.connection.subscription import ConnectionState
from ws_gateway.components.core.constants import WSCloseCode, validate_websocket_origin
from ws_gateway.components.core.context import WebSocketContext

if TYPE_CHECKING:
    from ws_gateway.broker import NotificationBroker

logger = get_logger(__name__)


class SubscriptionEndpoint:
    """
    Handler for /ws/subscriptions.

    Usage:
        endpoint = SubscriptionEndpoint(websocket, broker, authenticator, settings)
        await endpoint.run()
    """

    endpoint_name = "/ws/subscriptions"

    def __init__(
        self,
        websocket: WebSocket,
        broker: "NotificationBroker",
        authenticator: TokenAuthenticator,
        settings: Settings,
    ):
        self.websocket = websocket
        self.broker = broker
        self.authenticator = authenticator
        self.settings = settings

        self.connection = broker.new_connection(websocket)
        self.context = WebSocketContext.from_websocket(websocket, self.endpoint_name)
        self.context.connection_id = self.connection.id

    async def run(self) -> None:
        if not validate_websocket_origin(self.context.origin, self.settings):
            self.context.audit("AUTH_FAILED", reason="invalid_origin")
            await self.connection.reject(status_code=403, close_code=WSCloseCode.FORBIDDEN)
            return

        principal = await self.connection.authenticate(self.authenticator)
        if principal is None:
            self.context.audit("AUTH_FAILED", reason=self.connection.close_reason)
            return

        self.context.principal_id = principal.id
        await self.connection.open()
        self.broker.register(self.connection)
        self.context.audit("CONNECT")
        logger.info("Subscriber connected", who=self.context.identifier, connection_id=self.connection.id)

        try:
            await self.connection.wait_closed()
        except asyncio.CancelledError:
            await self.connection.close(WSCloseCode.GOING_AWAY, reason="server_shutdown")
            raise
        finally:
            if self.connection.state is not ConnectionState.CLOSED:
                await self.connection.close()
            self.context.audit("DISCONNECT", reason=self.connection.close_reason)
