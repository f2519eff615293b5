"""
FastAPI Dependencies for the subscription gateway.

The broker is owned by the application (app.state.broker) rather than
being a module-level singleton, so each app instance, and each test,
gets its own registry.
"""

from __future__ import annotations

from starlette.requests import HTTPConnection

from ws_gateway.broker import NotificationBroker


def get_broker(connection: HTTPConnection) -> NotificationBroker:
    """
    Resolve the application's broker. Works for HTTP and WebSocket routes.

    Usage:
        @router.post("/webhook")
        async def webhook(broker: NotificationBroker = Depends(get_broker)): ...
    """
    return connection.app.state.broker
