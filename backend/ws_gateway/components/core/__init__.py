"""
Core gateway building blocks: constants and connection context.
"""

from ws_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    BackpressurePolicy,
    MSG_PING_PLAIN,
    MSG_PING_JSON,
    MSG_PONG_JSON,
    MSG_KEEPALIVE_JSON,
    DEFAULT_ALLOWED_ORIGINS,
    validate_websocket_origin,
)
from ws_gateway.components.core.context import WebSocketContext, sanitize_log_data

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "BackpressurePolicy",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "MSG_KEEPALIVE_JSON",
    "DEFAULT_ALLOWED_ORIGINS",
    "validate_websocket_origin",
    "WebSocketContext",
    "sanitize_log_data",
]
