"""
Subscription Gateway Constants.

Centralized constants with the reasoning behind each value.
"""

from enum import IntEnum, Enum
from typing import Final

from shared.config.logging import get_logger

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
]

logger = get_logger(__name__)


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific errors.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or client navigating away
    POLICY_VIOLATION = 1008  # Generic policy violation
    MESSAGE_TOO_BIG = 1009  # Message too large to process
    SERVER_ERROR = 1011  # Unexpected server error
    TRY_AGAIN_LATER = 1013  # Subscriber too slow to keep up with notifications

    # Custom application codes (4000-4999)
    AUTH_FAILED = 4001  # Credential absent, malformed, invalid or expired
    FORBIDDEN = 4003  # Origin not allowed


class BackpressurePolicy(str, Enum):
    """
    What happens when a subscriber's outbound queue is full.

    DROP_OLDEST: discard the oldest queued notification, enqueue the new one.
    DROP_NEWEST: keep the queue as is, discard the new notification.
    DISCONNECT: treat the subscriber as failed; it is closed and pruned.
    """

    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"
    DISCONNECT = "disconnect"


class WSConstants:
    """
    Gateway operational constants.

    Runtime values come from settings where a setting exists; these are
    the defaults used when components are built without settings.
    """

    # KEEPALIVE_INTERVAL: 15 seconds
    # Matches the keep-alive interval clients of the original service expect.
    # Well below the 60s idle timeout of common reverse proxies.
    KEEPALIVE_INTERVAL: Final[float] = 15.0

    # QUEUE_MAX_SIZE: 100 notifications per subscriber
    # Game notifications are rare (one per closed/reopened issue). A subscriber
    # 100 messages behind is not reading its socket.
    QUEUE_MAX_SIZE: Final[int] = 100

    # SEND_TIMEOUT: 10 seconds
    # A single frame that cannot be written in 10s means the peer is gone.
    SEND_TIMEOUT: Final[float] = 10.0

    # MAX_MESSAGE_SIZE: 64 KB
    # Clients only send pings; anything larger is abuse.
    MAX_MESSAGE_SIZE: Final[int] = 64 * 1024

    # DROP_LOG_INTERVAL: 100
    # Log every 100th dropped notification per subscriber to avoid log spam.
    DROP_LOG_INTERVAL: Final[int] = 100


# Message constants for the keep-alive protocol
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PING_JSON: Final[str] = '{"type":"ping"}'
MSG_PONG_JSON: Final[str] = '{"type":"pong"}'
MSG_KEEPALIVE_JSON: Final[str] = '{"type":"ka"}'


# Default development origins
DEFAULT_ALLOWED_ORIGINS: Final[tuple[str, ...]] = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


def validate_websocket_origin(origin: str | None, settings: object) -> bool:
    """
    Validate WebSocket origin header against allowed origins.

    A missing Origin header (non-browser client) is accepted only in
    development.

    Args:
        origin: The Origin header value, or None if not present.
        settings: Settings object with environment and allowed_origins attributes.

    Returns:
        True if origin is allowed, False otherwise.
    """
    allowed_origins_str = getattr(settings, "allowed_origins", None)
    if allowed_origins_str:
        allowed = [o.strip() for o in allowed_origins_str.split(",") if o.strip()]
    else:
        allowed = list(DEFAULT_ALLOWED_ORIGINS)

    if not origin:
        if getattr(settings, "environment", "production") == "development":
            return True
        logger.warning("WebSocket connection rejected: missing Origin header in production")
        return False

    if origin in allowed:
        return True

    logger.warning(
        "WebSocket connection rejected: origin not in allowed list",
        origin=origin,
        allowed_count=len(allowed),
    )
    return False
