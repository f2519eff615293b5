"""
WebSocket Context for audit logging.

Encapsulates subscription connection metadata so audit calls don't have
to repeat the same parameters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket


# Control characters and Unicode direction overrides
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'  # ASCII control characters
    r'\u200b-\u200f'  # Zero-width and direction marks
    r'\u202a-\u202e'  # Bidirectional text formatting
    r'\u2066-\u2069'  # Isolate formatting characters
    r'\ufeff]'  # BOM
)


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Sanitize client-provided data before logging.

    Truncates first, then strips control characters and escapes characters
    that would break a JSON log line.

    Args:
        data: Raw client data.
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    truncated = data[:max_length] if len(data) > max_length else data
    was_truncated = len(data) > max_length

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized


@dataclass
class WebSocketContext:
    """
    Context object for subscription connection metadata.

    Usage:
        ctx = WebSocketContext.from_websocket(websocket, "/ws/subscriptions")
        ctx.audit("AUTH_FAILED", reason="Token has expired")
        ctx.principal_id = principal.id
        ctx.connection_id = connection.id
        ctx.audit("CONNECT")
    """

    endpoint: str
    origin: str | None = None
    principal_id: str | None = None
    connection_id: str | None = None

    @classmethod
    def from_websocket(cls, websocket: "WebSocket", endpoint: str) -> "WebSocketContext":
        return cls(
            endpoint=endpoint,
            origin=websocket.headers.get("origin"),
        )

    def to_audit_dict(self, event_type: str, **extra: Any) -> dict[str, Any]:
        """
        Convert to keyword arguments for audit_ws_connection.

        Only includes non-None fields to reduce log noise.
        """
        result: dict[str, Any] = {
            "event_type": event_type,
            "endpoint": self.endpoint,
        }
        if self.origin:
            result["origin"] = sanitize_log_data(self.origin)
        if self.principal_id:
            result["principal_id"] = self.principal_id
        if self.connection_id:
            result["connection_id"] = self.connection_id

        result.update(extra)
        return result

    def audit(self, event_type: str, logger_func: Any = None, **extra: Any) -> None:
        """Log an audit event with all context fields."""
        if logger_func is None:
            from shared.config.logging import audit_ws_connection
            logger_func = audit_ws_connection

        logger_func(**self.to_audit_dict(event_type, **extra))

    @property
    def identifier(self) -> str:
        """Human-readable identifier for log lines."""
        if self.principal_id:
            return f"principal:{self.principal_id}"
        return "anonymous"
