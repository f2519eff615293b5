"""
Keep-alive protocol for subscription connections.

Server to client: {"type":"ka"} every keep-alive interval.
Client to server: "ping" or {"type":"ping"}, answered with {"type":"pong"}.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from ws_gateway.components.core.constants import (
    MSG_PING_JSON,
    MSG_PING_PLAIN,
    MSG_PONG_JSON,
)

SendText = Callable[[str], Awaitable[bool]]


def is_ping(data: str) -> bool:
    return data.strip() in (MSG_PING_PLAIN, MSG_PING_JSON)


async def handle_heartbeat(send_text: SendText, data: str) -> bool | None:
    """
    Answer a ping with a pong.

    Args:
        send_text: Serialized send function of the connection. Send failures
            are reported through its return value and handled by the caller.
        data: The received message data.

    Returns:
        None if the message was not a heartbeat, otherwise whether the
        pong was sent.
    """
    if not is_ping(data):
        return None
    return await send_text(MSG_PONG_JSON)
