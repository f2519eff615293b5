"""
Handshake credential extraction for the subscription gateway.

Browsers cannot set headers on a WebSocket upgrade, so the credential may
arrive in the query string as well as in the Authorization header. Lookup
order: ?authorization= (either case), ?token=, Authorization header.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket


CREDENTIAL_QUERY_PARAMS: tuple[str, ...] = ("authorization", "Authorization", "token")
CREDENTIAL_HEADER = "authorization"


def extract_handshake_credential(websocket: "WebSocket") -> str | None:
    """
    Return the raw credential presented during the handshake.

    The value may still carry a "Bearer " prefix; the token authenticator
    strips it. Returns None when no credential was presented.
    """
    for name in CREDENTIAL_QUERY_PARAMS:
        value = websocket.query_params.get(name)
        if value:
            return value

    return websocket.headers.get(CREDENTIAL_HEADER) or None
