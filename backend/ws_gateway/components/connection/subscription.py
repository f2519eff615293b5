"""
Subscription Connection.

One authenticated WebSocket client that receives game notifications.

Lifecycle:
    CONNECTING -> AUTHENTICATING -> OPEN -> CLOSING -> CLOSED
    AUTHENTICATING -> UNAUTHORIZED (terminal, the upgrade is refused)

While OPEN the connection owns three tasks:
    sender     drains the bounded outbound queue, in order
    keepalive  writes {"type":"ka"} every keep-alive interval
    receiver   answers pings and detects peer disconnect

Any of them failing closes the connection. close() is idempotent: it
cancels the tasks, discards queued messages and deregisters from the broker.
"""

from __future__ import annotations

import asyncio
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.responses import Response

from shared.config.logging import get_logger
from shared.security.auth import Principal, TokenAuthenticator
from shared.utils.exceptions import UnauthorizedError
from ws_gateway.components.auth.strategies import extract_handshake_credential
from ws_gateway.components.connection.heartbeat import handle_heartbeat
from ws_gateway.components.core.constants import (
    BackpressurePolicy,
    MSG_KEEPALIVE_JSON,
    WSCloseCode,
    WSConstants,
)
from ws_gateway.components.core.context import sanitize_log_data
from ws_gateway.components.events.types import NotificationMessage

if TYPE_CHECKING:
    from ws_gateway.broker import NotificationBroker

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    UNAUTHORIZED = "unauthorized"


class DeliveryOutcome(str, Enum):
    """Result of offering a notification to a connection."""

    QUEUED = "queued"
    DROPPED = "dropped"  # queue full, resolved by the backpressure policy
    REJECTED = "rejected"  # connection cannot accept messages any more


_TERMINAL_STATES = frozenset(
    {ConnectionState.CLOSING, ConnectionState.CLOSED, ConnectionState.UNAUTHORIZED}
)


class SubscriptionConnection:
    """
    A subscriber's WebSocket plus its bounded outbound queue.

    offer() never blocks: it either enqueues, drops according to the
    backpressure policy, or reports that the connection is unusable.

    Usage:
        connection = SubscriptionConnection(websocket, broker=broker)
        principal = await connection.authenticate(authenticator)
        if principal is None:
            return
        await connection.open()
        broker.register(connection)
        await connection.wait_closed()
    """

    def __init__(
        self,
        websocket: WebSocket,
        broker: "NotificationBroker | None" = None,
        *,
        queue_max_size: int = WSConstants.QUEUE_MAX_SIZE,
        backpressure_policy: BackpressurePolicy | str = BackpressurePolicy.DROP_OLDEST,
        keepalive_interval: float = WSConstants.KEEPALIVE_INTERVAL,
        send_timeout: float = WSConstants.SEND_TIMEOUT,
        max_message_size: int = WSConstants.MAX_MESSAGE_SIZE,
        connection_id: str | None = None,
    ):
        self.id = connection_id or uuid.uuid4().hex
        self.websocket = websocket
        self.principal: Principal | None = None
        self.state = ConnectionState.CONNECTING
        self.close_reason: str | None = None

        self._broker = broker
        self._queue: asyncio.Queue[NotificationMessage] = asyncio.Queue(maxsize=queue_max_size)
        self._policy = BackpressurePolicy(backpressure_policy)
        self._keepalive_interval = keepalive_interval
        self._send_timeout = send_timeout
        self._max_message_size = max_message_size

        self._send_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task[Any]] = []
        self._closed = asyncio.Event()
        self._accepted = False

        self.dropped_count = 0
        self.sent_count = 0

    def __repr__(self) -> str:
        return f"<SubscriptionConnection id={self.id} state={self.state.value}>"

    # =========================================================================
    # Handshake
    # =========================================================================

    async def authenticate(self, authenticator: TokenAuthenticator) -> Principal | None:
        """
        Verify the handshake credential.

        On failure the upgrade is refused with HTTP 401 and the connection
        ends in UNAUTHORIZED without ever being registered.

        Returns:
            The principal, or None if the credential was rejected.
        """
        self.state = ConnectionState.AUTHENTICATING
        credential = extract_handshake_credential(self.websocket)

        try:
            self.principal = authenticator.verify(credential)
        except UnauthorizedError as e:
            self.close_reason = str(e.detail)
            await self.reject(status_code=401, close_code=WSCloseCode.AUTH_FAILED)
            self.state = ConnectionState.UNAUTHORIZED
            self._closed.set()
            return None

        return self.principal

    async def reject(self, status_code: int, close_code: int) -> None:
        """
        Refuse the upgrade before accepting it.

        Sends an HTTP denial response when the server supports the
        websocket.http.response extension, otherwise closes with close_code.
        """
        try:
            await self.websocket.send_denial_response(Response(status_code=status_code))
        except RuntimeError:
            await self.websocket.close(code=close_code)

    async def open(self) -> None:
        """Accept the upgrade and start the sender, keep-alive and receiver tasks."""
        await self.websocket.accept()
        self._accepted = True
        self.state = ConnectionState.OPEN

        self._tasks = [
            asyncio.create_task(self._sender_loop(), name=f"ws-send-{self.id}"),
            asyncio.create_task(self._keepalive_loop(), name=f"ws-ka-{self.id}"),
            asyncio.create_task(self._receive_loop(), name=f"ws-recv-{self.id}"),
        ]

    # =========================================================================
    # Delivery
    # =========================================================================

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    def offer(self, message: NotificationMessage) -> DeliveryOutcome:
        """
        Enqueue a notification without blocking.

        Called on the event loop by the broker, once per publish.
        """
        if not self.is_open:
            return DeliveryOutcome.REJECTED

        try:
            self._queue.put_nowait(message)
            return DeliveryOutcome.QUEUED
        except asyncio.QueueFull:
            pass

        if self._policy is BackpressurePolicy.DISCONNECT:
            return DeliveryOutcome.REJECTED

        if self._policy is BackpressurePolicy.DROP_OLDEST:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(message)

        self.dropped_count += 1
        if self.dropped_count % WSConstants.DROP_LOG_INTERVAL == 1:
            logger.warning(
                "Subscriber queue full, notification dropped",
                connection_id=self.id,
                policy=self._policy.value,
                dropped_total=self.dropped_count,
            )
        return DeliveryOutcome.DROPPED

    async def send_text(self, data: str) -> bool:
        """
        Write one frame. Sends are serialized across the connection's tasks.

        Returns:
            True on success, False if the peer is gone or too slow.
        """
        if not self.is_open:
            return False
        try:
            async with self._send_lock:
                await asyncio.wait_for(self.websocket.send_text(data), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning("Send timed out", connection_id=self.id, timeout=self._send_timeout)
            return False
        except (WebSocketDisconnect, ConnectionError, RuntimeError, OSError) as e:
            logger.debug("Send failed", connection_id=self.id, error=type(e).__name__)
            return False
        return True

    async def send_json(self, payload: dict[str, Any]) -> bool:
        if not self.is_open:
            return False
        try:
            async with self._send_lock:
                await asyncio.wait_for(self.websocket.send_json(payload), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning("Send timed out", connection_id=self.id, timeout=self._send_timeout)
            return False
        except (WebSocketDisconnect, ConnectionError, RuntimeError, OSError) as e:
            logger.debug("Send failed", connection_id=self.id, error=type(e).__name__)
            return False
        return True

    # =========================================================================
    # Tasks
    # =========================================================================

    async def _sender_loop(self) -> None:
        while True:
            message = await self._queue.get()
            if not await self.send_json(message.to_wire()):
                await self.close(WSCloseCode.GOING_AWAY, reason="send_failed")
                return
            self.sent_count += 1

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if not await self.send_text(MSG_KEEPALIVE_JSON):
                await self.close(WSCloseCode.GOING_AWAY, reason="keepalive_failed")
                return

    async def _receive_loop(self) -> None:
        while True:
            try:
                data = await self.websocket.receive_text()
            except WebSocketDisconnect:
                await self.close(reason="client_disconnect")
                return
            except RuntimeError:
                # Socket already closed from our side
                await self.close(reason="receive_failed")
                return

            if len(data) > self._max_message_size:
                logger.warning(
                    "Message too large",
                    connection_id=self.id,
                    size=len(data),
                    max_size=self._max_message_size,
                )
                await self.close(WSCloseCode.MESSAGE_TOO_BIG, reason="message_too_big")
                return

            pong = await handle_heartbeat(self.send_text, data)
            if pong is False:
                await self.close(WSCloseCode.GOING_AWAY, reason="pong_failed")
                return
            if pong:
                continue

            logger.debug(
                "Ignoring client message",
                connection_id=self.id,
                message=sanitize_log_data(data),
            )

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def close(self, code: int = WSCloseCode.NORMAL, reason: str = "closed") -> None:
        """
        Close the connection. Safe to call more than once and from any of
        the connection's own tasks.
        """
        if self.state in _TERMINAL_STATES:
            return

        self.state = ConnectionState.CLOSING
        self.close_reason = reason

        current = asyncio.current_task()
        others = [task for task in self._tasks if task is not current]
        for task in others:
            task.cancel()
        if others:
            await asyncio.gather(*others, return_exceptions=True)

        self._discard_queue()

        if self._broker is not None:
            self._broker.deregister(self.id)

        if self._accepted:
            try:
                await asyncio.wait_for(
                    self.websocket.close(code=code, reason=reason),
                    timeout=self._send_timeout,
                )
            except asyncio.TimeoutError:
                logger.debug("Close frame timed out", connection_id=self.id)
            except (WebSocketDisconnect, ConnectionError, RuntimeError, OSError):
                # Peer already gone
                pass

        self.state = ConnectionState.CLOSED
        self._closed.set()

        logger.debug(
            "Subscription closed",
            connection_id=self.id,
            reason=reason,
            code=int(code),
            sent=self.sent_count,
            dropped=self.dropped_count,
        )

    def _discard_queue(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return

    async def wait_closed(self) -> None:
        await self._closed.wait()
