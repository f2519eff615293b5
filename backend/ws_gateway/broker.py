"""
Notification Broker.

Registry of open subscription connections and fan-out of game
notifications to them.

Concurrency:
- The registry is guarded by a threading.Lock held only for dict
  mutation and snapshotting. No I/O happens under it.
- publish() snapshots the registry, releases the lock, then offers the
  message to each connection. Offering never blocks; a connection that
  cannot accept the message is pruned and closed in the background.
- A message reaches exactly the connections registered when publish()
  took its snapshot. Per-connection order equals publish order because
  each connection drains a FIFO queue with a single sender task.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shared.config.logging import ws_gateway_logger as logger
from ws_gateway.components.connection.subscription import (
    DeliveryOutcome,
    SubscriptionConnection,
)
from ws_gateway.components.core.constants import (
    BackpressurePolicy,
    WSCloseCode,
    WSConstants,
)
from ws_gateway.components.events.types import NotificationMessage

if TYPE_CHECKING:
    from fastapi import WebSocket
    from shared.config.settings import Settings


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome of a single publish."""

    delivered: int = 0  # queued on the connection
    dropped: int = 0  # resolved by drop_oldest / drop_newest
    pruned: int = 0  # connection removed from the registry

    @property
    def recipients(self) -> int:
        return self.delivered + self.dropped + self.pruned


class NotificationBroker:
    """
    Owns the set of open subscription connections.

    One instance per application, stored on app.state and injected
    with the get_broker dependency.

    Usage:
        broker = NotificationBroker.from_settings(settings)
        connection = broker.new_connection(websocket)
        ...
        broker.register(connection)
        result = broker.publish(GameDeleted(id=7))
    """

    def __init__(
        self,
        queue_max_size: int = WSConstants.QUEUE_MAX_SIZE,
        backpressure_policy: BackpressurePolicy | str = BackpressurePolicy.DROP_OLDEST,
        keepalive_interval: float = WSConstants.KEEPALIVE_INTERVAL,
        send_timeout: float = WSConstants.SEND_TIMEOUT,
        max_message_size: int = WSConstants.MAX_MESSAGE_SIZE,
    ) -> None:
        self.queue_max_size = queue_max_size
        self.backpressure_policy = BackpressurePolicy(backpressure_policy)
        self.keepalive_interval = keepalive_interval
        self.send_timeout = send_timeout
        self.max_message_size = max_message_size

        self._connections: dict[str, SubscriptionConnection] = {}
        self._lock = threading.Lock()
        self._closing_tasks: set[asyncio.Task[None]] = set()

        self._total_published = 0
        self._total_delivered = 0
        self._total_dropped = 0
        self._total_pruned = 0
        self._total_registered = 0

    @classmethod
    def from_settings(cls, settings: "Settings") -> "NotificationBroker":
        return cls(
            queue_max_size=settings.ws_queue_max_size,
            backpressure_policy=settings.ws_backpressure_policy,
            keepalive_interval=settings.ws_keepalive_interval,
            send_timeout=settings.ws_send_timeout,
            max_message_size=settings.ws_max_message_size,
        )

    def new_connection(self, websocket: "WebSocket") -> SubscriptionConnection:
        """Build a connection bound to this broker with the configured limits."""
        return SubscriptionConnection(
            websocket,
            broker=self,
            queue_max_size=self.queue_max_size,
            backpressure_policy=self.backpressure_policy,
            keepalive_interval=self.keepalive_interval,
            send_timeout=self.send_timeout,
            max_message_size=self.max_message_size,
        )

    # =========================================================================
    # Registry
    # =========================================================================

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def is_registered(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._connections

    def register(self, connection: SubscriptionConnection) -> bool:
        """
        Add an open connection to the registry.

        Idempotent per connection id.

        Returns:
            True if the connection was added, False if it was already present.
        """
        with self._lock:
            if connection.id in self._connections:
                return False
            self._connections[connection.id] = connection
            self._total_registered += 1
            count = len(self._connections)

        logger.info(
            "Subscriber registered",
            connection_id=connection.id,
            principal_id=connection.principal.id if connection.principal else None,
            active=count,
        )
        return True

    def deregister(self, connection_id: str) -> bool:
        """
        Remove a connection from the registry.

        Safe for unknown ids and repeated calls.

        Returns:
            True if a connection was removed.
        """
        with self._lock:
            removed = self._connections.pop(connection_id, None)
            count = len(self._connections)

        if removed is not None:
            logger.info("Subscriber deregistered", connection_id=connection_id, active=count)
        return removed is not None

    # =========================================================================
    # Publish
    # =========================================================================

    def publish(self, message: NotificationMessage) -> PublishResult:
        """
        Fan a notification out to every connection registered right now.

        Never blocks and never raises because of a subscriber. Must be
        called on the event loop that owns the connections.
        """
        with self._lock:
            snapshot = list(self._connections.values())

        if not snapshot:
            logger.debug("No subscribers, notification not sent", type=message.type.value)
            return PublishResult()

        delivered = 0
        dropped = 0
        pruned: list[SubscriptionConnection] = []

        for connection in snapshot:
            try:
                outcome = connection.offer(message)
            except Exception as e:
                logger.error(
                    "Failed to offer notification",
                    connection_id=connection.id,
                    error=str(e),
                    exc_info=True,
                )
                outcome = DeliveryOutcome.REJECTED

            if outcome is DeliveryOutcome.QUEUED:
                delivered += 1
            elif outcome is DeliveryOutcome.DROPPED:
                dropped += 1
            else:
                pruned.append(connection)

        for connection in pruned:
            self._prune(connection)

        result = PublishResult(delivered=delivered, dropped=dropped, pruned=len(pruned))
        with self._lock:
            self._total_published += 1
            self._total_delivered += result.delivered
            self._total_dropped += result.dropped
            self._total_pruned += result.pruned

        logger.info(
            "Notification published",
            type=message.type.value,
            game_id=message.game_id,
            delivered=result.delivered,
            dropped=result.dropped,
            pruned=result.pruned,
        )
        return result

    def _prune(self, connection: SubscriptionConnection) -> None:
        self.deregister(connection.id)
        if connection.is_open:
            logger.warning(
                "Evicting slow subscriber",
                connection_id=connection.id,
                queue_size=connection.queue_size,
            )
        self._schedule_close(connection, WSCloseCode.TRY_AGAIN_LATER, "slow_consumer")

    def _schedule_close(self, connection: SubscriptionConnection, code: int, reason: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop in this thread; the connection's own tasks finish the close
            return

        task = loop.create_task(connection.close(code, reason=reason))
        self._closing_tasks.add(task)
        task.add_done_callback(self._closing_tasks.discard)

    # =========================================================================
    # Statistics and shutdown
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "active_connections": len(self._connections),
                "total_registered": self._total_registered,
                "total_published": self._total_published,
                "total_delivered": self._total_delivered,
                "total_dropped": self._total_dropped,
                "total_pruned": self._total_pruned,
                "backpressure_policy": self.backpressure_policy.value,
                "queue_max_size": self.queue_max_size,
            }

    async def close_all(self) -> int:
        """
        Graceful shutdown: close every registered connection.

        Returns:
            Number of connections closed.
        """
        with self._lock:
            snapshot = list(self._connections.values())

        logger.info("Closing all subscribers", count=len(snapshot))

        await asyncio.gather(
            *[c.close(WSCloseCode.GOING_AWAY, reason="server_shutdown") for c in snapshot],
            return_exceptions=True,
        )
        if self._closing_tasks:
            await asyncio.gather(*list(self._closing_tasks), return_exceptions=True)

        with self._lock:
            self._connections.clear()

        return len(snapshot)
