"""
Tests for the notification broker: registry, fan-out and backpressure.
"""

from unittest.mock import patch

import pytest

from shared.security.auth import Principal
from ws_gateway.broker import NotificationBroker, PublishResult
from ws_gateway.components.connection.subscription import (
    ConnectionState,
    SubscriptionConnection,
)
from ws_gateway.components.core.constants import WSCloseCode
from ws_gateway.components.events.types import GameCreated, GameDeleted


async def _open(broker: NotificationBroker, websocket, principal: str = "octocat") -> SubscriptionConnection:
    connection = broker.new_connection(websocket)
    connection.principal = Principal(id=principal)
    await connection.open()
    broker.register(connection)
    return connection


def _created(game_id: int) -> GameCreated:
    return GameCreated.from_game({"id": game_id, "name": f"Game {game_id}"})


class TestRegistry:
    """Tests for register/deregister."""

    @pytest.mark.asyncio
    async def test_register_is_idempotent(self, fake_websocket):
        broker = NotificationBroker()
        connection = await _open(broker, fake_websocket())

        assert broker.register(connection) is False
        assert broker.connection_count == 1
        await connection.close()

    @pytest.mark.asyncio
    async def test_deregister_unknown_and_repeated(self, fake_websocket):
        broker = NotificationBroker()
        connection = await _open(broker, fake_websocket())

        assert broker.deregister("unknown") is False
        assert broker.deregister(connection.id) is True
        assert broker.deregister(connection.id) is False
        await connection.close()

    @pytest.mark.asyncio
    async def test_close_deregisters(self, fake_websocket):
        broker = NotificationBroker()
        connection = await _open(broker, fake_websocket())

        await connection.close()

        assert not broker.is_registered(connection.id)


class TestPublish:
    """Tests for fan-out."""

    def test_publish_without_subscribers(self):
        assert NotificationBroker().publish(_created(1)) == PublishResult()

    @pytest.mark.asyncio
    async def test_fan_out_to_every_subscriber(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker()
        sockets = [fake_websocket() for _ in range(3)]
        connections = [await _open(broker, ws) for ws in sockets]

        result = broker.publish(_created(1))
        await wait_for_tasks()

        assert result == PublishResult(delivered=3)
        for ws in sockets:
            assert ws.sent == [{"type": "game_created", "game": {"id": 1, "name": "Game 1"}}]

        for connection in connections:
            await connection.close()

    @pytest.mark.asyncio
    async def test_order_is_preserved(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker()
        ws = fake_websocket()
        connection = await _open(broker, ws)

        for game_id in range(1, 6):
            broker.publish(_created(game_id))
        broker.publish(GameDeleted(id=3))
        await wait_for_tasks()

        assert [m.get("game", {}).get("id", m.get("id")) for m in ws.sent] == [1, 2, 3, 4, 5, 3]
        assert ws.sent[-1] == {"type": "game_deleted", "id": 3}
        await connection.close()

    @pytest.mark.asyncio
    async def test_late_subscriber_misses_earlier_message(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker()
        early_ws, late_ws = fake_websocket(), fake_websocket()
        early = await _open(broker, early_ws)

        broker.publish(_created(1))
        late = await _open(broker, late_ws)
        await wait_for_tasks()

        assert len(early_ws.sent) == 1
        assert late_ws.sent == []
        await early.close()
        await late.close()

    @pytest.mark.asyncio
    async def test_closed_connection_is_pruned(self, fake_websocket, wait_for_tasks):
        """A connection closed without deregistering is removed on publish."""
        broker = NotificationBroker()
        stale = SubscriptionConnection(fake_websocket())
        await stale.open()
        broker.register(stale)
        await stale.close()
        healthy_ws = fake_websocket()
        healthy = await _open(broker, healthy_ws)

        result = broker.publish(_created(1))
        await wait_for_tasks()

        assert result == PublishResult(delivered=1, pruned=1)
        assert not broker.is_registered(stale.id)
        assert len(healthy_ws.sent) == 1
        await healthy.close()

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_affect_others(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker()
        bad = await _open(broker, fake_websocket())
        good_ws = fake_websocket()
        good = await _open(broker, good_ws)

        with patch.object(bad, "offer", side_effect=RuntimeError("boom")):
            result = broker.publish(_created(1))
        await wait_for_tasks()

        assert result == PublishResult(delivered=1, pruned=1)
        assert len(good_ws.sent) == 1
        assert bad.state is ConnectionState.CLOSED
        await good.close()

    @pytest.mark.asyncio
    async def test_send_failure_removes_subscriber(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker()
        connection = await _open(broker, fake_websocket(fail_send=True))

        broker.publish(_created(1))
        await wait_for_tasks()

        assert connection.state is ConnectionState.CLOSED
        assert connection.close_reason == "send_failed"
        assert broker.connection_count == 0


class TestBackpressure:
    """Tests for full outbound queues."""

    @pytest.mark.asyncio
    async def test_drop_oldest(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker(queue_max_size=2, backpressure_policy="drop_oldest")
        ws = fake_websocket(block_send=True)
        connection = await _open(broker, ws)

        broker.publish(_created(1))
        await wait_for_tasks()  # sender now blocked on message 1
        results = [broker.publish(_created(i)) for i in (2, 3, 4)]

        assert results[-1] == PublishResult(dropped=1)
        ws.unblock()
        await wait_for_tasks()

        assert [m["game"]["id"] for m in ws.sent] == [1, 3, 4]
        assert connection.dropped_count == 1
        await connection.close()

    @pytest.mark.asyncio
    async def test_drop_newest(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker(queue_max_size=2, backpressure_policy="drop_newest")
        ws = fake_websocket(block_send=True)
        connection = await _open(broker, ws)

        broker.publish(_created(1))
        await wait_for_tasks()
        for i in (2, 3, 4):
            broker.publish(_created(i))

        ws.unblock()
        await wait_for_tasks()

        assert [m["game"]["id"] for m in ws.sent] == [1, 2, 3]
        assert connection.is_open
        await connection.close()

    @pytest.mark.asyncio
    async def test_disconnect_evicts_slow_subscriber(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker(queue_max_size=1, backpressure_policy="disconnect")
        slow_ws = fake_websocket(block_send=True)
        slow = await _open(broker, slow_ws)
        fast_ws = fake_websocket()
        fast = await _open(broker, fast_ws)

        broker.publish(_created(1))
        await wait_for_tasks()
        broker.publish(_created(2))  # fills the slow queue
        result = broker.publish(_created(3))
        await wait_for_tasks()

        assert result == PublishResult(delivered=1, pruned=1)
        assert slow.state is ConnectionState.CLOSED
        assert slow_ws.close_code == WSCloseCode.TRY_AGAIN_LATER
        assert [m["game"]["id"] for m in fast_ws.sent] == [1, 2, 3]
        await fast.close()


class TestStatsAndShutdown:
    """Tests for statistics and close_all."""

    @pytest.mark.asyncio
    async def test_stats(self, fake_websocket, wait_for_tasks):
        broker = NotificationBroker()
        connection = await _open(broker, fake_websocket())
        broker.publish(_created(1))
        await wait_for_tasks()

        stats = broker.get_stats()
        assert stats["active_connections"] == 1
        assert stats["total_published"] == 1
        assert stats["total_delivered"] == 1
        assert stats["backpressure_policy"] == "drop_oldest"
        await connection.close()

    @pytest.mark.asyncio
    async def test_close_all(self, fake_websocket):
        broker = NotificationBroker()
        sockets = [fake_websocket() for _ in range(3)]
        connections = [await _open(broker, ws) for ws in sockets]

        assert await broker.close_all() == 3

        assert broker.connection_count == 0
        assert all(c.state is ConnectionState.CLOSED for c in connections)
        assert all(ws.close_code == WSCloseCode.GOING_AWAY for ws in sockets)
