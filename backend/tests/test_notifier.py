"""Tests for WebSocket rooms and the broadcast gateway."""

import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from procubid.main import health_check
from procubid.services.notifier import BroadcastGateway, ConnectionManager

from conftest import colombo


def mock_websocket(fail: bool = False) -> MagicMock:
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    ws.send_json = AsyncMock(side_effect=RuntimeError("closed") if fail else None)
    return ws


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_connect_and_broadcast(self):
        manager = ConnectionManager()
        first, second = mock_websocket(), mock_websocket()

        await manager.connect("auction-1", "user-1", first)
        await manager.connect("auction-1", "user-2", second)
        sent = await manager.broadcast_to_auction("auction-1", {"event": "ping"})

        assert sent == 2
        first.accept.assert_awaited_once()
        second.send_json.assert_awaited_once_with({"event": "ping"})
        assert manager.get_room_size("auction-1") == 2

    @pytest.mark.asyncio
    async def test_reconnect_replaces_previous_socket(self):
        manager = ConnectionManager()
        old, new = mock_websocket(), mock_websocket()

        await manager.connect("auction-1", "user-1", old)
        await manager.connect("auction-1", "user-1", new)

        old.close.assert_awaited_once()
        assert manager.get_room_size("auction-1") == 1

    @pytest.mark.asyncio
    async def test_failed_send_drops_the_connection(self):
        manager = ConnectionManager()
        await manager.connect("auction-1", "user-1", mock_websocket(fail=True))
        await manager.connect("auction-1", "user-2", mock_websocket())

        sent = await manager.broadcast_to_auction("auction-1", {"event": "ping"})

        assert sent == 1
        assert manager.get_room_size("auction-1") == 1

    @pytest.mark.asyncio
    async def test_empty_rooms_are_removed(self):
        manager = ConnectionManager()
        await manager.connect("auction-1", "user-1", mock_websocket())

        await manager.disconnect("auction-1", "user-1")

        assert manager.get_active_auctions() == []
        assert await manager.send_to_user("auction-1", "user-1", {}) is False

    @pytest.mark.asyncio
    async def test_health_reports_active_rooms(self):
        manager = ConnectionManager()
        await manager.connect("auction-1", "user-1", mock_websocket())
        await manager.connect("auction-2", "user-1", mock_websocket())
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(connection_manager=manager)))

        body = await health_check(request)

        assert body["status"] == "healthy"
        assert body["active_rooms"] == 2


class TestBroadcastGateway:
    @pytest.mark.asyncio
    async def test_status_change_event(self):
        manager = MagicMock()
        manager.broadcast_to_auction = AsyncMock(return_value=3)
        auction_id = uuid.uuid4()

        sent = await BroadcastGateway(manager).broadcast_status_change(
            auction_id, "live", "Auction is now live!", colombo(2026, 3, 10, 10, 0)
        )

        assert sent == 3
        room, message = manager.broadcast_to_auction.await_args.args
        assert room == str(auction_id)
        assert message["event"] == "auction_status_change"
        assert message["data"]["status"] == "live"
        assert message["data"]["timestamp"].startswith("2026-03-10T10:00:00")

    @pytest.mark.asyncio
    async def test_ranking_update_event(self):
        manager = MagicMock()
        manager.broadcast_to_auction = AsyncMock(return_value=1)
        bidder_id = uuid.uuid4()
        rankings = [{
            "rank": 1,
            "bidder_id": bidder_id,
            "bidder_code": "BID0001",
            "bidder_name": "Bidder BID0001",
            "company": "BID0001 Supplies",
            "amount": Decimal("850.00"),
            "bid_time": colombo(2026, 3, 10, 10, 2),
        }]

        await BroadcastGateway(manager).broadcast_ranking_update(uuid.uuid4(), rankings)

        message = manager.broadcast_to_auction.await_args.args[1]
        assert message["event"] == "ranking_update"
        assert message["data"]["total_bidders"] == 1
        assert message["data"]["rankings"][0]["bidder_id"] == str(bidder_id)
        assert message["data"]["rankings"][0]["amount"] == "850.00"

    @pytest.mark.asyncio
    async def test_bid_accepted_goes_to_the_bidder_only(self):
        manager = MagicMock()
        manager.send_to_user = AsyncMock(return_value=True)
        auction_id, bidder_id, bid_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        delivered = await BroadcastGateway(manager).send_bid_accepted(
            auction_id, bidder_id, bid_id, Decimal("500.00"), 2, False, colombo(2026, 3, 10, 10, 5)
        )

        assert delivered is True
        room, user, message = manager.send_to_user.await_args.args
        assert (room, user) == (str(auction_id), str(bidder_id))
        assert message["event"] == "bid_accepted"
        assert message["data"]["rank"] == 2
        assert message["data"]["is_leading"] is False

    @pytest.mark.asyncio
    async def test_delivery_failures_are_swallowed(self):
        manager = MagicMock()
        manager.broadcast_to_auction = AsyncMock(side_effect=RuntimeError("socket gone"))

        sent = await BroadcastGateway(manager).broadcast_status_change(
            uuid.uuid4(), "ended", "Auction has ended!", colombo(2026, 3, 10, 10, 30)
        )

        assert sent == 0
