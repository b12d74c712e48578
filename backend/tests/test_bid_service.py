"""Tests for bid placement, latest bid and bid history."""

from datetime import date
from decimal import Decimal
from unittest.mock import ANY

import pytest

from procubid.core.errors import ErrorKind
from procubid.models.enums import AuctionStatus, ResultStatus
from procubid.services.bid_service import BidService

from conftest import colombo, make_auction, make_bidder


@pytest.fixture
def live_clock(clock):
    clock.set(colombo(2026, 3, 10, 10, 5))
    return clock


@pytest.fixture
def alice(store, auction):
    return store.add_bidder(make_bidder("BID0001"), invite_to=auction)


@pytest.fixture
def bob(store, auction):
    return store.add_bidder(make_bidder("BID0002"), invite_to=auction)


class TestPlaceBid:
    @pytest.mark.asyncio
    async def test_accepted_bid_is_stamped_by_server_clock(self, store, auction, alice, live_clock, gateway):
        service = BidService(store, live_clock, gateway)

        outcome = await service.place_bid(auction.id, alice.id, "999.95")

        assert outcome.ok
        result = outcome.value
        assert result["bid"].amount == Decimal("999.95")
        assert result["bid"].bid_time == live_clock.now()
        assert result["rank"] == 1
        assert result["is_leading"] is True
        assert result["total_bidders"] == 1
        assert result["current_lowest"] == Decimal("999.95")
        assert result["currency"] == "LKR"
        gateway.send_bid_accepted.assert_awaited_once_with(
            auction.id, alice.id, result["bid"].id, Decimal("999.95"), 1, True, ANY
        )

    @pytest.mark.asyncio
    async def test_bid_by_auction_code(self, store, auction, alice, live_clock):
        outcome = await BidService(store, live_clock).place_bid("AUC1001", alice.id, 900)

        assert outcome.ok
        assert outcome.value["auction_code"] == "AUC1001"

    @pytest.mark.asyncio
    async def test_step_rejection_is_a_validation_error_with_details(self, store, auction, alice, live_clock, gateway):
        outcome = await BidService(store, live_clock, gateway).place_bid(auction.id, alice.id, "999.97")

        assert not outcome.ok
        assert outcome.error.kind is ErrorKind.VALIDATION
        assert outcome.error.code == "INVALID_STEP_MULTIPLE"
        assert outcome.error.details["nearest_valid_bids"]["lower"] == "999.95"
        assert store.bids == []
        gateway.send_bid_accepted.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uninvited_bidder_is_refused(self, store, auction, live_clock):
        stranger = store.add_bidder(make_bidder("BID0099"))

        outcome = await BidService(store, live_clock).place_bid(auction.id, stranger.id, "500")

        assert outcome.error.code == "NOT_INVITED"
        assert store.bids == []

    @pytest.mark.asyncio
    async def test_not_live_before_start(self, store, auction, alice, clock):
        outcome = await BidService(store, clock).place_bid(auction.id, alice.id, "500")

        assert outcome.error.code == "AUCTION_NOT_LIVE"
        assert outcome.error.details["state"] == "not_started"

    @pytest.mark.asyncio
    async def test_unknown_auction(self, store, alice, live_clock):
        outcome = await BidService(store, live_clock).place_bid("AUC4040", alice.id, "500")

        assert outcome.error.kind is ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_store_failure(self, store, auction, alice, live_clock):
        store.fail_on.add("insert_bid")

        outcome = await BidService(store, live_clock).place_bid(auction.id, alice.id, "500")

        assert outcome.error.kind is ErrorKind.STORE
        assert "simulated" not in outcome.error.message

    @pytest.mark.asyncio
    async def test_rank_reflects_best_bid_after_raising(self, store, auction, alice, bob, live_clock):
        service = BidService(store, live_clock)

        await service.place_bid(auction.id, alice.id, "50")
        live_clock.advance(seconds=10)
        await service.place_bid(auction.id, bob.id, "40")
        live_clock.advance(seconds=10)
        await service.place_bid(auction.id, alice.id, "30")
        live_clock.advance(seconds=10)
        outcome = await service.place_bid(auction.id, alice.id, "45")

        assert outcome.value["rank"] == 1
        assert outcome.value["is_leading"] is True
        assert outcome.value["current_lowest"] == Decimal("40")


class TestLatestBid:
    @pytest.mark.asyncio
    async def test_latest_bid(self, store, auction, alice, live_clock):
        store.add_bid(auction, alice, "900", colombo(2026, 3, 10, 10, 1))
        store.add_bid(auction, alice, "950", colombo(2026, 3, 10, 10, 2))

        outcome = await BidService(store, live_clock).get_latest_bid("AUC1001", alice.id)

        assert outcome.value["bid"].amount == Decimal("950")

    @pytest.mark.asyncio
    async def test_no_bid_yet(self, store, auction, alice, live_clock):
        outcome = await BidService(store, live_clock).get_latest_bid(auction.id, alice.id)

        assert outcome.ok
        assert outcome.value["bid"] is None


class TestBidHistory:
    """History results use last-bid-binding semantics."""

    @pytest.mark.asyncio
    async def test_end_to_end_last_bid_outcome(self, store, auction, clock):
        x = store.add_bidder(make_bidder("BID0001"), invite_to=auction)
        y = store.add_bidder(make_bidder("BID0002"), invite_to=auction)
        service = BidService(store, clock)

        clock.set(colombo(2026, 3, 10, 10, 1))
        assert (await service.place_bid(auction.id, x.id, "50")).ok
        clock.set(colombo(2026, 3, 10, 10, 2))
        assert (await service.place_bid(auction.id, y.id, "40")).ok

        clock.set(colombo(2026, 3, 10, 10, 15))
        in_progress = await service.get_bid_history(x.id)
        assert in_progress.value["history"][0]["result"] == "In Progress"

        clock.set(colombo(2026, 3, 10, 11, 0))
        x_history = await service.get_bid_history(x.id)
        y_history = await service.get_bid_history(y.id)

        assert x_history.value["history"][0]["result"] == "Lost"
        assert y_history.value["history"][0]["result"] == "Won"
        assert y_history.value["summary"] == {
            "total": 1,
            "won": 1,
            "lost": 0,
            "in_progress": 0,
            "cancelled": 0,
        }

    @pytest.mark.asyncio
    async def test_leader_who_raises_last_is_lost(self, store, auction, alice, bob, clock):
        store.add_bid(auction, alice, "50", colombo(2026, 3, 10, 10, 1))
        store.add_bid(auction, bob, "40", colombo(2026, 3, 10, 10, 2))
        store.add_bid(auction, alice, "30", colombo(2026, 3, 10, 10, 3))
        store.add_bid(auction, alice, "45", colombo(2026, 3, 10, 10, 4))
        clock.set(colombo(2026, 3, 10, 11, 0))

        outcome = await BidService(store, clock).get_bid_history(alice.id)

        entry = outcome.value["history"][0]
        assert entry["result"] == "Lost"
        assert entry["amount"] == Decimal("45")

    @pytest.mark.asyncio
    async def test_cancelled_auction_and_cancel_row(self, store, auction, alice, clock):
        other = store.add_auction(
            make_auction(auction_code="AUC1002", auction_date=date(2026, 3, 9))
        )
        store.invitations.add((other.id, alice.id))
        store.add_bid(auction, alice, "500", colombo(2026, 3, 10, 10, 1))
        store.add_bid(other, alice, "600", colombo(2026, 3, 9, 10, 1))
        store.auctions[auction.id] = make_auction(id=auction.id, status=AuctionStatus.CANCELLED)
        await store.upsert_result(other.id, alice.id, ResultStatus.CANCEL, reason="Budget withdrawn")
        clock.set(colombo(2026, 3, 10, 11, 0))

        outcome = await BidService(store, clock).get_bid_history(alice.id)

        results = [e["result"] for e in outcome.value["history"]]
        assert results == ["Cancelled", "Cancelled"]
        assert outcome.value["summary"]["cancelled"] == 2

    @pytest.mark.asyncio
    async def test_history_is_most_recent_first(self, store, auction, alice, clock):
        earlier = store.add_auction(
            make_auction(auction_code="AUC1002", auction_date=date(2026, 3, 9))
        )
        store.add_bid(earlier, alice, "600", colombo(2026, 3, 9, 10, 1))
        store.add_bid(auction, alice, "500", colombo(2026, 3, 10, 10, 1))
        clock.set(colombo(2026, 3, 10, 11, 0))

        outcome = await BidService(store, clock).get_bid_history(alice.id)

        assert [e["auction_code"] for e in outcome.value["history"]] == ["AUC1001", "AUC1002"]
