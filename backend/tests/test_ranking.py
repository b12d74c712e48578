"""Tests for the ranking engine and ranking queries.

Tests verify:
- Best-bid ranking with its tie-break chain
- Last-bid standing and its divergence from best-bid
- Leaderboard and bidder standing lookups by UUID or code
"""

import uuid
from decimal import Decimal

import pytest

from procubid.core.errors import ErrorKind
from procubid.services import ranking_service
from procubid.services.ranking_service import (
    RankingService,
    current_lowest,
    last_bid_result,
    last_bid_standings,
    latest_bids,
    rank_bids,
)
from procubid.store.records import BidRecord

from conftest import colombo, make_bidder

T0 = colombo(2026, 3, 10, 10, 0)


def bid(bidder_id, amount, minute, sequence, second=0):
    return BidRecord(
        id=uuid.uuid4(),
        auction_id=uuid.UUID(int=1),
        bidder_id=bidder_id,
        amount=Decimal(amount),
        bid_time=T0.replace(minute=minute, second=second),
        sequence=sequence,
    )


@pytest.fixture(autouse=True)
def clear_profile_cache():
    ranking_service._bidder_profile_cache.clear()
    yield
    ranking_service._bidder_profile_cache.clear()


class TestRankBids:
    """Best-bid leaderboard."""

    def test_each_bidder_stands_on_lowest_bid(self):
        x, y = uuid.uuid4(), uuid.uuid4()
        standings = rank_bids([
            bid(x, "900", 1, 1),
            bid(y, "850", 2, 2),
            bid(x, "800", 3, 3),
        ])

        assert [(s.rank, s.bidder_id, s.amount) for s in standings] == [
            (1, x, Decimal("800")),
            (2, y, Decimal("850")),
        ]

    def test_equal_amount_goes_to_earlier_bid(self):
        x, y = uuid.uuid4(), uuid.uuid4()
        standings = rank_bids([bid(y, "500", 5, 2), bid(x, "500", 4, 1)])

        assert [s.bidder_id for s in standings] == [x, y]

    def test_equal_amount_and_time_goes_to_lower_sequence(self):
        x, y = uuid.uuid4(), uuid.uuid4()
        standings = rank_bids([bid(y, "500", 4, 8), bid(x, "500", 4, 7)])

        assert [s.bidder_id for s in standings] == [x, y]

    def test_same_bidder_repeating_best_amount_keeps_earliest(self):
        x = uuid.uuid4()
        standings = rank_bids([bid(x, "500", 6, 2), bid(x, "500", 4, 1)])

        assert standings[0].bid_time == T0.replace(minute=4)

    def test_ranks_are_dense_and_unique(self):
        bidders = [uuid.uuid4() for _ in range(6)]
        bids = [bid(b, "700", i, i + 1) for i, b in enumerate(bidders)]

        ranks = [s.rank for s in rank_bids(bids)]

        assert ranks == [1, 2, 3, 4, 5, 6]

    def test_empty(self):
        assert rank_bids([]) == []


class TestLastBidStanding:
    """Last-bid standing and its divergence from the best-bid leaderboard."""

    def test_latest_bid_per_bidder(self):
        x = uuid.uuid4()
        latest = latest_bids([bid(x, "900", 1, 1), bid(x, "950", 2, 2)])

        assert latest[x].amount == Decimal("950")

    def test_latest_bid_tie_on_time_takes_higher_sequence(self):
        x = uuid.uuid4()
        latest = latest_bids([bid(x, "900", 1, 2), bid(x, "950", 1, 1)])

        assert latest[x].amount == Decimal("900")

    def test_leader_who_raises_loses_last_bid_but_keeps_best_rank(self):
        x, y = uuid.uuid4(), uuid.uuid4()
        bids = [
            bid(x, "50", 1, 1),
            bid(y, "40", 2, 2),
            bid(x, "30", 3, 3),
            bid(x, "45", 4, 4),
        ]

        assert rank_bids(bids)[0].bidder_id == x
        assert last_bid_standings(bids)[0].bidder_id == y
        assert last_bid_result(bids, x) == "lost"
        assert last_bid_result(bids, y) == "won"
        assert current_lowest(bids) == Decimal("40")

    def test_result_is_none_without_bids(self):
        x = uuid.uuid4()

        assert last_bid_result([], x) is None
        assert last_bid_result([bid(uuid.uuid4(), "10", 1, 1)], x) is None
        assert current_lowest([]) is None


class TestRankingService:
    """Ranking queries backed by the store."""

    @pytest.mark.asyncio
    async def test_get_rankings_includes_bidder_profile(self, store, auction):
        alice = store.add_bidder(make_bidder("BID0001"), invite_to=auction)
        bob = store.add_bidder(make_bidder("BID0002"), invite_to=auction)
        store.add_bid(auction, alice, "900.00", T0.replace(minute=1))
        store.add_bid(auction, bob, "850.00", T0.replace(minute=2))

        rankings = await RankingService(store).get_rankings(auction.id)

        assert [r["bidder_code"] for r in rankings] == ["BID0002", "BID0001"]
        assert rankings[0]["rank"] == 1
        assert rankings[0]["company"] == "BID0002 Supplies"
        assert rankings[0]["amount"] == Decimal("850.00")

    @pytest.mark.asyncio
    async def test_bidder_profiles_are_cached(self, store, auction):
        alice = store.add_bidder(make_bidder("BID0001"), invite_to=auction)
        store.add_bid(auction, alice, "900.00", T0)
        service = RankingService(store)

        await service.get_rankings(auction.id)
        store.fail_on.add("get_bidders")
        rankings = await service.get_rankings(auction.id)

        assert rankings[0]["bidder_name"] == "Bidder BID0001"

    @pytest.mark.asyncio
    async def test_new_bids_are_never_served_from_cache(self, store, auction):
        alice = store.add_bidder(make_bidder("BID0001"), invite_to=auction)
        service = RankingService(store)
        store.add_bid(auction, alice, "900.00", T0)
        await service.get_rankings(auction.id)

        store.add_bid(auction, alice, "800.00", T0.replace(minute=1))
        rankings = await service.get_rankings(auction.id)

        assert rankings[0]["amount"] == Decimal("800.00")

    @pytest.mark.asyncio
    async def test_get_bidder_rank(self, store, auction):
        alice = store.add_bidder(make_bidder("BID0001"), invite_to=auction)
        bob = store.add_bidder(make_bidder("BID0002"), invite_to=auction)
        store.add_bid(auction, alice, "900.00", T0)
        store.add_bid(auction, bob, "850.00", T0.replace(minute=1))

        rank_info = await RankingService(store).get_bidder_rank(auction.id, alice.id)

        assert rank_info["rank"] == 2
        assert rank_info["best_amount"] == Decimal("900.00")
        assert rank_info["is_leading"] is False
        assert rank_info["total_bidders"] == 2
        assert rank_info["current_lowest"] == Decimal("850.00")

    @pytest.mark.asyncio
    async def test_get_bidder_rank_without_bids(self, store, auction):
        rank_info = await RankingService(store).get_bidder_rank(auction.id, uuid.uuid4())

        assert rank_info["rank"] is None
        assert rank_info["is_leading"] is False
        assert rank_info["total_bidders"] == 0

    @pytest.mark.asyncio
    async def test_leaderboard_by_code(self, store, auction):
        alice = store.add_bidder(make_bidder("BID0001"), invite_to=auction)
        store.add_bid(auction, alice, "900.00", T0)

        outcome = await RankingService(store).leaderboard("AUC1001")

        assert outcome.ok
        assert outcome.value["auction_id"] == auction.id
        assert outcome.value["total_bidders"] == 1

    @pytest.mark.asyncio
    async def test_leaderboard_unknown_auction(self, store):
        outcome = await RankingService(store).leaderboard("AUC9999")

        assert outcome.error.kind is ErrorKind.NOT_FOUND
        assert outcome.error.code == "AUCTION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, store, auction):
        store.fail_on.add("list_bids")

        outcome = await RankingService(store).bidder_standing(auction.id, uuid.uuid4())

        assert outcome.error.kind is ErrorKind.STORE
        assert outcome.error.code == "DATABASE_ERROR"
