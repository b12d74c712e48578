"""Ranking engine and ranking query operations.

Two standings are computed from the full bid list and kept separate:

- best-bid standing (`rank_bids`): each bidder stands on their lowest bid.
  Used for leaderboards, bid feedback and shortlisting.
- last-bid standing (`last_bid_standings`): each bidder stands on their most
  recent bid, whatever its amount. Used for historical won/lost results.

A bidder who leads and then bids higher keeps their best-bid rank but can
lose the last-bid standing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from cachetools import TTLCache

from procubid.core.errors import Outcome, store_failure
from procubid.store.base import AuctionRef, AuctionStore, StoreError
from procubid.store.records import BidderRecord, BidRecord

logger = logging.getLogger(__name__)

# Bidder display profiles (name, code) change rarely; bids are never cached
BIDDER_PROFILE_TTL = 60
_bidder_profile_cache: TTLCache = TTLCache(maxsize=5000, ttl=BIDDER_PROFILE_TTL)


@dataclass(frozen=True)
class Standing:
    rank: int
    bidder_id: UUID
    amount: Decimal
    bid_time: datetime
    sequence: int


def _order_key(bid: BidRecord) -> tuple:
    return (bid.amount, bid.bid_time, bid.sequence)


def _to_standings(bids: Iterable[BidRecord]) -> list[Standing]:
    ordered = sorted(bids, key=_order_key)
    return [
        Standing(
            rank=index,
            bidder_id=bid.bidder_id,
            amount=bid.amount,
            bid_time=bid.bid_time,
            sequence=bid.sequence,
        )
        for index, bid in enumerate(ordered, start=1)
    ]


def rank_bids(bids: Iterable[BidRecord]) -> list[Standing]:
    """Best-bid leaderboard: lowest amount per bidder, strict total order.

    Ties on amount go to the earlier bid_time, then to the lower insert
    sequence. Ranks are 1..n with no gaps and no shared ranks.
    """
    best: dict[UUID, BidRecord] = {}
    for bid in bids:
        current = best.get(bid.bidder_id)
        if current is None or _order_key(bid) < _order_key(current):
            best[bid.bidder_id] = bid
    return _to_standings(best.values())


def latest_bids(bids: Iterable[BidRecord]) -> dict[UUID, BidRecord]:
    """Most recent bid per bidder (latest bid_time, then highest sequence)."""
    latest: dict[UUID, BidRecord] = {}
    for bid in bids:
        current = latest.get(bid.bidder_id)
        if current is None or (bid.bid_time, bid.sequence) > (current.bid_time, current.sequence):
            latest[bid.bidder_id] = bid
    return latest


def last_bid_standings(bids: Iterable[BidRecord]) -> list[Standing]:
    """Last-bid standing: each bidder's latest bid, ordered like rank_bids."""
    return _to_standings(latest_bids(bids).values())


def last_bid_result(bids: Iterable[BidRecord], bidder_id: UUID) -> Optional[str]:
    """Return "won" or "lost" for a bidder under last-bid semantics.

    None when the bidder has no bid in the list.
    """
    standings = last_bid_standings(bids)
    if not any(s.bidder_id == bidder_id for s in standings):
        return None
    return "won" if standings[0].bidder_id == bidder_id else "lost"


def current_lowest(bids: Iterable[BidRecord]) -> Optional[Decimal]:
    """Lowest amount among each bidder's latest bid."""
    standings = last_bid_standings(bids)
    return standings[0].amount if standings else None


class RankingService:
    """Service class for ranking queries backed by the auction store."""

    def __init__(self, store: AuctionStore):
        self.store = store

    async def _bidder_profiles(self, bidder_ids: list[UUID]) -> dict[UUID, BidderRecord]:
        profiles: dict[UUID, BidderRecord] = {}
        missing = []
        for bidder_id in bidder_ids:
            cached = _bidder_profile_cache.get(bidder_id)
            if cached is not None:
                profiles[bidder_id] = cached
            else:
                missing.append(bidder_id)

        if missing:
            fetched = await self.store.get_bidders(missing)
            for bidder_id, profile in fetched.items():
                _bidder_profile_cache[bidder_id] = profile
                profiles[bidder_id] = profile

        return profiles

    async def get_rankings(self, auction_id: UUID) -> list[dict]:
        """Get the best-bid leaderboard of an auction with bidder details.

        Args:
            auction_id: Auction UUID

        Returns:
            List of ranking dicts ordered by rank
        """
        bids = await self.store.list_bids(auction_id)
        standings = rank_bids(bids)
        if not standings:
            return []

        profiles = await self._bidder_profiles([s.bidder_id for s in standings])

        rankings = []
        for standing in standings:
            profile = profiles.get(standing.bidder_id)
            rankings.append({
                "rank": standing.rank,
                "bidder_id": standing.bidder_id,
                "bidder_code": profile.user_code if profile else None,
                "bidder_name": profile.name if profile else None,
                "company": profile.company if profile else None,
                "amount": standing.amount,
                "bid_time": standing.bid_time,
            })

        return rankings

    async def get_bidder_rank(self, auction_id: UUID, bidder_id: UUID) -> dict:
        """Get a specific bidder's best-bid rank in an auction.

        Args:
            auction_id: Auction UUID
            bidder_id: Bidder UUID

        Returns:
            Dict with the bidder's rank info; rank is None without bids
        """
        bids = await self.store.list_bids(auction_id)
        standings = rank_bids(bids)
        mine = next((s for s in standings if s.bidder_id == bidder_id), None)

        return {
            "auction_id": auction_id,
            "bidder_id": bidder_id,
            "rank": mine.rank if mine else None,
            "best_amount": mine.amount if mine else None,
            "is_leading": mine is not None and mine.rank == 1,
            "total_bidders": len(standings),
            "current_lowest": current_lowest(bids),
        }

    async def leaderboard(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """Resolve an auction by UUID or code and return its leaderboard."""
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            rankings = await self.get_rankings(auction.id)
        except StoreError as e:
            return store_failure(logger, f"Ranking auction {auction_ref}", e)

        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "total_bidders": len(rankings),
            "rankings": rankings,
        })

    async def bidder_standing(self, auction_ref: AuctionRef, bidder_id: UUID) -> Outcome[dict]:
        """Resolve an auction by UUID or code and return a bidder's rank."""
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            rank_info = await self.get_bidder_rank(auction.id, bidder_id)
        except StoreError as e:
            return store_failure(logger, f"Ranking bidder {bidder_id} in auction {auction_ref}", e)

        return Outcome.success(rank_info)
