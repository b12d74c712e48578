"""Read-only reports over bids and results for administrators and bidders."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from uuid import UUID

from procubid.core.clock import Clock
from procubid.core.errors import Outcome, store_failure
from procubid.models.enums import AuctionStatus, ResultStatus
from procubid.services.liveness import evaluate
from procubid.services.ranking_service import latest_bids, rank_bids
from procubid.store.base import AuctionRef, AuctionStore, StoreError
from procubid.store.records import AuctionRecord, BidderRecord, BidRecord

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _average(amounts: list[Decimal]) -> Optional[Decimal]:
    if not amounts:
        return None
    return (sum(amounts) / len(amounts)).quantize(CENT, rounding=ROUND_HALF_UP)


def participation_rate(active: int, invited: int) -> float:
    """Share of invited bidders who placed at least one bid, in percent."""
    if invited <= 0:
        return 0.0
    return round(active / invited * 100, 2)


def summarize_bids(bids: list[BidRecord], invited_count: int) -> dict:
    """Bid totals of one auction: counts, lowest, highest and average amount."""
    amounts = [b.amount for b in bids]
    active = len({b.bidder_id for b in bids})
    return {
        "invited_count": invited_count,
        "active_count": active,
        "total_bids": len(bids),
        "lowest_bid": min(amounts, default=None),
        "highest_bid": max(amounts, default=None),
        "average_bid": _average(amounts),
        "participation_rate": participation_rate(active, invited_count),
    }


def bidder_activity(
    bids: Iterable[BidRecord], profiles: dict[UUID, BidderRecord]
) -> list[dict]:
    """Per-bidder bid activity, ordered by best-bid rank."""
    bids = list(bids)
    per_bidder: dict[UUID, list[BidRecord]] = {}
    for bid in bids:
        per_bidder.setdefault(bid.bidder_id, []).append(bid)

    rows = []
    for standing in rank_bids(bids):
        own = per_bidder[standing.bidder_id]
        amounts = [b.amount for b in own]
        profile = profiles.get(standing.bidder_id)
        rows.append({
            "bidder_id": standing.bidder_id,
            "bidder_code": profile.user_code if profile else None,
            "bidder_name": profile.name if profile else None,
            "company": profile.company if profile else None,
            "rank": standing.rank,
            "total_bids": len(own),
            "lowest_bid": min(amounts),
            "highest_bid": max(amounts),
            "average_bid": _average(amounts),
            "first_bid_time": min(b.bid_time for b in own),
            "last_bid_time": max(b.bid_time for b in own),
        })
    return rows


def _auction_summary(auction: AuctionRecord) -> dict:
    return {
        "auction_id": auction.id,
        "auction_code": auction.auction_code,
        "title": auction.title,
        "auction_date": auction.auction_date,
        "currency": auction.currency.value,
    }


class ReportsService:
    """Service class for auction statistics, bid records and result listings."""

    def __init__(self, store: AuctionStore, clock: Clock):
        self.store = store
        self.clock = clock

    async def live_auctions(self) -> Outcome[dict]:
        """Auctions live right now with their participation figures."""
        now = self.clock.now()
        try:
            candidates = await self.store.list_auctions(
                [AuctionStatus.APPROVED, AuctionStatus.LIVE]
            )
            rows = []
            for auction in candidates:
                liveness = evaluate(auction, now, self.clock.tz)
                if not liveness.is_live:
                    continue
                invited = await self.store.list_invited_bidders(auction.id)
                bids = await self.store.list_bids(auction.id)
                rows.append({
                    **_auction_summary(auction),
                    "ends_at": liveness.ends_at,
                    "seconds_remaining": liveness.seconds_remaining(now),
                    "invited_bidders": invited,
                    **summarize_bids(bids, len(invited)),
                })
        except StoreError as e:
            return store_failure(logger, "Listing live auctions", e)

        rows.sort(key=lambda row: row["ends_at"])
        return Outcome.success({
            "auctions": rows,
            "count": len(rows),
            "server_time": self.clock.format(now),
        })

    async def statistics(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """Participation figures of an auction and the activity of each bidder.

        Args:
            auction_ref: Auction UUID or code

        Returns:
            Outcome with the bid summary and one activity row per bidder
            who bid, best-bid leader first
        """
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            invited = await self.store.list_invited_bidders(auction.id)
            bids = await self.store.list_bids(auction.id)
            profiles = await self.store.get_bidders(b.bidder_id for b in bids)
        except StoreError as e:
            return store_failure(logger, f"Loading statistics of auction {auction_ref}", e)

        liveness = evaluate(auction, self.clock.now(), self.clock.tz)
        return Outcome.success({
            **_auction_summary(auction),
            "calculated_status": liveness.calculated_status.value,
            "statistics": summarize_bids(bids, len(invited)),
            "active_bidders": bidder_activity(bids, profiles),
        })

    async def bid_records(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """Every bid of an auction with bidder details and result, newest first."""
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            bids = await self.store.list_bids(auction.id)
            profiles = await self.store.get_bidders(b.bidder_id for b in bids)
            results = {r.bidder_id: r for r in await self.store.list_results(auction.id)}
        except StoreError as e:
            return store_failure(logger, f"Loading bid records of auction {auction_ref}", e)

        records = []
        for bid in sorted(bids, key=lambda b: (b.bid_time, b.sequence), reverse=True):
            profile = profiles.get(bid.bidder_id)
            result = results.get(bid.bidder_id)
            records.append({
                "bid_id": bid.id,
                "bidder_id": bid.bidder_id,
                "bidder_code": profile.user_code if profile else None,
                "bidder_name": profile.name if profile else None,
                "company": profile.company if profile else None,
                "amount": bid.amount,
                "bid_time": bid.bid_time,
                "result_status": result.status.value if result else None,
                "disqualification_reason": result.disqualification_reason if result else None,
                "cancel_reason": result.cancel_reason if result else None,
            })

        return Outcome.success({
            **_auction_summary(auction),
            "total_bids": len(records),
            "bids": records,
        })

    async def awarded_overview(self) -> Outcome[dict]:
        """One row per awarded auction with the winner and their latest bid."""
        try:
            awarded = await self.store.list_results_by_status(ResultStatus.AWARDED)
            profiles = await self.store.get_bidders(r.bidder_id for r in awarded)
            rows = []
            for result in awarded:
                auction = await self.store.get_auction(result.auction_id)
                if auction is None:
                    continue
                bids = await self.store.list_bids(auction.id)
                latest = latest_bids(b for b in bids if b.bidder_id == result.bidder_id)
                winning = latest.get(result.bidder_id)
                profile = profiles.get(result.bidder_id)
                rows.append({
                    **_auction_summary(auction),
                    "bidder_id": result.bidder_id,
                    "bidder_code": profile.user_code if profile else None,
                    "bidder_name": profile.name if profile else None,
                    "company": profile.company if profile else None,
                    "amount": winning.amount if winning else None,
                })
        except StoreError as e:
            return store_failure(logger, "Loading awarded results overview", e)

        rows.sort(key=lambda row: (row["auction_date"] is not None, row["auction_date"]), reverse=True)
        return Outcome.success({"results": rows, "count": len(rows)})

    async def bidder_results(self, bidder_id: UUID) -> Outcome[dict]:
        """Result rows of one bidder across auctions with their best bid."""
        try:
            own = await self.store.list_results_for_bidder(bidder_id)
            bids = await self.store.list_bids_for_bidder(bidder_id)
            rows = []
            for result in own:
                auction = await self.store.get_auction(result.auction_id)
                if auction is None:
                    continue
                amounts = [b.amount for b in bids if b.auction_id == auction.id]
                rows.append({
                    **_auction_summary(auction),
                    "status": result.status.value,
                    "best_bid": min(amounts, default=None),
                    "disqualification_reason": result.disqualification_reason,
                    "cancel_reason": result.cancel_reason,
                    "shortlisted_at": result.shortlisted_at,
                })
        except StoreError as e:
            return store_failure(logger, f"Loading results of bidder {bidder_id}", e)

        rows.sort(key=lambda row: (row["auction_date"] is not None, row["auction_date"]), reverse=True)
        return Outcome.success({"results": rows, "count": len(rows)})
