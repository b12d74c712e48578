"""Bid service for bidding operations."""

import logging
from typing import Any, Optional
from uuid import UUID

from procubid.core.clock import Clock
from procubid.core.errors import ErrorKind, Outcome, store_failure
from procubid.middleware.metrics import record_bid_decision
from procubid.models.enums import AuctionStatus, CalculatedStatus, ResultStatus
from procubid.services.bid_validator import parse_amount, validate_bid
from procubid.services.liveness import evaluate
from procubid.services.notifier import BroadcastGateway
from procubid.services.ranking_service import current_lowest, last_bid_result, latest_bids, rank_bids
from procubid.store.base import AuctionRef, AuctionStore, StoreError

logger = logging.getLogger(__name__)

HISTORY_CANCELLED = "Cancelled"
HISTORY_IN_PROGRESS = "In Progress"
HISTORY_WON = "Won"
HISTORY_LOST = "Lost"


class BidService:
    """Service class for bid operations."""

    def __init__(
        self,
        store: AuctionStore,
        clock: Clock,
        gateway: Optional[BroadcastGateway] = None,
    ):
        self.store = store
        self.clock = clock
        self.gateway = gateway

    async def place_bid(self, auction_ref: AuctionRef, bidder_id: UUID, amount: Any) -> Outcome[dict]:
        """Validate and record a bid, then return the bidder's standing.

        The bid time is stamped from the server clock. The returned rank is
        the best-bid rank recomputed from every bid of the auction, including
        the one just inserted.

        Args:
            auction_ref: Auction UUID or code
            bidder_id: Bidder UUID
            amount: Submitted amount

        Returns:
            Outcome with bid, rank, is_leading and current_lowest on success
        """
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                record_bid_decision("not_found")
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")

            invited = await self.store.is_invited(auction.id, bidder_id)
            now = self.clock.now()
            decision = validate_bid(amount, auction, invited, now, self.clock.tz)
            if not decision.accepted:
                record_bid_decision(decision.reason.value)
                return Outcome.failure(
                    ErrorKind.VALIDATION,
                    decision.reason.value,
                    decision.message,
                    **decision.details,
                )

            bid = await self.store.insert_bid(auction.id, bidder_id, amount=parse_amount(amount), bid_time=now)
            bids = await self.store.list_bids(auction.id)
        except StoreError as e:
            record_bid_decision("error")
            return store_failure(logger, f"Placing bid on auction {auction_ref}", e)

        record_bid_decision("accepted")
        standings = rank_bids(bids)
        mine = next((s for s in standings if s.bidder_id == bidder_id), None)
        rank = mine.rank if mine else None
        is_leading = rank == 1

        logger.info(
            f"Bid accepted: auction={auction.auction_code}, bidder={bidder_id}, "
            f"amount={bid.amount}, rank={rank}"
        )

        if self.gateway is not None:
            await self.gateway.send_bid_accepted(
                auction.id, bidder_id, bid.id, bid.amount, rank, is_leading, bid.bid_time
            )

        return Outcome.success({
            "bid": bid,
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "rank": rank,
            "is_leading": is_leading,
            "total_bidders": len(standings),
            "current_lowest": current_lowest(bids),
            "currency": auction.currency.value,
        })

    async def get_latest_bid(self, auction_ref: AuctionRef, bidder_id: UUID) -> Outcome[dict]:
        """Get the bidder's most recent bid in an auction."""
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            bids = await self.store.list_bids(auction.id)
        except StoreError as e:
            return store_failure(logger, f"Loading latest bid for auction {auction_ref}", e)

        latest = latest_bids(b for b in bids if b.bidder_id == bidder_id).get(bidder_id)
        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "bid": latest,
            "currency": auction.currency.value,
        })

    async def get_bid_history(self, bidder_id: UUID) -> Outcome[dict]:
        """Get one history entry per auction the bidder has bid in.

        Each entry carries the bidder's latest bid in that auction and a
        result computed with last-bid-binding semantics: a cancelled auction
        (or a `cancel` result row) is "Cancelled", an auction that has not
        ended is "In Progress", otherwise "Won" or "Lost".

        Args:
            bidder_id: Bidder UUID

        Returns:
            Outcome with the entries (most recent first) and summary counts
        """
        now = self.clock.now()
        try:
            own_bids = await self.store.list_bids_for_bidder(bidder_id)
            auction_ids = list(dict.fromkeys(b.auction_id for b in own_bids))

            entries = []
            for auction_id in auction_ids:
                auction = await self.store.get_auction(auction_id)
                if auction is None:
                    continue
                all_bids = await self.store.list_bids(auction_id)
                result_row = await self.store.get_result(auction_id, bidder_id)

                my_latest = latest_bids(b for b in own_bids if b.auction_id == auction_id)[bidder_id]
                liveness = evaluate(auction, now, self.clock.tz)

                if auction.status is AuctionStatus.CANCELLED or (
                    result_row is not None and result_row.status is ResultStatus.CANCEL
                ):
                    outcome = HISTORY_CANCELLED
                elif liveness.calculated_status is not CalculatedStatus.ENDED:
                    outcome = HISTORY_IN_PROGRESS
                else:
                    outcome = HISTORY_WON if last_bid_result(all_bids, bidder_id) == "won" else HISTORY_LOST

                entries.append({
                    "auction_id": auction.id,
                    "auction_code": auction.auction_code,
                    "title": auction.title,
                    "currency": auction.currency.value,
                    "amount": my_latest.amount,
                    "bid_time": my_latest.bid_time,
                    "calculated_status": liveness.calculated_status.value,
                    "result": outcome,
                    "result_status": result_row.status.value if result_row else None,
                })
        except StoreError as e:
            return store_failure(logger, f"Loading bid history for bidder {bidder_id}", e)

        entries.sort(key=lambda entry: entry["bid_time"], reverse=True)
        summary = {
            "total": len(entries),
            "won": sum(1 for e in entries if e["result"] == HISTORY_WON),
            "lost": sum(1 for e in entries if e["result"] == HISTORY_LOST),
            "in_progress": sum(1 for e in entries if e["result"] == HISTORY_IN_PROGRESS),
            "cancelled": sum(1 for e in entries if e["result"] == HISTORY_CANCELLED),
        }
        return Outcome.success({"history": entries, "summary": summary})
