"""Post-auction results workflow.

Every mutating operation runs inside one store transaction and takes a row
lock on the auction before reading the rows it checks, so two concurrent
awards on the same auction are serialized and at most one can succeed.
Emails and broadcasts go out only after the transaction has committed and
never undo it when they fail.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from procubid.core.clock import Clock
from procubid.core.errors import ErrorKind, Outcome, store_failure
from procubid.models.enums import SHORTLIST_STATUSES, AuctionStatus, ResultStatus
from procubid.services.email_service import EmailService
from procubid.services.notifier import BroadcastGateway
from procubid.services.ranking_service import rank_bids
from procubid.services.scheduler import status_message
from procubid.store.base import AuctionRef, AuctionStore, StoreError
from procubid.store.records import AuctionRecord

logger = logging.getLogger(__name__)


def _reason_required(action: str) -> Outcome:
    return Outcome.failure(
        ErrorKind.VALIDATION,
        "REASON_REQUIRED",
        f"A reason is required to {action}",
    )


class ResultsService:
    """Service class for shortlisting, award and cancellation."""

    def __init__(
        self,
        store: AuctionStore,
        clock: Clock,
        email_service: Optional[EmailService] = None,
        gateway: Optional[BroadcastGateway] = None,
        shortlist_size: int = 5,
    ):
        self.store = store
        self.clock = clock
        self.email_service = email_service
        self.gateway = gateway
        self.shortlist_size = shortlist_size

    async def _locked_auction(self, auction_ref: AuctionRef) -> Optional[AuctionRecord]:
        auction = await self.store.get_auction(auction_ref)
        if auction is None:
            return None
        return await self.store.lock_auction(auction.id)

    async def _is_participant(self, auction_id: UUID, bidder_id: UUID) -> bool:
        if await self.store.is_invited(auction_id, bidder_id):
            return True
        bids = await self.store.list_bids(auction_id)
        return any(b.bidder_id == bidder_id for b in bids)

    async def _best_amounts(self, auction_id: UUID) -> dict[UUID, Decimal]:
        bids = await self.store.list_bids(auction_id)
        return {s.bidder_id: s.amount for s in rank_bids(bids)}

    async def shortlist(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """Shortlist the top bidders of an auction by best-bid ranking.

        The top `shortlist_size` eligible bidders become `short-listed`,
        every other participant `not-short-listed`. Disqualified bidders are
        left out and keep their row; reported ranks count eligible bidders
        only.

        Args:
            auction_ref: Auction UUID or code

        Returns:
            Outcome with the shortlisted and not-shortlisted bidder ids
        """
        now = self.clock.now()
        try:
            async with self.store.transaction():
                auction = await self._locked_auction(auction_ref)
                if auction is None:
                    return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")

                if auction.status is AuctionStatus.CANCELLED:
                    return Outcome.precondition("AUCTION_CANCELLED", "Cannot shortlist a cancelled auction")
                if auction.status is AuctionStatus.REJECTED:
                    return Outcome.precondition("AUCTION_REJECTED", "Cannot shortlist a rejected auction")
                if auction.status is AuctionStatus.PENDING:
                    return Outcome.precondition(
                        "AUCTION_NOT_APPROVED", "Cannot shortlist an auction that is not approved"
                    )

                results = await self.store.list_results(auction.id)
                if any(r.status in SHORTLIST_STATUSES for r in results):
                    return Outcome.precondition(
                        "ALREADY_SHORTLISTED", "Auction has already been shortlisted"
                    )

                bids = await self.store.list_bids(auction.id)
                if not bids:
                    return Outcome.precondition("NO_BIDS", "Auction has no bids to shortlist")

                disqualified = {r.bidder_id for r in results if r.status is ResultStatus.DISQUALIFIED}
                standings = [s for s in rank_bids(bids) if s.bidder_id not in disqualified]
                if not standings:
                    return Outcome.precondition(
                        "NO_ELIGIBLE_BIDDERS", "Every bidder of this auction is disqualified"
                    )

                top = standings[: self.shortlist_size]
                rest = standings[self.shortlist_size:]
                for standing in top:
                    await self.store.upsert_result(
                        auction.id, standing.bidder_id, ResultStatus.SHORT_LISTED, shortlisted_at=now
                    )
                for standing in rest:
                    await self.store.upsert_result(
                        auction.id, standing.bidder_id, ResultStatus.NOT_SHORT_LISTED
                    )
        except StoreError as e:
            return store_failure(logger, f"Shortlisting auction {auction_ref}", e)

        logger.info(
            f"Auction {auction.auction_code} shortlisted: {len(top)} short-listed, "
            f"{len(rest)} not short-listed"
        )

        amounts = {s.bidder_id: s.amount for s in top}
        await self._email_bidders(
            auction,
            [s.bidder_id for s in top],
            lambda bidder: self.email_service.send_shortlist(bidder, auction, amounts.get(bidder.id)),
        )

        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "short_listed": [
                {"bidder_id": s.bidder_id, "rank": position, "amount": s.amount}
                for position, s in enumerate(top, start=1)
            ],
            "not_short_listed": [s.bidder_id for s in rest],
            "shortlisted_at": now,
        })

    async def award(self, auction_ref: AuctionRef, bidder_id: UUID) -> Outcome[dict]:
        """Award an auction to a short-listed bidder.

        Every other `short-listed` or `awarded` row of the auction becomes
        `not_awarded` in the same transaction.
        """
        try:
            async with self.store.transaction():
                auction = await self._locked_auction(auction_ref)
                if auction is None:
                    return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
                if auction.status is AuctionStatus.CANCELLED:
                    return Outcome.precondition("AUCTION_CANCELLED", "Cannot award a cancelled auction")

                current = await self.store.get_result(auction.id, bidder_id)
                if current is None or current.status is not ResultStatus.SHORT_LISTED:
                    return Outcome.precondition(
                        "NOT_SHORTLISTED",
                        "Only a short-listed bidder can be awarded",
                        current_status=current.status.value if current else None,
                    )

                # Demote peers first; a single awarded row per auction is enforced by the database
                demoted = await self.store.demote_results(
                    auction.id,
                    [ResultStatus.SHORT_LISTED, ResultStatus.AWARDED],
                    ResultStatus.NOT_AWARDED,
                    exclude_bidder_id=bidder_id,
                )
                await self.store.upsert_result(auction.id, bidder_id, ResultStatus.AWARDED)
                amounts = await self._best_amounts(auction.id)
        except StoreError as e:
            return store_failure(logger, f"Awarding auction {auction_ref} to {bidder_id}", e)

        logger.info(
            f"Auction {auction.auction_code} awarded to bidder {bidder_id}, "
            f"{demoted} peers not awarded"
        )

        await self._email_bidders(
            auction,
            [bidder_id],
            lambda bidder: self.email_service.send_award(bidder, auction, amounts.get(bidder.id)),
        )

        return Outcome.success({
            "auction_id": auction.id,
            "bidder_id": bidder_id,
            "status": ResultStatus.AWARDED.value,
            "not_awarded_count": demoted,
        })

    async def not_award(self, auction_ref: AuctionRef, bidder_id: UUID) -> Outcome[dict]:
        """Mark a short-listed bidder as not awarded; peers are untouched."""
        try:
            async with self.store.transaction():
                auction = await self._locked_auction(auction_ref)
                if auction is None:
                    return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")

                current = await self.store.get_result(auction.id, bidder_id)
                if current is None or current.status is not ResultStatus.SHORT_LISTED:
                    return Outcome.precondition(
                        "NOT_SHORTLISTED",
                        "Only a short-listed bidder can be marked as not awarded",
                        current_status=current.status.value if current else None,
                    )

                await self.store.upsert_result(auction.id, bidder_id, ResultStatus.NOT_AWARDED)
        except StoreError as e:
            return store_failure(logger, f"Marking bidder {bidder_id} not awarded", e)

        logger.info(f"Auction {auction.auction_code}: bidder {bidder_id} not awarded")
        return Outcome.success({
            "auction_id": auction.id,
            "bidder_id": bidder_id,
            "status": ResultStatus.NOT_AWARDED.value,
        })

    async def disqualify(self, auction_ref: AuctionRef, bidder_id: UUID, reason: str) -> Outcome[dict]:
        """Disqualify a bidder with a mandatory reason.

        Refused when the bidder neither is invited to the auction nor has
        bid in it, or is already `awarded` or `cancel`.
        """
        reason = (reason or "").strip()
        if not reason:
            return _reason_required("disqualify a bidder")

        try:
            async with self.store.transaction():
                auction = await self._locked_auction(auction_ref)
                if auction is None:
                    return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")

                bidder = await self.store.get_bidder(bidder_id)
                if bidder is None:
                    return Outcome.not_found("BIDDER_NOT_FOUND", "Bidder not found")

                if not await self._is_participant(auction.id, bidder_id):
                    return Outcome.precondition(
                        "NOT_A_PARTICIPANT",
                        "Bidder is not invited to this auction and has not bid in it",
                    )

                current = await self.store.get_result(auction.id, bidder_id)
                if current is not None and current.status in (ResultStatus.AWARDED, ResultStatus.CANCEL):
                    return Outcome.precondition(
                        "INVALID_RESULT_TRANSITION",
                        f"Cannot disqualify a bidder whose result is {current.status.value}",
                        current_status=current.status.value,
                    )

                await self.store.upsert_result(
                    auction.id, bidder_id, ResultStatus.DISQUALIFIED, reason=reason
                )
        except StoreError as e:
            return store_failure(logger, f"Disqualifying bidder {bidder_id}", e)

        logger.info(f"Auction {auction.auction_code}: bidder {bidder_id} disqualified")

        if self.email_service is not None:
            await self.email_service.send_disqualification(bidder, auction, reason)

        return Outcome.success({
            "auction_id": auction.id,
            "bidder_id": bidder_id,
            "status": ResultStatus.DISQUALIFIED.value,
            "reason": reason,
        })

    async def cancel(
        self, auction_ref: AuctionRef, reason: str, cancelled_by: Optional[UUID] = None
    ) -> Outcome[dict]:
        """Cancel an auction and write a `cancel` result for every bidder who bid.

        Refused when the auction is already cancelled or rejected, or when any
        result is already `awarded` or `not_awarded`.
        """
        reason = (reason or "").strip()
        if not reason:
            return _reason_required("cancel an auction")

        now = self.clock.now()
        try:
            async with self.store.transaction():
                auction = await self._locked_auction(auction_ref)
                if auction is None:
                    return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")

                if auction.status is AuctionStatus.CANCELLED:
                    return Outcome.precondition("ALREADY_CANCELLED", "Auction is already cancelled")
                if auction.status is AuctionStatus.REJECTED:
                    return Outcome.precondition("AUCTION_REJECTED", "Cannot cancel a rejected auction")

                results = await self.store.list_results(auction.id)
                if any(r.status in (ResultStatus.AWARDED, ResultStatus.NOT_AWARDED) for r in results):
                    return Outcome.precondition(
                        "ALREADY_AWARDED", "Cannot cancel an auction whose award decision is recorded"
                    )

                updated = await self.store.update_auction_status(
                    auction.id,
                    AuctionStatus.CANCELLED,
                    expected_current_status=auction.status,
                    cancelled_by=cancelled_by,
                    cancelled_at=now,
                    cancellation_reason=reason,
                )
                if not updated:
                    return Outcome.precondition(
                        "STATUS_CHANGED", "Auction status changed, please retry"
                    )

                bids = await self.store.list_bids(auction.id)
                bidder_ids = list(dict.fromkeys(b.bidder_id for b in bids))
                for bidder_id in bidder_ids:
                    await self.store.upsert_result(
                        auction.id, bidder_id, ResultStatus.CANCEL, reason=reason
                    )
        except StoreError as e:
            return store_failure(logger, f"Cancelling auction {auction_ref}", e)

        logger.info(
            f"Auction {auction.auction_code} cancelled from {auction.status.value}, "
            f"{len(bidder_ids)} bidders notified"
        )

        await self._email_bidders(
            auction,
            bidder_ids,
            lambda bidder: self.email_service.send_cancellation(bidder, auction, reason),
        )
        if self.gateway is not None:
            await self.gateway.broadcast_status_change(
                auction.id,
                AuctionStatus.CANCELLED.value,
                status_message(AuctionStatus.CANCELLED),
                now,
            )

        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "status": AuctionStatus.CANCELLED.value,
            "previous_status": auction.status.value,
            "cancelled_bidders": bidder_ids,
            "cancelled_at": now,
        })

    async def get_results(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """List result rows of an auction with bidder details and best bids."""
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            results = await self.store.list_results(auction.id)
            standings = {s.bidder_id: s for s in rank_bids(await self.store.list_bids(auction.id))}
            profiles = await self.store.get_bidders(r.bidder_id for r in results)
        except StoreError as e:
            return store_failure(logger, f"Loading results of auction {auction_ref}", e)

        rows = []
        for result in results:
            standing = standings.get(result.bidder_id)
            profile = profiles.get(result.bidder_id)
            rows.append({
                "bidder_id": result.bidder_id,
                "bidder_code": profile.user_code if profile else None,
                "bidder_name": profile.name if profile else None,
                "company": profile.company if profile else None,
                "status": result.status.value,
                "rank": standing.rank if standing else None,
                "best_amount": standing.amount if standing else None,
                "disqualification_reason": result.disqualification_reason,
                "cancel_reason": result.cancel_reason,
                "shortlisted_at": result.shortlisted_at,
            })
        rows.sort(key=lambda row: (row["rank"] is None, row["rank"] or 0))

        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "status": auction.status.value,
            "currency": auction.currency.value,
            "results": rows,
        })

    async def _email_bidders(self, auction: AuctionRecord, bidder_ids: list[UUID], send) -> None:
        if self.email_service is None or not bidder_ids:
            return
        try:
            bidders = await self.store.get_bidders(bidder_ids)
        except StoreError as e:
            logger.warning(f"Could not load bidders to email for auction {auction.auction_code}: {e}")
            return
        for bidder_id in bidder_ids:
            bidder = bidders.get(bidder_id)
            if bidder is None:
                logger.warning(f"Bidder {bidder_id} not found, email skipped")
                continue
            await send(bidder)
