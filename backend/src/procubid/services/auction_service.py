"""Auction administration: create, update, approve, reject, list, delete."""

import logging
import re
from datetime import date, time
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

from procubid.core.clock import Clock
from procubid.core.errors import ErrorKind, Outcome, store_failure
from procubid.models.enums import (
    BIDDER_VISIBLE_STATUSES,
    AuctionStatus,
    CalculatedStatus,
    Currency,
    UserRole,
)
from procubid.services.email_service import EmailService
from procubid.services.liveness import evaluate
from procubid.store.base import AuctionRef, AuctionStore, StoreError
from procubid.store.records import AuctionRecord

logger = logging.getLogger(__name__)

AUCTION_CODE_PREFIX = "AUC"
FIRST_AUCTION_NUMBER = 1001

SCHEDULE_FIELDS = ("auction_date", "start_time", "duration_minutes")
EDITABLE_FIELDS = (
    "title",
    "category",
    "sbu",
    "special_notices",
    "auction_date",
    "start_time",
    "duration_minutes",
    "ceiling_price",
    "step_amount",
    "currency",
)


def next_auction_code(last_code: Optional[str]) -> str:
    """Issue the code following `last_code` (AUC1001, AUC1002, ...)."""
    if last_code:
        match = re.search(r"(\d+)$", last_code)
        if match:
            return f"{AUCTION_CODE_PREFIX}{int(match.group(1)) + 1}"
    return f"{AUCTION_CODE_PREFIX}{FIRST_AUCTION_NUMBER}"


def _invalid(message: str, **details: Any) -> Outcome:
    return Outcome.failure(ErrorKind.VALIDATION, "VALIDATION_ERROR", message, **details)


def check_economics(ceiling: Optional[Decimal], step: Optional[Decimal]) -> Optional[str]:
    if ceiling is None or ceiling <= 0:
        return "Ceiling price must be greater than 0"
    if step is None or step <= 0:
        return "Step amount must be greater than 0"
    if step >= ceiling:
        return "Step amount must be less than the ceiling price"
    return None


class AuctionService:
    """Service class for auction administration."""

    def __init__(
        self,
        store: AuctionStore,
        clock: Clock,
        email_service: Optional[EmailService] = None,
    ):
        self.store = store
        self.clock = clock
        self.email_service = email_service

    def _check_schedule(self, auction_date: date, start_time: time, duration: int) -> Optional[str]:
        if auction_date is None or start_time is None:
            return "Auction date and start time are required"
        if duration is None or duration <= 0:
            return "Duration must be greater than 0 minutes"
        starts_at = self.clock.localize(auction_date, start_time)
        if starts_at <= self.clock.now():
            return "Auction start time must be in the future"
        return None

    async def _check_bidders(self, bidder_ids: Iterable[UUID]) -> Optional[Outcome]:
        ids = list(dict.fromkeys(bidder_ids))
        if not ids:
            return _invalid("At least one bidder must be invited")

        bidders = await self.store.get_bidders(ids)
        missing = [str(i) for i in ids if i not in bidders]
        if missing:
            return _invalid("Some invited bidders do not exist", invalid_bidders=missing)

        unusable = [
            str(b.id)
            for b in bidders.values()
            if not b.is_active or b.role != UserRole.BIDDER.value
        ]
        if unusable:
            return _invalid(
                "Invited users must be active bidders", invalid_bidders=unusable
            )
        return None

    async def create_auction(self, data: dict[str, Any], created_by: Optional[UUID]) -> Outcome[dict]:
        """Create a pending auction and its invitations.

        Args:
            data: Auction fields plus `invited_bidders`
            created_by: Admin user UUID

        Returns:
            Outcome with the created auction and invited bidder ids
        """
        error = check_economics(data.get("ceiling_price"), data.get("step_amount"))
        if error is None:
            error = self._check_schedule(
                data["auction_date"], data["start_time"], data.get("duration_minutes")
            )
        if error is not None:
            return _invalid(error)

        invited = list(dict.fromkeys(data.get("invited_bidders") or []))
        try:
            bidder_error = await self._check_bidders(invited)
            if bidder_error is not None:
                return bidder_error

            async with self.store.transaction():
                # Held until commit so concurrent creators never read the same latest code
                await self.store.lock_auction_codes()
                code = next_auction_code(await self.store.latest_auction_code())
                fields = {k: data[k] for k in EDITABLE_FIELDS if k in data}
                fields["currency"] = Currency(fields.get("currency", Currency.LKR)).value
                fields.update(
                    auction_code=code,
                    status=AuctionStatus.PENDING.value,
                    created_by=created_by,
                )
                auction = await self.store.create_auction(fields)
                await self.store.set_invitations(auction.id, invited)
        except StoreError as e:
            return store_failure(logger, "Creating auction", e)

        logger.info(f"Auction {auction.auction_code} created with {len(invited)} invited bidders")
        return Outcome.success({"auction": auction, "invited_bidders": invited})

    async def update_auction(self, auction_ref: AuctionRef, data: dict[str, Any]) -> Outcome[dict]:
        """Update a pending or approved auction that has not started.

        Refused once the auction is live or ended, or when its persisted
        status is terminal. `invited_bidders`, when given, replaces the
        invitation set.
        """
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")

            liveness = evaluate(auction, self.clock.now(), self.clock.tz)
            if auction.status.is_terminal or liveness.calculated_status in (
                CalculatedStatus.LIVE,
                CalculatedStatus.ENDED,
            ):
                return Outcome.precondition(
                    "AUCTION_NOT_EDITABLE",
                    f"Cannot update an auction that is {liveness.calculated_status.value}",
                    calculated_status=liveness.calculated_status.value,
                )

            fields = {k: data[k] for k in EDITABLE_FIELDS if k in data and data[k] is not None}
            error = check_economics(
                fields.get("ceiling_price", auction.ceiling_price),
                fields.get("step_amount", auction.step_amount),
            )
            if error is None and any(k in fields for k in SCHEDULE_FIELDS):
                error = self._check_schedule(
                    fields.get("auction_date", auction.auction_date),
                    fields.get("start_time", auction.start_time),
                    fields.get("duration_minutes", auction.duration_minutes),
                )
            if error is not None:
                return _invalid(error)
            if "currency" in fields:
                fields["currency"] = Currency(fields["currency"]).value

            invited = data.get("invited_bidders")
            if invited is not None:
                invited = list(dict.fromkeys(invited))
                bidder_error = await self._check_bidders(invited)
                if bidder_error is not None:
                    return bidder_error

            async with self.store.transaction():
                if fields:
                    auction = await self.store.update_auction_fields(auction.id, fields)
                if invited is not None:
                    await self.store.set_invitations(auction.id, invited)
            bidders = await self.store.list_invited_bidders(auction.id)
        except StoreError as e:
            return store_failure(logger, f"Updating auction {auction_ref}", e)

        logger.info(f"Auction {auction.auction_code} updated: {sorted(fields)}")
        return Outcome.success({"auction": auction, "invited_bidders": [b.id for b in bidders]})

    async def approve_auction(self, auction_ref: AuctionRef, approved_by: Optional[UUID]) -> Outcome[dict]:
        """Approve a pending auction and email its invitations."""
        now = self.clock.now()
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            if auction.status is not AuctionStatus.PENDING:
                return Outcome.precondition(
                    "INVALID_STATUS_TRANSITION",
                    f"Only pending auctions can be approved (current status: {auction.status.value})",
                    current_status=auction.status.value,
                )

            updated = await self.store.update_auction_status(
                auction.id,
                AuctionStatus.APPROVED,
                expected_current_status=AuctionStatus.PENDING,
                approved_by=approved_by,
                approved_at=now,
            )
            if not updated:
                return Outcome.precondition("STATUS_CHANGED", "Auction status changed, please retry")
            bidders = await self.store.list_invited_bidders(auction.id)
        except StoreError as e:
            return store_failure(logger, f"Approving auction {auction_ref}", e)

        logger.info(f"Auction {auction.auction_code} approved by {approved_by}")

        if self.email_service is not None:
            starts_at = evaluate(auction, now, self.clock.tz).starts_at
            for bidder in bidders:
                await self.email_service.send_invitation(bidder, auction, starts_at)

        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "status": AuctionStatus.APPROVED.value,
            "approved_at": now,
        })

    async def reject_auction(
        self, auction_ref: AuctionRef, rejected_by: Optional[UUID], reason: str
    ) -> Outcome[dict]:
        """Reject a pending auction with a mandatory reason."""
        reason = (reason or "").strip()
        if not reason:
            return Outcome.failure(
                ErrorKind.VALIDATION, "REASON_REQUIRED", "A reason is required to reject an auction"
            )

        now = self.clock.now()
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            if auction.status is not AuctionStatus.PENDING:
                return Outcome.precondition(
                    "INVALID_STATUS_TRANSITION",
                    f"Only pending auctions can be rejected (current status: {auction.status.value})",
                    current_status=auction.status.value,
                )

            updated = await self.store.update_auction_status(
                auction.id,
                AuctionStatus.REJECTED,
                expected_current_status=AuctionStatus.PENDING,
                rejected_by=rejected_by,
                rejected_at=now,
                rejection_reason=reason,
            )
            if not updated:
                return Outcome.precondition("STATUS_CHANGED", "Auction status changed, please retry")
        except StoreError as e:
            return store_failure(logger, f"Rejecting auction {auction_ref}", e)

        logger.info(f"Auction {auction.auction_code} rejected by {rejected_by}")
        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "status": AuctionStatus.REJECTED.value,
            "rejected_at": now,
            "rejection_reason": reason,
        })

    async def get_status(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """Persisted and calculated status of an auction at the current instant."""
        try:
            auction = await self.store.get_auction(auction_ref)
        except StoreError as e:
            return store_failure(logger, f"Loading status of auction {auction_ref}", e)
        if auction is None:
            return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")

        now = self.clock.now()
        liveness = evaluate(auction, now, self.clock.tz)
        return Outcome.success({
            "auction_id": auction.id,
            "auction_code": auction.auction_code,
            "status": auction.status.value,
            "calculated_status": liveness.calculated_status.value,
            "is_live": liveness.is_live,
            "starts_at": liveness.starts_at,
            "ends_at": liveness.ends_at,
            "seconds_until_start": liveness.seconds_until_start(now),
            "seconds_remaining": liveness.seconds_remaining(now),
            "server_time": self.clock.format(now),
            "timezone": self.clock.timezone_name,
        })

    async def get_auction(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """Auction details with invited bidders and calculated status."""
        try:
            auction = await self.store.get_auction(auction_ref)
            if auction is None:
                return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
            bidders = await self.store.list_invited_bidders(auction.id)
        except StoreError as e:
            return store_failure(logger, f"Loading auction {auction_ref}", e)

        liveness = evaluate(auction, self.clock.now(), self.clock.tz)
        return Outcome.success({
            "auction": auction,
            "calculated_status": liveness.calculated_status.value,
            "is_live": liveness.is_live,
            "starts_at": liveness.starts_at,
            "ends_at": liveness.ends_at,
            "invited_bidders": bidders,
        })

    def _with_liveness(self, auctions: list[AuctionRecord]) -> list[dict]:
        now = self.clock.now()
        rows = []
        for auction in auctions:
            liveness = evaluate(auction, now, self.clock.tz)
            rows.append({
                "auction": auction,
                "calculated_status": liveness.calculated_status.value,
                "is_live": liveness.is_live,
                "starts_at": liveness.starts_at,
                "ends_at": liveness.ends_at,
                "seconds_until_start": liveness.seconds_until_start(now),
                "seconds_remaining": liveness.seconds_remaining(now),
            })
        return rows

    async def list_auctions(
        self,
        role: UserRole,
        user_id: UUID,
        status: Optional[AuctionStatus] = None,
        auction_date: Optional[date] = None,
    ) -> Outcome[dict]:
        """List the auctions visible to a caller, latest schedule first.

        Admins see every auction. Bidders see only the approved, live and
        ended auctions they are invited to.
        """
        if role is UserRole.BIDDER:
            statuses = [s for s in BIDDER_VISIBLE_STATUSES if status is None or s is status]
            invited_bidder_id = user_id
        else:
            statuses = [status] if status is not None else None
            invited_bidder_id = None

        try:
            auctions = await self.store.list_auctions(statuses, auction_date, invited_bidder_id)
        except StoreError as e:
            return store_failure(logger, "Listing auctions", e)

        rows = self._with_liveness(auctions)
        return Outcome.success({"auctions": rows, "count": len(rows)})

    async def list_admin_auctions(self) -> Outcome[dict]:
        """Every auction with its invited bidders and approval details."""
        try:
            auctions = await self.store.list_auctions()
            invited = {a.id: await self.store.list_invited_bidders(a.id) for a in auctions}
        except StoreError as e:
            return store_failure(logger, "Listing auctions for administration", e)

        rows = self._with_liveness(auctions)
        for row in rows:
            row["invited_bidders"] = invited[row["auction"].id]
        return Outcome.success({"auctions": rows, "count": len(rows)})

    async def live_auctions_for_bidder(self, bidder_id: UUID) -> Outcome[dict]:
        """Invited approved and live auctions split into live, upcoming and ended."""
        try:
            auctions = await self.store.list_auctions(
                [AuctionStatus.APPROVED, AuctionStatus.LIVE], invited_bidder_id=bidder_id
            )
        except StoreError as e:
            return store_failure(logger, f"Listing live auctions for bidder {bidder_id}", e)

        groups: dict[str, list[dict]] = {"live": [], "upcoming": [], "ended": []}
        for row in self._with_liveness(auctions):
            calculated = row["calculated_status"]
            if calculated == CalculatedStatus.LIVE.value:
                groups["live"].append(row)
            elif calculated == CalculatedStatus.APPROVED.value:
                groups["upcoming"].append(row)
            elif calculated == CalculatedStatus.ENDED.value:
                groups["ended"].append(row)

        # Soonest first within each group
        for name in ("live", "upcoming"):
            groups[name].sort(key=lambda row: row["starts_at"])

        live_count = len(groups["live"])
        if live_count:
            message = f"You have {live_count} live auction(s)"
        else:
            message = "No live auctions at the moment"
        return Outcome.success({
            **groups,
            "message": message,
            "server_time": self.clock.format(self.clock.now()),
        })

    async def delete_auction(self, auction_ref: AuctionRef) -> Outcome[dict]:
        """Delete an auction that is not live and has received no bids."""
        try:
            async with self.store.transaction():
                auction = await self.store.get_auction(auction_ref)
                if auction is None:
                    return Outcome.not_found("AUCTION_NOT_FOUND", "Auction not found")
                auction = await self.store.lock_auction(auction.id)

                liveness = evaluate(auction, self.clock.now(), self.clock.tz)
                if liveness.is_live:
                    return Outcome.precondition("AUCTION_LIVE", "Cannot delete a live auction")

                bids = await self.store.list_bids(auction.id)
                if bids:
                    return Outcome.precondition(
                        "AUCTION_HAS_BIDS",
                        "Cannot delete auction that has received bids",
                        total_bids=len(bids),
                    )

                await self.store.delete_auction(auction.id)
        except StoreError as e:
            return store_failure(logger, f"Deleting auction {auction_ref}", e)

        logger.info(f"Auction {auction.auction_code} deleted")
        return Outcome.success({"auction_id": auction.id, "auction_code": auction.auction_code})
