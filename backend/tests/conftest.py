"""Pytest configuration and fixtures for testing."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from procubid.core.clock import FixedClock
from procubid.models.enums import OPEN_AUCTION_STATUSES, AuctionStatus, Currency, ResultStatus
from procubid.store.base import AuctionRef, AuctionStore, StoreError
from procubid.store.records import AuctionRecord, BidderRecord, BidRecord, ResultRecord

COLOMBO = ZoneInfo("Asia/Colombo")


def colombo(*args: int) -> datetime:
    """Aware datetime in the civil timezone."""
    return datetime(*args, tzinfo=COLOMBO)


def make_auction(**overrides: Any) -> AuctionRecord:
    """Approved auction on 2026-03-10 10:00-10:30 (Colombo), ceiling 1000, step 0.05."""
    fields = dict(
        id=uuid.uuid4(),
        auction_code="AUC1001",
        title="Supply of A4 Paper",
        status=AuctionStatus.APPROVED,
        auction_date=date(2026, 3, 10),
        start_time=time(10, 0),
        duration_minutes=30,
        ceiling_price=Decimal("1000.00"),
        step_amount=Decimal("0.05"),
        currency=Currency.LKR,
    )
    fields.update(overrides)
    return AuctionRecord(**fields)


def make_bidder(code: str = "BID0001", **overrides: Any) -> BidderRecord:
    fields = dict(
        id=uuid.uuid4(),
        user_code=code,
        name=f"Bidder {code}",
        email=f"{code.lower()}@test.com",
        company=f"{code} Supplies",
    )
    fields.update(overrides)
    return BidderRecord(**fields)


class FakeAuctionStore(AuctionStore):
    """In-memory AuctionStore.

    `transaction()` serializes callers with a lock and restores a snapshot
    when the block raises. Operation names in `fail_on` raise StoreError.
    """

    def __init__(self):
        self.auctions: dict[uuid.UUID, AuctionRecord] = {}
        self.bidders: dict[uuid.UUID, BidderRecord] = {}
        self.invitations: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self.bids: list[BidRecord] = []
        self.results: dict[tuple[uuid.UUID, uuid.UUID], ResultRecord] = {}
        self.fail_on: set[str] = set()
        self.status_updates: list[tuple[uuid.UUID, AuctionStatus]] = []
        self.code_locks = 0
        self._sequence = 0
        self._lock = asyncio.Lock()

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(operation, "simulated failure")

    # Test helpers

    def add_auction(self, auction: AuctionRecord) -> AuctionRecord:
        self.auctions[auction.id] = auction
        return auction

    def add_bidder(self, bidder: BidderRecord, invite_to: Optional[AuctionRecord] = None) -> BidderRecord:
        self.bidders[bidder.id] = bidder
        if invite_to is not None:
            self.invitations.add((invite_to.id, bidder.id))
        return bidder

    def add_bid(
        self, auction: AuctionRecord, bidder: BidderRecord, amount: str, bid_time: datetime
    ) -> BidRecord:
        self._sequence += 1
        bid = BidRecord(
            id=uuid.uuid4(),
            auction_id=auction.id,
            bidder_id=bidder.id,
            amount=Decimal(amount),
            bid_time=bid_time,
            sequence=self._sequence,
        )
        self.bids.append(bid)
        return bid

    def result_status(self, auction: AuctionRecord, bidder: BidderRecord) -> Optional[ResultStatus]:
        row = self.results.get((auction.id, bidder.id))
        return row.status if row else None

    # Auctions

    async def get_auction(self, ref: AuctionRef) -> Optional[AuctionRecord]:
        self._check("get_auction")
        try:
            return self.auctions.get(ref if isinstance(ref, uuid.UUID) else uuid.UUID(str(ref)))
        except ValueError:
            code = str(ref).strip()
            return next((a for a in self.auctions.values() if a.auction_code == code), None)

    async def list_open_auctions(self) -> list[AuctionRecord]:
        self._check("list_open_auctions")
        return [a for a in self.auctions.values() if a.status in OPEN_AUCTION_STATUSES]

    async def list_auctions(
        self,
        statuses: Optional[Sequence[AuctionStatus]] = None,
        auction_date: Optional[date] = None,
        invited_bidder_id: Optional[uuid.UUID] = None,
    ) -> list[AuctionRecord]:
        self._check("list_auctions")
        rows = [
            a
            for a in self.auctions.values()
            if (statuses is None or a.status in statuses)
            and (auction_date is None or a.auction_date == auction_date)
            and (invited_bidder_id is None or (a.id, invited_bidder_id) in self.invitations)
        ]
        return sorted(rows, key=lambda a: (a.auction_date or date.min, a.start_time or time.min), reverse=True)

    async def update_auction_status(
        self,
        auction_id: uuid.UUID,
        new_status: AuctionStatus,
        expected_current_status: Optional[AuctionStatus] = None,
        **audit: Any,
    ) -> bool:
        self._check("update_auction_status")
        auction = self.auctions.get(auction_id)
        if auction is None:
            return False
        if expected_current_status is not None and auction.status is not expected_current_status:
            return False
        fields = {k: v for k, v in audit.items() if hasattr(auction, k)}
        self.auctions[auction_id] = replace(auction, status=new_status, **fields)
        self.status_updates.append((auction_id, new_status))
        return True

    async def lock_auction_codes(self) -> None:
        self.code_locks += 1

    async def latest_auction_code(self) -> Optional[str]:
        codes = sorted(self.auctions.values(), key=lambda a: (len(a.auction_code), a.auction_code))
        return codes[-1].auction_code if codes else None

    async def create_auction(self, fields: dict[str, Any]) -> AuctionRecord:
        self._check("create_auction")
        values = dict(fields)
        values["status"] = AuctionStatus(values["status"])
        values["currency"] = Currency(values.get("currency", "LKR"))
        auction = AuctionRecord(id=uuid.uuid4(), **values)
        self.auctions[auction.id] = auction
        return auction

    async def update_auction_fields(self, auction_id: uuid.UUID, fields: dict[str, Any]) -> AuctionRecord:
        self._check("update_auction_fields")
        values = dict(fields)
        if "currency" in values:
            values["currency"] = Currency(values["currency"])
        self.auctions[auction_id] = replace(self.auctions[auction_id], **values)
        return self.auctions[auction_id]

    async def delete_auction(self, auction_id: uuid.UUID) -> bool:
        self._check("delete_auction")
        self.invitations = {pair for pair in self.invitations if pair[0] != auction_id}
        self.results = {k: r for k, r in self.results.items() if k[0] != auction_id}
        return self.auctions.pop(auction_id, None) is not None

    async def lock_auction(self, auction_id: uuid.UUID) -> Optional[AuctionRecord]:
        self._check("lock_auction")
        return self.auctions.get(auction_id)

    # Invitations and bidders

    async def is_invited(self, auction_id: uuid.UUID, bidder_id: uuid.UUID) -> bool:
        self._check("is_invited")
        return (auction_id, bidder_id) in self.invitations

    async def set_invitations(self, auction_id: uuid.UUID, bidder_ids: Iterable[uuid.UUID]) -> None:
        self.invitations = {pair for pair in self.invitations if pair[0] != auction_id}
        self.invitations.update((auction_id, b) for b in bidder_ids)

    async def list_invited_bidders(self, auction_id: uuid.UUID) -> list[BidderRecord]:
        return [self.bidders[b] for a, b in self.invitations if a == auction_id and b in self.bidders]

    async def get_bidder(self, bidder_id: uuid.UUID) -> Optional[BidderRecord]:
        return self.bidders.get(bidder_id)

    async def get_bidders(self, bidder_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, BidderRecord]:
        self._check("get_bidders")
        return {b: self.bidders[b] for b in bidder_ids if b in self.bidders}

    # Bids

    async def insert_bid(
        self,
        auction_id: uuid.UUID,
        bidder_id: uuid.UUID,
        amount: Decimal,
        bid_time: datetime,
    ) -> BidRecord:
        self._check("insert_bid")
        self._sequence += 1
        bid = BidRecord(
            id=uuid.uuid4(),
            auction_id=auction_id,
            bidder_id=bidder_id,
            amount=amount,
            bid_time=bid_time,
            sequence=self._sequence,
        )
        self.bids.append(bid)
        return bid

    async def list_bids(self, auction_id: uuid.UUID) -> list[BidRecord]:
        self._check("list_bids")
        return [b for b in self.bids if b.auction_id == auction_id]

    async def list_bids_for_bidder(self, bidder_id: uuid.UUID) -> list[BidRecord]:
        return [b for b in self.bids if b.bidder_id == bidder_id]

    # Results

    async def get_result(self, auction_id: uuid.UUID, bidder_id: uuid.UUID) -> Optional[ResultRecord]:
        return self.results.get((auction_id, bidder_id))

    async def list_results(self, auction_id: uuid.UUID) -> list[ResultRecord]:
        return [r for (a, _), r in self.results.items() if a == auction_id]

    async def list_results_by_status(self, status: ResultStatus) -> list[ResultRecord]:
        self._check("list_results_by_status")
        return [r for r in self.results.values() if r.status is status]

    async def list_results_for_bidder(self, bidder_id: uuid.UUID) -> list[ResultRecord]:
        return [r for (_, b), r in self.results.items() if b == bidder_id]

    async def upsert_result(
        self,
        auction_id: uuid.UUID,
        bidder_id: uuid.UUID,
        status: ResultStatus,
        reason: Optional[str] = None,
        shortlisted_at: Optional[datetime] = None,
    ) -> ResultRecord:
        self._check("upsert_result")
        previous = self.results.get((auction_id, bidder_id))
        if status is ResultStatus.AWARDED and any(
            r.status is ResultStatus.AWARDED and r.bidder_id != bidder_id
            for r in await self.list_results(auction_id)
        ):
            raise StoreError("upsert_result", "duplicate key value violates idx_results_one_award")
        row = ResultRecord(
            auction_id=auction_id,
            bidder_id=bidder_id,
            status=status,
            disqualification_reason=reason if status is ResultStatus.DISQUALIFIED else None,
            cancel_reason=reason if status is ResultStatus.CANCEL else None,
            shortlisted_at=shortlisted_at or (previous.shortlisted_at if previous else None),
        )
        self.results[(auction_id, bidder_id)] = row
        return row

    async def demote_results(
        self,
        auction_id: uuid.UUID,
        from_statuses: Sequence[ResultStatus],
        to_status: ResultStatus,
        exclude_bidder_id: Optional[uuid.UUID] = None,
    ) -> int:
        count = 0
        for key, row in list(self.results.items()):
            if key[0] != auction_id or row.bidder_id == exclude_bidder_id:
                continue
            if row.status in from_statuses:
                self.results[key] = replace(row, status=to_status)
                count += 1
        return count

    # Transactions

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            snapshot = (
                dict(self.auctions),
                set(self.invitations),
                list(self.bids),
                dict(self.results),
            )
            try:
                yield
            except BaseException:
                self.auctions, self.invitations, self.bids, self.results = snapshot
                raise


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def store() -> FakeAuctionStore:
    return FakeAuctionStore()


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 2026-03-10 09:00 Colombo, one hour before the default auction."""
    return FixedClock(colombo(2026, 3, 10, 9, 0))


@pytest.fixture
def gateway() -> AsyncMock:
    """Mock BroadcastGateway."""
    gateway = AsyncMock()
    gateway.broadcast_status_change = AsyncMock(return_value=1)
    gateway.broadcast_ranking_update = AsyncMock(return_value=1)
    gateway.send_bid_accepted = AsyncMock(return_value=True)
    return gateway


@pytest.fixture
def email_service() -> MagicMock:
    """Mock EmailService whose sends always succeed."""
    service = MagicMock()
    for name in (
        "send_shortlist",
        "send_award",
        "send_disqualification",
        "send_cancellation",
        "send_invitation",
    ):
        setattr(service, name, AsyncMock(return_value=True))
    return service


@pytest.fixture
def auction(store: FakeAuctionStore) -> AuctionRecord:
    return store.add_auction(make_auction())
