"""Abstract auction record store."""

import uuid
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from procubid.models.enums import AuctionStatus, ResultStatus
from procubid.store.records import AuctionRecord, BidderRecord, BidRecord, ResultRecord

AuctionRef = uuid.UUID | str


class StoreError(Exception):
    """Raised by store implementations when the backing database fails."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}" if detail else f"{operation} failed")


class AuctionStore(ABC):
    """Persistence seam used by every service.

    Implementations return canonical records from `procubid.store.records`
    and raise StoreError on backend failure. Writes made inside
    `transaction()` are committed together when the block exits cleanly.
    """

    # Auctions

    @abstractmethod
    async def get_auction(self, ref: AuctionRef) -> Optional[AuctionRecord]:
        """Look up an auction by UUID or by its external code."""

    @abstractmethod
    async def list_open_auctions(self) -> list[AuctionRecord]:
        """Auctions whose persisted status is pending, approved or live."""

    @abstractmethod
    async def list_auctions(
        self,
        statuses: Optional[Sequence[AuctionStatus]] = None,
        auction_date: Optional[date] = None,
        invited_bidder_id: Optional[uuid.UUID] = None,
    ) -> list[AuctionRecord]:
        """Auctions matching the filters, latest schedule first.

        `invited_bidder_id` keeps only auctions that bidder is invited to.
        """

    @abstractmethod
    async def update_auction_status(
        self,
        auction_id: uuid.UUID,
        new_status: AuctionStatus,
        expected_current_status: Optional[AuctionStatus] = None,
        **audit: Any,
    ) -> bool:
        """Persist a status change.

        Returns False when `expected_current_status` is given and the stored
        status no longer matches it.
        """

    @abstractmethod
    async def lock_auction_codes(self) -> None:
        """Serialize auction code issuance until the transaction ends."""

    @abstractmethod
    async def latest_auction_code(self) -> Optional[str]:
        ...

    @abstractmethod
    async def create_auction(self, fields: dict[str, Any]) -> AuctionRecord:
        ...

    @abstractmethod
    async def update_auction_fields(
        self, auction_id: uuid.UUID, fields: dict[str, Any]
    ) -> AuctionRecord:
        ...

    @abstractmethod
    async def delete_auction(self, auction_id: uuid.UUID) -> bool:
        """Delete an auction with its invitations and result rows."""

    @abstractmethod
    async def lock_auction(self, auction_id: uuid.UUID) -> Optional[AuctionRecord]:
        """Re-read an auction holding a row lock until the transaction ends."""

    # Invitations and bidders

    @abstractmethod
    async def is_invited(self, auction_id: uuid.UUID, bidder_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def set_invitations(
        self, auction_id: uuid.UUID, bidder_ids: Iterable[uuid.UUID]
    ) -> None:
        """Replace the invitation set of an auction."""

    @abstractmethod
    async def list_invited_bidders(self, auction_id: uuid.UUID) -> list[BidderRecord]:
        ...

    @abstractmethod
    async def get_bidder(self, bidder_id: uuid.UUID) -> Optional[BidderRecord]:
        ...

    @abstractmethod
    async def get_bidders(self, bidder_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, BidderRecord]:
        ...

    # Bids

    @abstractmethod
    async def insert_bid(
        self,
        auction_id: uuid.UUID,
        bidder_id: uuid.UUID,
        amount: Decimal,
        bid_time: datetime,
    ) -> BidRecord:
        ...

    @abstractmethod
    async def list_bids(self, auction_id: uuid.UUID) -> list[BidRecord]:
        ...

    @abstractmethod
    async def list_bids_for_bidder(self, bidder_id: uuid.UUID) -> list[BidRecord]:
        """Every bid placed by a bidder across all auctions."""

    # Results

    @abstractmethod
    async def get_result(
        self, auction_id: uuid.UUID, bidder_id: uuid.UUID
    ) -> Optional[ResultRecord]:
        ...

    @abstractmethod
    async def list_results(self, auction_id: uuid.UUID) -> list[ResultRecord]:
        ...

    @abstractmethod
    async def list_results_by_status(self, status: ResultStatus) -> list[ResultRecord]:
        """Result rows in `status` across every auction."""

    @abstractmethod
    async def list_results_for_bidder(self, bidder_id: uuid.UUID) -> list[ResultRecord]:
        ...

    @abstractmethod
    async def upsert_result(
        self,
        auction_id: uuid.UUID,
        bidder_id: uuid.UUID,
        status: ResultStatus,
        reason: Optional[str] = None,
        shortlisted_at: Optional[datetime] = None,
    ) -> ResultRecord:
        """Insert or overwrite the (auction, bidder) result row.

        `reason` is stored as the disqualification reason for `disqualified`
        and as the cancel reason for `cancel`.
        """

    @abstractmethod
    async def demote_results(
        self,
        auction_id: uuid.UUID,
        from_statuses: Sequence[ResultStatus],
        to_status: ResultStatus,
        exclude_bidder_id: Optional[uuid.UUID] = None,
    ) -> int:
        """Move every matching row to `to_status`; returns the row count."""

    # Transactions

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        ...
