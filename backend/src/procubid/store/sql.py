"""PostgreSQL implementation of the auction store."""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from procubid.models.auction import Auction, AuctionBidder
from procubid.models.bid import Bid
from procubid.models.enums import OPEN_AUCTION_STATUSES, AuctionStatus, ResultStatus
from procubid.models.result import AuctionResult
from procubid.models.user import User
from procubid.store.base import AuctionRef, AuctionStore, StoreError
from procubid.store.records import AuctionRecord, BidderRecord, BidRecord, ResultRecord

logger = logging.getLogger(__name__)

# Key of the transaction-scoped advisory lock guarding auction code issuance
AUCTION_CODE_LOCK_KEY = 72401001


def parse_auction_ref(ref: AuctionRef) -> uuid.UUID | str:
    """Return a UUID when `ref` is one, otherwise the external code."""
    if isinstance(ref, uuid.UUID):
        return ref
    try:
        return uuid.UUID(str(ref))
    except ValueError:
        return str(ref).strip()


class SqlAuctionStore(AuctionStore):
    """AuctionStore backed by an SQLAlchemy async session.

    Outside of `transaction()` every write commits immediately. Inside it,
    writes are flushed and committed once when the block exits.
    """

    def __init__(self, session: AsyncSession):
        self.db = session
        self._in_transaction = False

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Store operation {operation} failed: {e}")
            if not self._in_transaction:
                await self.db.rollback()
            raise StoreError(operation, str(e)) from e

    async def _commit(self) -> None:
        if self._in_transaction:
            await self.db.flush()
        else:
            await self.db.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._in_transaction:
            yield
            return
        self._in_transaction = True
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError("transaction", str(e)) from e
        except BaseException:
            await self.db.rollback()
            raise
        finally:
            self._in_transaction = False

    # Auctions

    async def get_auction(self, ref: AuctionRef) -> Optional[AuctionRecord]:
        key = parse_auction_ref(ref)
        if isinstance(key, uuid.UUID):
            condition = Auction.id == key
        else:
            condition = Auction.auction_code == key
        async with self._guard("get_auction"):
            result = await self.db.execute(
                select(Auction)
                .where(condition)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        return AuctionRecord.from_row(row) if row else None

    async def list_open_auctions(self) -> list[AuctionRecord]:
        statuses = [s.value for s in OPEN_AUCTION_STATUSES]
        async with self._guard("list_open_auctions"):
            result = await self.db.execute(
                select(Auction)
                .where(Auction.status.in_(statuses))
                .order_by(Auction.auction_date, Auction.start_time)
            )
            rows = result.scalars().all()
        return [AuctionRecord.from_row(row) for row in rows]

    async def list_auctions(
        self,
        statuses: Optional[Sequence[AuctionStatus]] = None,
        auction_date: Optional[date] = None,
        invited_bidder_id: Optional[uuid.UUID] = None,
    ) -> list[AuctionRecord]:
        stmt = select(Auction)
        if statuses is not None:
            stmt = stmt.where(Auction.status.in_([s.value for s in statuses]))
        if auction_date is not None:
            stmt = stmt.where(Auction.auction_date == auction_date)
        if invited_bidder_id is not None:
            stmt = stmt.join(AuctionBidder, AuctionBidder.auction_id == Auction.id).where(
                AuctionBidder.bidder_id == invited_bidder_id
            )
        stmt = stmt.order_by(Auction.auction_date.desc(), Auction.start_time.desc())

        async with self._guard("list_auctions"):
            result = await self.db.execute(stmt)
            rows = result.scalars().all()
        return [AuctionRecord.from_row(row) for row in rows]

    async def update_auction_status(
        self,
        auction_id: uuid.UUID,
        new_status: AuctionStatus,
        expected_current_status: Optional[AuctionStatus] = None,
        **audit: Any,
    ) -> bool:
        stmt = (
            update(Auction)
            .where(Auction.id == auction_id)
            .values(status=new_status.value, **audit)
            .returning(Auction.id)
        )
        # Optimistic guard: only move from the status the caller observed
        if expected_current_status is not None:
            stmt = stmt.where(Auction.status == expected_current_status.value)

        async with self._guard("update_auction_status"):
            result = await self.db.execute(stmt)
            updated = result.first()
            await self._commit()
        return updated is not None

    async def lock_auction_codes(self) -> None:
        async with self._guard("lock_auction_codes"):
            await self.db.execute(select(func.pg_advisory_xact_lock(AUCTION_CODE_LOCK_KEY)))

    async def latest_auction_code(self) -> Optional[str]:
        async with self._guard("latest_auction_code"):
            result = await self.db.execute(
                select(Auction.auction_code)
                .order_by(
                    func.length(Auction.auction_code).desc(),
                    Auction.auction_code.desc(),
                )
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def create_auction(self, fields: dict[str, Any]) -> AuctionRecord:
        auction = Auction(**fields)
        async with self._guard("create_auction"):
            self.db.add(auction)
            await self.db.flush()
            await self.db.refresh(auction)
            record = AuctionRecord.from_row(auction)
            await self._commit()
        return record

    async def update_auction_fields(
        self, auction_id: uuid.UUID, fields: dict[str, Any]
    ) -> AuctionRecord:
        async with self._guard("update_auction_fields"):
            result = await self.db.execute(
                update(Auction)
                .where(Auction.id == auction_id)
                .values(**fields)
                .returning(Auction)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one()
            record = AuctionRecord.from_row(row)
            await self._commit()
        return record

    async def delete_auction(self, auction_id: uuid.UUID) -> bool:
        async with self._guard("delete_auction"):
            await self.db.execute(
                delete(AuctionResult).where(AuctionResult.auction_id == auction_id)
            )
            await self.db.execute(
                delete(AuctionBidder).where(AuctionBidder.auction_id == auction_id)
            )
            result = await self.db.execute(
                delete(Auction).where(Auction.id == auction_id).returning(Auction.id)
            )
            deleted = result.first()
            await self._commit()
        return deleted is not None

    async def lock_auction(self, auction_id: uuid.UUID) -> Optional[AuctionRecord]:
        async with self._guard("lock_auction"):
            result = await self.db.execute(
                select(Auction)
                .where(Auction.id == auction_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        return AuctionRecord.from_row(row) if row else None

    # Invitations and bidders

    async def is_invited(self, auction_id: uuid.UUID, bidder_id: uuid.UUID) -> bool:
        async with self._guard("is_invited"):
            result = await self.db.execute(
                select(func.count(AuctionBidder.id)).where(
                    and_(
                        AuctionBidder.auction_id == auction_id,
                        AuctionBidder.bidder_id == bidder_id,
                    )
                )
            )
            return result.scalar_one() > 0

    async def set_invitations(
        self, auction_id: uuid.UUID, bidder_ids: Iterable[uuid.UUID]
    ) -> None:
        unique_ids = list(dict.fromkeys(bidder_ids))
        async with self._guard("set_invitations"):
            await self.db.execute(
                delete(AuctionBidder).where(AuctionBidder.auction_id == auction_id)
            )
            if unique_ids:
                await self.db.execute(
                    pg_insert(AuctionBidder)
                    .values(
                        [
                            {"id": uuid.uuid4(), "auction_id": auction_id, "bidder_id": bidder_id}
                            for bidder_id in unique_ids
                        ]
                    )
                    .on_conflict_do_nothing(index_elements=["auction_id", "bidder_id"])
                )
            await self._commit()

    async def list_invited_bidders(self, auction_id: uuid.UUID) -> list[BidderRecord]:
        async with self._guard("list_invited_bidders"):
            result = await self.db.execute(
                select(User)
                .join(AuctionBidder, AuctionBidder.bidder_id == User.id)
                .where(AuctionBidder.auction_id == auction_id)
                .order_by(User.user_code)
            )
            rows = result.scalars().all()
        return [BidderRecord.from_row(row) for row in rows]

    async def get_bidder(self, bidder_id: uuid.UUID) -> Optional[BidderRecord]:
        async with self._guard("get_bidder"):
            result = await self.db.execute(select(User).where(User.id == bidder_id))
            row = result.scalar_one_or_none()
        return BidderRecord.from_row(row) if row else None

    async def get_bidders(
        self, bidder_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, BidderRecord]:
        ids = list(set(bidder_ids))
        if not ids:
            return {}
        async with self._guard("get_bidders"):
            result = await self.db.execute(select(User).where(User.id.in_(ids)))
            rows = result.scalars().all()
        return {row.id: BidderRecord.from_row(row) for row in rows}

    # Bids

    async def insert_bid(
        self,
        auction_id: uuid.UUID,
        bidder_id: uuid.UUID,
        amount: Decimal,
        bid_time: datetime,
    ) -> BidRecord:
        stmt = (
            pg_insert(Bid)
            .values(
                id=uuid.uuid4(),
                auction_id=auction_id,
                bidder_id=bidder_id,
                amount=amount,
                bid_time=bid_time,
            )
            .returning(Bid)
        )
        async with self._guard("insert_bid"):
            result = await self.db.execute(stmt)
            record = BidRecord.from_row(result.scalar_one())
            await self._commit()
        return record

    async def list_bids(self, auction_id: uuid.UUID) -> list[BidRecord]:
        async with self._guard("list_bids"):
            result = await self.db.execute(
                select(Bid)
                .where(Bid.auction_id == auction_id)
                .order_by(Bid.bid_time, Bid.sequence)
            )
            rows = result.scalars().all()
        return [BidRecord.from_row(row) for row in rows]

    async def list_bids_for_bidder(self, bidder_id: uuid.UUID) -> list[BidRecord]:
        async with self._guard("list_bids_for_bidder"):
            result = await self.db.execute(
                select(Bid)
                .where(Bid.bidder_id == bidder_id)
                .order_by(Bid.bid_time, Bid.sequence)
            )
            rows = result.scalars().all()
        return [BidRecord.from_row(row) for row in rows]

    # Results

    async def get_result(
        self, auction_id: uuid.UUID, bidder_id: uuid.UUID
    ) -> Optional[ResultRecord]:
        async with self._guard("get_result"):
            result = await self.db.execute(
                select(AuctionResult)
                .where(
                    and_(
                        AuctionResult.auction_id == auction_id,
                        AuctionResult.bidder_id == bidder_id,
                    )
                )
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        return ResultRecord.from_row(row) if row else None

    async def list_results(self, auction_id: uuid.UUID) -> list[ResultRecord]:
        async with self._guard("list_results"):
            result = await self.db.execute(
                select(AuctionResult)
                .where(AuctionResult.auction_id == auction_id)
                .execution_options(populate_existing=True)
            )
            rows = result.scalars().all()
        return [ResultRecord.from_row(row) for row in rows]

    async def list_results_by_status(self, status: ResultStatus) -> list[ResultRecord]:
        async with self._guard("list_results_by_status"):
            result = await self.db.execute(
                select(AuctionResult)
                .where(AuctionResult.status == status.value)
                .execution_options(populate_existing=True)
            )
            rows = result.scalars().all()
        return [ResultRecord.from_row(row) for row in rows]

    async def list_results_for_bidder(self, bidder_id: uuid.UUID) -> list[ResultRecord]:
        async with self._guard("list_results_for_bidder"):
            result = await self.db.execute(
                select(AuctionResult)
                .where(AuctionResult.bidder_id == bidder_id)
                .execution_options(populate_existing=True)
            )
            rows = result.scalars().all()
        return [ResultRecord.from_row(row) for row in rows]

    async def upsert_result(
        self,
        auction_id: uuid.UUID,
        bidder_id: uuid.UUID,
        status: ResultStatus,
        reason: Optional[str] = None,
        shortlisted_at: Optional[datetime] = None,
    ) -> ResultRecord:
        values: dict[str, Any] = {"status": status.value}
        if status is ResultStatus.DISQUALIFIED:
            values["disqualification_reason"] = reason
        elif status is ResultStatus.CANCEL:
            values["cancel_reason"] = reason
        if shortlisted_at is not None:
            values["shortlisted_at"] = shortlisted_at

        stmt = pg_insert(AuctionResult).values(
            id=uuid.uuid4(),
            auction_id=auction_id,
            bidder_id=bidder_id,
            **values,
        )
        # On conflict (auction_id, bidder_id), overwrite the outcome in place
        stmt = stmt.on_conflict_do_update(
            index_elements=["auction_id", "bidder_id"],
            set_={**values, "updated_at": func.now()},
        ).returning(AuctionResult)

        async with self._guard("upsert_result"):
            result = await self.db.execute(
                stmt, execution_options={"populate_existing": True}
            )
            record = ResultRecord.from_row(result.scalar_one())
            await self._commit()
        return record

    async def demote_results(
        self,
        auction_id: uuid.UUID,
        from_statuses: Sequence[ResultStatus],
        to_status: ResultStatus,
        exclude_bidder_id: Optional[uuid.UUID] = None,
    ) -> int:
        stmt = (
            update(AuctionResult)
            .where(AuctionResult.auction_id == auction_id)
            .where(AuctionResult.status.in_([s.value for s in from_statuses]))
            .values(status=to_status.value)
            .returning(AuctionResult.id)
        )
        if exclude_bidder_id is not None:
            stmt = stmt.where(AuctionResult.bidder_id != exclude_bidder_id)

        async with self._guard("demote_results"):
            result = await self.db.execute(stmt)
            count = len(result.all())
            await self._commit()
        return count
