"""Bid model for the append-only bid log."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Identity, Index, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from procubid.core.database import Base

if TYPE_CHECKING:
    from procubid.models.auction import Auction
    from procubid.models.user import User


class Bid(Base):
    """Bid model representing one price offer by a bidder.

    Rows are never updated or deleted. `sequence` is assigned by the
    database at insert and breaks ties between bids with equal amount and
    equal bid_time.
    """

    __tablename__ = "bids"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    sequence: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=True),
        nullable=False,
        unique=True,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.id"),
        nullable=False,
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    bid_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    auction: Mapped["Auction"] = relationship("Auction", back_populates="bids")
    bidder: Mapped["User"] = relationship("User", back_populates="bids")

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_bid_amount_positive"),
        Index("idx_bids_auction_amount", "auction_id", "amount", "bid_time"),
        Index("idx_bids_auction_bidder_time", "auction_id", "bidder_id", "bid_time"),
    )
