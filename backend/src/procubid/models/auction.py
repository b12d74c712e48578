"""Auction and invitation models."""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procubid.core.database import Base
from procubid.models.base import TimestampMixin

if TYPE_CHECKING:
    from procubid.models.bid import Bid
    from procubid.models.result import AuctionResult
    from procubid.models.user import User


class Auction(Base, TimestampMixin):
    """A time-boxed reverse auction scheduled in the civil timezone."""

    __tablename__ = "auctions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sbu: Mapped[str | None] = mapped_column(String(100), nullable=True)
    special_notices: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Wall-clock schedule, no offset stored
    auction_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    ceiling_price: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    step_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="LKR",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
    )

    # Audit
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    invitations: Mapped[List["AuctionBidder"]] = relationship(
        "AuctionBidder", back_populates="auction", cascade="all, delete-orphan"
    )
    bids: Mapped[List["Bid"]] = relationship("Bid", back_populates="auction")
    results: Mapped[List["AuctionResult"]] = relationship(
        "AuctionResult", back_populates="auction"
    )

    __table_args__ = (
        CheckConstraint("ceiling_price > 0", name="chk_auction_ceiling_positive"),
        CheckConstraint("step_amount > 0", name="chk_auction_step_positive"),
        CheckConstraint("step_amount < ceiling_price", name="chk_auction_step_below_ceiling"),
        CheckConstraint("duration_minutes > 0", name="chk_auction_duration_positive"),
        CheckConstraint("currency IN ('LKR', 'USD')", name="chk_auction_currency"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'live', 'ended', 'cancelled')",
            name="chk_auction_status",
        ),
        Index("idx_auctions_status", "status"),
        Index("idx_auctions_schedule", "auction_date", "start_time"),
    )


class AuctionBidder(Base):
    """Invitation of a bidder to an auction."""

    __tablename__ = "auction_bidders"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.id", ondelete="CASCADE"),
        nullable=False,
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    invited_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    auction: Mapped["Auction"] = relationship("Auction", back_populates="invitations")
    bidder: Mapped["User"] = relationship("User", back_populates="invitations")

    __table_args__ = (
        Index("idx_auction_bidders_pair", "auction_id", "bidder_id", unique=True),
    )
