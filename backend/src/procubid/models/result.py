"""Auction result model holding each bidder's outcome."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procubid.core.database import Base
from procubid.models.base import TimestampMixin

if TYPE_CHECKING:
    from procubid.models.auction import Auction


class AuctionResult(Base, TimestampMixin):
    """One row per (auction, bidder) once the results workflow has touched it."""

    __tablename__ = "auction_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
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
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    disqualification_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    shortlisted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    auction: Mapped["Auction"] = relationship("Auction", back_populates="results")

    __table_args__ = (
        CheckConstraint(
            "status IN ('short-listed', 'not-short-listed', 'awarded', "
            "'not_awarded', 'disqualified', 'cancel')",
            name="chk_result_status",
        ),
        # Unique pair enables PostgreSQL UPSERT
        Index("idx_results_auction_bidder", "auction_id", "bidder_id", unique=True),
        # At most one awarded row per auction
        Index(
            "idx_results_one_award",
            "auction_id",
            unique=True,
            postgresql_where=text("status = 'awarded'"),
        ),
    )
