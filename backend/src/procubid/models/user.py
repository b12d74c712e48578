"""User model for administrators and bidders."""

import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procubid.core.database import Base
from procubid.models.base import TimestampMixin

if TYPE_CHECKING:
    from procubid.models.auction import AuctionBidder
    from procubid.models.bid import Bid


class User(Base, TimestampMixin):
    """User model; bidders are users with the `bidder` role."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    company: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="bidder",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # Relationships
    invitations: Mapped[List["AuctionBidder"]] = relationship(
        "AuctionBidder", back_populates="bidder"
    )
    bids: Mapped[List["Bid"]] = relationship("Bid", back_populates="bidder")

    __table_args__ = (
        Index("idx_users_role", "role"),
    )
