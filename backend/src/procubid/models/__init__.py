"""SQLAlchemy ORM models."""

from procubid.models.auction import Auction, AuctionBidder
from procubid.models.base import TimestampMixin
from procubid.models.bid import Bid
from procubid.models.result import AuctionResult
from procubid.models.user import User

__all__ = [
    "TimestampMixin",
    "User",
    "Auction",
    "AuctionBidder",
    "Bid",
    "AuctionResult",
]
