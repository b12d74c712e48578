"""Closed status vocabularies.

The string values are the wire contract consumed by the frontend and must not
be renamed.
"""

from enum import Enum


class AuctionStatus(str, Enum):
    """Persisted auction lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (AuctionStatus.REJECTED, AuctionStatus.ENDED, AuctionStatus.CANCELLED)


# Statuses the scheduler still has to look at
OPEN_AUCTION_STATUSES = (AuctionStatus.PENDING, AuctionStatus.APPROVED, AuctionStatus.LIVE)

# Statuses of invited auctions a bidder can list
BIDDER_VISIBLE_STATUSES = (AuctionStatus.APPROVED, AuctionStatus.LIVE, AuctionStatus.ENDED)


class CalculatedStatus(str, Enum):
    """Status derived at read time from the persisted status and the clock."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"
    ERROR = "error"

    def as_persisted(self) -> AuctionStatus | None:
        if self is CalculatedStatus.ERROR:
            return None
        return AuctionStatus(self.value)


class ResultStatus(str, Enum):
    """Per-bidder outcome of an auction."""

    SHORT_LISTED = "short-listed"
    NOT_SHORT_LISTED = "not-short-listed"
    AWARDED = "awarded"
    NOT_AWARDED = "not_awarded"
    DISQUALIFIED = "disqualified"
    CANCEL = "cancel"


# A shortlist exists once any of these rows is present for an auction
SHORTLIST_STATUSES = (
    ResultStatus.SHORT_LISTED,
    ResultStatus.NOT_SHORT_LISTED,
    ResultStatus.AWARDED,
    ResultStatus.NOT_AWARDED,
)


class Currency(str, Enum):
    LKR = "LKR"
    USD = "USD"


class UserRole(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    ADMIN = "admin"
    BIDDER = "bidder"
