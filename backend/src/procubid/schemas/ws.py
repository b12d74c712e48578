"""WebSocket event schemas for real-time communication."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class RankingEntry(BaseModel):
    """Single entry in the leaderboard."""

    rank: int
    bidder_id: str
    bidder_code: str | None = None
    bidder_name: str | None = None
    amount: Decimal
    bid_time: datetime


class RankingUpdateData(BaseModel):
    """Data payload for ranking update event."""

    auction_id: str
    rankings: list[RankingEntry]
    total_bidders: int
    timestamp: datetime


class RankingUpdateEvent(BaseModel):
    """Ranking update event pushed to all users in an auction room."""

    event: Literal["ranking_update"] = "ranking_update"
    data: RankingUpdateData


class StatusChangeData(BaseModel):
    """Data payload for auction status change event."""

    auction_id: str
    status: str
    message: str
    timestamp: datetime


class StatusChangeEvent(BaseModel):
    """Status change event pushed when the persisted status moves."""

    event: Literal["auction_status_change"] = "auction_status_change"
    data: StatusChangeData


class BidAcceptedData(BaseModel):
    """Data payload for bid accepted event."""

    bid_id: str
    auction_id: str
    amount: Decimal
    rank: int | None
    is_leading: bool
    timestamp: datetime


class BidAcceptedEvent(BaseModel):
    """Bid accepted event pushed to the bidder who placed the bid."""

    event: Literal["bid_accepted"] = "bid_accepted"
    data: BidAcceptedData


# Type alias for all WebSocket events
WSEvent = RankingUpdateEvent | StatusChangeEvent | BidAcceptedEvent
