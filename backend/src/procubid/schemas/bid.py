"""Bid schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class BidCreate(BaseModel):
    """Schema for bid placement request.

    The amount is checked by the bid validator rather than here so that
    every rejection carries its reason code.
    """

    auction_id: str
    amount: Any = None


class BidResponse(BaseModel):
    """Schema for a stored bid."""

    id: UUID
    auction_id: UUID
    bidder_id: UUID
    amount: Decimal
    bid_time: datetime

    model_config = {"from_attributes": True}


class PlaceBidResponse(BaseModel):
    """Schema for an accepted bid with the bidder's standing."""

    success: bool = True
    bid: BidResponse
    auction_code: str
    rank: int | None
    is_leading: bool
    total_bidders: int
    current_lowest: Decimal | None
    currency: str


class LatestBidResponse(BaseModel):
    success: bool = True
    auction_id: UUID
    auction_code: str
    bid: BidResponse | None
    currency: str


class BidHistoryEntry(BaseModel):
    auction_id: UUID
    auction_code: str
    title: str
    currency: str
    amount: Decimal
    bid_time: datetime
    calculated_status: str
    result: str
    result_status: str | None = None


class BidHistorySummary(BaseModel):
    total: int
    won: int
    lost: int
    in_progress: int
    cancelled: int


class BidHistoryResponse(BaseModel):
    """Schema for bidder history response."""

    success: bool = True
    history: list[BidHistoryEntry]
    summary: BidHistorySummary
