"""Ranking schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class RankingItem(BaseModel):
    """Schema for a single leaderboard entry."""

    rank: int
    bidder_id: UUID
    bidder_code: str | None = None
    bidder_name: str | None = None
    company: str | None = None
    amount: Decimal
    bid_time: datetime


class RankingResponse(BaseModel):
    """Schema for the best-bid leaderboard of an auction."""

    success: bool = True
    auction_id: UUID
    auction_code: str
    total_bidders: int
    rankings: list[RankingItem]
    updated_at: datetime


class MyRankResponse(BaseModel):
    """Schema for a bidder's own rank in an auction."""

    success: bool = True
    auction_id: UUID
    bidder_id: UUID
    rank: int | None
    best_amount: Decimal | None
    is_leading: bool
    total_bidders: int
    current_lowest: Decimal | None
