"""Results workflow schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class ReasonRequest(BaseModel):
    """Body of disqualify and cancel requests; blank reasons are refused."""

    reason: str = ""


class ShortlistedBidder(BaseModel):
    bidder_id: UUID
    rank: int
    amount: Decimal


class ShortlistResponse(BaseModel):
    success: bool = True
    auction_id: UUID
    auction_code: str
    short_listed: list[ShortlistedBidder]
    not_short_listed: list[UUID]
    shortlisted_at: datetime


class ResultRow(BaseModel):
    bidder_id: UUID
    bidder_code: str | None = None
    bidder_name: str | None = None
    company: str | None = None
    status: str
    rank: int | None = None
    best_amount: Decimal | None = None
    disqualification_reason: str | None = None
    cancel_reason: str | None = None
    shortlisted_at: datetime | None = None


class AuctionResultsResponse(BaseModel):
    success: bool = True
    auction_id: UUID
    auction_code: str
    status: str
    currency: str
    results: list[ResultRow]
