"""Report schemas for statistics, bid records and result listings."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from procubid.schemas.auction import InvitedBidder


class BidSummary(BaseModel):
    invited_count: int
    active_count: int
    total_bids: int
    lowest_bid: Decimal | None = None
    highest_bid: Decimal | None = None
    average_bid: Decimal | None = None
    participation_rate: float


class AuctionSummary(BaseModel):
    auction_id: UUID
    auction_code: str
    title: str
    auction_date: date | None = None
    currency: str


class LiveAuctionRow(AuctionSummary, BidSummary):
    ends_at: datetime | None = None
    seconds_remaining: int | None = None
    invited_bidders: list[InvitedBidder]


class LiveAuctionsResponse(BaseModel):
    success: bool = True
    auctions: list[LiveAuctionRow]
    count: int
    server_time: str


class BidderActivity(BaseModel):
    bidder_id: UUID
    bidder_code: str | None = None
    bidder_name: str | None = None
    company: str | None = None
    rank: int
    total_bids: int
    lowest_bid: Decimal
    highest_bid: Decimal
    average_bid: Decimal
    first_bid_time: datetime
    last_bid_time: datetime


class AuctionStatisticsResponse(AuctionSummary):
    success: bool = True
    calculated_status: str
    statistics: BidSummary
    active_bidders: list[BidderActivity]


class BidRecordRow(BaseModel):
    bid_id: UUID
    bidder_id: UUID
    bidder_code: str | None = None
    bidder_name: str | None = None
    company: str | None = None
    amount: Decimal
    bid_time: datetime
    result_status: str | None = None
    disqualification_reason: str | None = None
    cancel_reason: str | None = None


class BidRecordsResponse(AuctionSummary):
    success: bool = True
    total_bids: int
    bids: list[BidRecordRow]


class AwardedResultRow(AuctionSummary):
    bidder_id: UUID
    bidder_code: str | None = None
    bidder_name: str | None = None
    company: str | None = None
    amount: Decimal | None = None


class AwardedOverviewResponse(BaseModel):
    success: bool = True
    results: list[AwardedResultRow]
    count: int


class BidderResultRow(AuctionSummary):
    status: str
    best_bid: Decimal | None = None
    disqualification_reason: str | None = None
    cancel_reason: str | None = None
    shortlisted_at: datetime | None = None


class BidderResultsResponse(BaseModel):
    success: bool = True
    results: list[BidderResultRow]
    count: int
