"""Auction schemas for request/response validation."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from procubid.models.enums import Currency


class AuctionCreate(BaseModel):
    """Schema for auction creation request."""

    title: str = Field(..., min_length=1, max_length=255)
    category: str | None = None
    sbu: str | None = None
    special_notices: str | None = None
    auction_date: date
    start_time: time
    duration_minutes: int
    ceiling_price: Decimal
    step_amount: Decimal
    currency: Currency = Currency.LKR
    invited_bidders: list[UUID] = Field(default_factory=list)


class AuctionUpdate(BaseModel):
    """Schema for auction update request; omitted fields are kept."""

    title: str | None = Field(None, min_length=1, max_length=255)
    category: str | None = None
    sbu: str | None = None
    special_notices: str | None = None
    auction_date: date | None = None
    start_time: time | None = None
    duration_minutes: int | None = None
    ceiling_price: Decimal | None = None
    step_amount: Decimal | None = None
    currency: Currency | None = None
    invited_bidders: list[UUID] | None = None


class RejectRequest(BaseModel):
    reason: str = ""


class AuctionResponse(BaseModel):
    """Schema for auction response."""

    id: UUID
    auction_code: str
    title: str
    category: str | None = None
    sbu: str | None = None
    special_notices: str | None = None
    auction_date: date | None
    start_time: time | None
    duration_minutes: int | None
    ceiling_price: Decimal | None
    step_amount: Decimal | None
    currency: Currency
    status: str
    created_by: UUID | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    model_config = {"from_attributes": True}


class InvitedBidder(BaseModel):
    id: UUID
    user_code: str
    name: str
    email: str
    company: str | None = None

    model_config = {"from_attributes": True}


class AuctionDetailResponse(BaseModel):
    """Schema for auction detail with calculated status."""

    success: bool = True
    auction: AuctionResponse
    calculated_status: str
    is_live: bool
    starts_at: datetime | None
    ends_at: datetime | None
    invited_bidders: list[InvitedBidder]


class AuctionStatusResponse(BaseModel):
    """Schema for the live status query of an auction."""

    success: bool = True
    auction_id: UUID
    auction_code: str
    status: str
    calculated_status: str
    is_live: bool
    starts_at: datetime | None
    ends_at: datetime | None
    seconds_until_start: int | None
    seconds_remaining: int | None
    server_time: str
    timezone: str


class AuctionListItem(BaseModel):
    auction: AuctionResponse
    calculated_status: str
    is_live: bool
    starts_at: datetime | None
    ends_at: datetime | None
    seconds_until_start: int | None = None
    seconds_remaining: int | None = None
    invited_bidders: list[InvitedBidder] | None = None


class AuctionListResponse(BaseModel):
    success: bool = True
    auctions: list[AuctionListItem]
    count: int


class BidderLiveAuctionsResponse(BaseModel):
    """Invited auctions of a bidder grouped by calculated status."""

    success: bool = True
    live: list[AuctionListItem]
    upcoming: list[AuctionListItem]
    ended: list[AuctionListItem]
    message: str
    server_time: str
