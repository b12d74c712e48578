"""Pydantic schemas for request/response validation."""

from procubid.schemas.auction import (
    AuctionCreate,
    AuctionDetailResponse,
    AuctionListResponse,
    AuctionResponse,
    AuctionStatusResponse,
    AuctionUpdate,
)
from procubid.schemas.bid import BidCreate, BidHistoryResponse, BidResponse, PlaceBidResponse
from procubid.schemas.ranking import MyRankResponse, RankingResponse
from procubid.schemas.report import (
    AuctionStatisticsResponse,
    AwardedOverviewResponse,
    BidderResultsResponse,
    BidRecordsResponse,
    LiveAuctionsResponse,
)
from procubid.schemas.result import AuctionResultsResponse, ReasonRequest, ShortlistResponse

__all__ = [
    "AuctionCreate",
    "AuctionUpdate",
    "AuctionResponse",
    "AuctionDetailResponse",
    "AuctionStatusResponse",
    "AuctionListResponse",
    "BidCreate",
    "BidResponse",
    "PlaceBidResponse",
    "BidHistoryResponse",
    "RankingResponse",
    "MyRankResponse",
    "ShortlistResponse",
    "AuctionResultsResponse",
    "ReasonRequest",
    "LiveAuctionsResponse",
    "AuctionStatisticsResponse",
    "BidRecordsResponse",
    "AwardedOverviewResponse",
    "BidderResultsResponse",
]
