"""Bidding API endpoints."""

from fastapi import APIRouter, Query, status

from procubid.api.deps import BidderIdentity, BidServiceDep
from procubid.api.responses import error_response
from procubid.schemas.bid import (
    BidCreate,
    BidHistoryResponse,
    BidResponse,
    LatestBidResponse,
    PlaceBidResponse,
)

router = APIRouter()


@router.post("", response_model=PlaceBidResponse, status_code=status.HTTP_201_CREATED)
async def place_bid(
    bid_data: BidCreate,
    identity: BidderIdentity,
    bid_service: BidServiceDep,
):
    """Place a bid on a live auction.

    The bid time is stamped by the server. The response carries the
    bidder's best-bid rank and the current lowest latest bid.
    """
    outcome = await bid_service.place_bid(bid_data.auction_id, identity.user_id, bid_data.amount)
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return PlaceBidResponse(
        bid=BidResponse.model_validate(result["bid"]),
        auction_code=result["auction_code"],
        rank=result["rank"],
        is_leading=result["is_leading"],
        total_bidders=result["total_bidders"],
        current_lowest=result["current_lowest"],
        currency=result["currency"],
    )


@router.get("/latest", response_model=LatestBidResponse)
async def get_latest_bid(
    identity: BidderIdentity,
    bid_service: BidServiceDep,
    auction_id: str = Query(..., description="Auction UUID or code"),
):
    """Get the caller's most recent bid in an auction."""
    outcome = await bid_service.get_latest_bid(auction_id, identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return LatestBidResponse(
        auction_id=result["auction_id"],
        auction_code=result["auction_code"],
        bid=BidResponse.model_validate(result["bid"]) if result["bid"] else None,
        currency=result["currency"],
    )


@router.get("/history", response_model=BidHistoryResponse)
async def get_bid_history(
    identity: BidderIdentity,
    bid_service: BidServiceDep,
):
    """Get the caller's bidding history with won/lost results."""
    outcome = await bid_service.get_bid_history(identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)
    return BidHistoryResponse(**outcome.value)
