"""Auction administration and status API endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from procubid.api.deps import (
    AdminIdentity,
    AuctionServiceDep,
    BidderIdentity,
    CurrentIdentity,
    ReportsServiceDep,
    SystemAdminIdentity,
)
from procubid.api.responses import error_response
from procubid.models.enums import AuctionStatus
from procubid.schemas.auction import (
    AuctionCreate,
    AuctionDetailResponse,
    AuctionListItem,
    AuctionListResponse,
    AuctionResponse,
    AuctionStatusResponse,
    AuctionUpdate,
    BidderLiveAuctionsResponse,
    InvitedBidder,
    RejectRequest,
)
from procubid.schemas.report import (
    AuctionStatisticsResponse,
    BidRecordsResponse,
    LiveAuctionRow,
    LiveAuctionsResponse,
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_auction(
    auction_data: AuctionCreate,
    identity: AdminIdentity,
    auction_service: AuctionServiceDep,
):
    """Create a pending auction and invite bidders."""
    outcome = await auction_service.create_auction(auction_data.model_dump(), identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return {
        "success": True,
        "auction": AuctionResponse.model_validate(result["auction"]),
        "invited_bidders": result["invited_bidders"],
    }


def _list_item(row: dict) -> AuctionListItem:
    invited = row.get("invited_bidders")
    return AuctionListItem(
        auction=AuctionResponse.model_validate(row["auction"]),
        calculated_status=row["calculated_status"],
        is_live=row["is_live"],
        starts_at=row["starts_at"],
        ends_at=row["ends_at"],
        seconds_until_start=row["seconds_until_start"],
        seconds_remaining=row["seconds_remaining"],
        invited_bidders=(
            [InvitedBidder.model_validate(b) for b in invited] if invited is not None else None
        ),
    )


# Fixed paths stay above the /{auction} routes
@router.get("", response_model=AuctionListResponse)
async def list_auctions(
    identity: CurrentIdentity,
    auction_service: AuctionServiceDep,
    status_filter: AuctionStatus | None = Query(None, alias="status"),
    auction_date: date | None = Query(None),
):
    """List auctions visible to the caller, latest schedule first."""
    outcome = await auction_service.list_auctions(
        identity.role, identity.user_id, status_filter, auction_date
    )
    if not outcome.ok:
        return error_response(outcome.error)

    rows = outcome.value["auctions"]
    return AuctionListResponse(auctions=[_list_item(r) for r in rows], count=len(rows))


@router.get("/admin/all", response_model=AuctionListResponse)
async def list_admin_auctions(
    identity: AdminIdentity,
    auction_service: AuctionServiceDep,
):
    """List every auction with invited bidders and approval details."""
    outcome = await auction_service.list_admin_auctions()
    if not outcome.ok:
        return error_response(outcome.error)

    rows = outcome.value["auctions"]
    return AuctionListResponse(auctions=[_list_item(r) for r in rows], count=len(rows))


@router.get("/live/bidder", response_model=BidderLiveAuctionsResponse)
async def live_auctions_for_bidder(
    identity: BidderIdentity,
    auction_service: AuctionServiceDep,
):
    """The caller's invited auctions grouped into live, upcoming and ended."""
    outcome = await auction_service.live_auctions_for_bidder(identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return BidderLiveAuctionsResponse(
        live=[_list_item(r) for r in result["live"]],
        upcoming=[_list_item(r) for r in result["upcoming"]],
        ended=[_list_item(r) for r in result["ended"]],
        message=result["message"],
        server_time=result["server_time"],
    )


@router.get("/live/admin", response_model=LiveAuctionsResponse)
async def live_auctions_for_admin(
    identity: AdminIdentity,
    reports_service: ReportsServiceDep,
):
    """Auctions live right now with participation figures."""
    outcome = await reports_service.live_auctions()
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return LiveAuctionsResponse(
        auctions=[
            LiveAuctionRow(
                **{
                    **row,
                    "invited_bidders": [InvitedBidder.model_validate(b) for b in row["invited_bidders"]],
                }
            )
            for row in result["auctions"]
        ],
        count=result["count"],
        server_time=result["server_time"],
    )


@router.put("/{auction}")
async def update_auction(
    auction: str,
    auction_data: AuctionUpdate,
    identity: AdminIdentity,
    auction_service: AuctionServiceDep,
):
    """Update an auction that has not started yet."""
    outcome = await auction_service.update_auction(
        auction, auction_data.model_dump(exclude_unset=True)
    )
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return {
        "success": True,
        "auction": AuctionResponse.model_validate(result["auction"]),
        "invited_bidders": result["invited_bidders"],
    }


@router.get("/{auction}", response_model=AuctionDetailResponse)
async def get_auction(
    auction: str,
    identity: CurrentIdentity,
    auction_service: AuctionServiceDep,
):
    """Get auction details with calculated status and invited bidders."""
    outcome = await auction_service.get_auction(auction)
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return AuctionDetailResponse(
        auction=AuctionResponse.model_validate(result["auction"]),
        calculated_status=result["calculated_status"],
        is_live=result["is_live"],
        starts_at=result["starts_at"],
        ends_at=result["ends_at"],
        invited_bidders=[InvitedBidder.model_validate(b) for b in result["invited_bidders"]],
    )


@router.get("/{auction}/status", response_model=AuctionStatusResponse)
async def get_auction_status(
    auction: str,
    identity: CurrentIdentity,
    auction_service: AuctionServiceDep,
):
    """Get persisted and calculated status of an auction right now."""
    outcome = await auction_service.get_status(auction)
    if not outcome.ok:
        return error_response(outcome.error)
    return AuctionStatusResponse(**outcome.value)


@router.post("/{auction}/approve")
async def approve_auction(
    auction: str,
    identity: SystemAdminIdentity,
    auction_service: AuctionServiceDep,
):
    """Approve a pending auction; invited bidders are emailed."""
    outcome = await auction_service.approve_auction(auction, identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)
    return {"success": True, **outcome.value}


@router.post("/{auction}/reject")
async def reject_auction(
    auction: str,
    body: RejectRequest,
    identity: SystemAdminIdentity,
    auction_service: AuctionServiceDep,
):
    """Reject a pending auction with a reason."""
    outcome = await auction_service.reject_auction(auction, identity.user_id, body.reason)
    if not outcome.ok:
        return error_response(outcome.error)
    return {"success": True, **outcome.value}


@router.delete("/{auction}")
async def delete_auction(
    auction: str,
    identity: AdminIdentity,
    auction_service: AuctionServiceDep,
):
    """Delete an auction that is not live and has no bids."""
    outcome = await auction_service.delete_auction(auction)
    if not outcome.ok:
        return error_response(outcome.error)
    return {"success": True, "message": "Auction deleted successfully", **outcome.value}


@router.get("/{auction}/statistics", response_model=AuctionStatisticsResponse)
async def get_auction_statistics(
    auction: str,
    identity: AdminIdentity,
    reports_service: ReportsServiceDep,
):
    """Participation figures and per-bidder activity of an auction."""
    outcome = await reports_service.statistics(auction)
    if not outcome.ok:
        return error_response(outcome.error)
    return AuctionStatisticsResponse(**outcome.value)


@router.get("/{auction}/bids", response_model=BidRecordsResponse)
async def get_bid_records(
    auction: str,
    identity: AdminIdentity,
    reports_service: ReportsServiceDep,
):
    """Every bid of an auction with bidder details, newest first."""
    outcome = await reports_service.bid_records(auction)
    if not outcome.ok:
        return error_response(outcome.error)
    return BidRecordsResponse(**outcome.value)
