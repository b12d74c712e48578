"""Results workflow API endpoints."""

from uuid import UUID

from fastapi import APIRouter

from procubid.api.deps import AdminIdentity, BidderIdentity, ReportsServiceDep, ResultsServiceDep
from procubid.api.responses import error_response
from procubid.schemas.report import AwardedOverviewResponse, BidderResultsResponse
from procubid.schemas.result import AuctionResultsResponse, ReasonRequest, ShortlistResponse

router = APIRouter()


@router.get("/awarded", response_model=AwardedOverviewResponse)
async def awarded_overview(
    identity: AdminIdentity,
    reports_service: ReportsServiceDep,
):
    """List every awarded auction with its winning bidder."""
    outcome = await reports_service.awarded_overview()
    if not outcome.ok:
        return error_response(outcome.error)
    return AwardedOverviewResponse(**outcome.value)


@router.get("/bidder/me", response_model=BidderResultsResponse)
async def my_results(
    identity: BidderIdentity,
    reports_service: ReportsServiceDep,
):
    """List the caller's result rows across auctions."""
    outcome = await reports_service.bidder_results(identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)
    return BidderResultsResponse(**outcome.value)


@router.post("/{auction}/shortlist", response_model=ShortlistResponse)
async def shortlist(
    auction: str,
    identity: AdminIdentity,
    results_service: ResultsServiceDep,
):
    """Shortlist the top bidders of an auction."""
    outcome = await results_service.shortlist(auction)
    if not outcome.ok:
        return error_response(outcome.error)
    return ShortlistResponse(**outcome.value)


@router.post("/{auction}/bidders/{bidder_id}/award")
async def award(
    auction: str,
    bidder_id: UUID,
    identity: AdminIdentity,
    results_service: ResultsServiceDep,
):
    """Award the auction to a short-listed bidder."""
    outcome = await results_service.award(auction, bidder_id)
    if not outcome.ok:
        return error_response(outcome.error)
    return {"success": True, **outcome.value}


@router.post("/{auction}/bidders/{bidder_id}/not-award")
async def not_award(
    auction: str,
    bidder_id: UUID,
    identity: AdminIdentity,
    results_service: ResultsServiceDep,
):
    """Mark a short-listed bidder as not awarded."""
    outcome = await results_service.not_award(auction, bidder_id)
    if not outcome.ok:
        return error_response(outcome.error)
    return {"success": True, **outcome.value}


@router.post("/{auction}/bidders/{bidder_id}/disqualify")
async def disqualify(
    auction: str,
    bidder_id: UUID,
    body: ReasonRequest,
    identity: AdminIdentity,
    results_service: ResultsServiceDep,
):
    """Disqualify a bidder with a reason."""
    outcome = await results_service.disqualify(auction, bidder_id, body.reason)
    if not outcome.ok:
        return error_response(outcome.error)
    return {"success": True, **outcome.value}


@router.post("/{auction}/cancel")
async def cancel(
    auction: str,
    body: ReasonRequest,
    identity: AdminIdentity,
    results_service: ResultsServiceDep,
):
    """Cancel an auction; every bidder who bid gets a cancel result."""
    outcome = await results_service.cancel(auction, body.reason, cancelled_by=identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)
    return {"success": True, **outcome.value}


@router.get("/{auction}", response_model=AuctionResultsResponse)
async def get_results(
    auction: str,
    identity: AdminIdentity,
    results_service: ResultsServiceDep,
):
    """List the result rows of an auction."""
    outcome = await results_service.get_results(auction)
    if not outcome.ok:
        return error_response(outcome.error)
    return AuctionResultsResponse(**outcome.value)
