"""Ranking query API endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter

from procubid.api.deps import CurrentIdentity, RankingServiceDep
from procubid.api.responses import error_response
from procubid.schemas.ranking import MyRankResponse, RankingItem, RankingResponse

router = APIRouter()


@router.get("/{auction}", response_model=RankingResponse)
async def get_rankings(
    auction: str,
    identity: CurrentIdentity,
    ranking_service: RankingServiceDep,
):
    """Get the best-bid leaderboard of an auction (UUID or code)."""
    outcome = await ranking_service.leaderboard(auction)
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return RankingResponse(
        auction_id=result["auction_id"],
        auction_code=result["auction_code"],
        total_bidders=result["total_bidders"],
        rankings=[RankingItem(**r) for r in result["rankings"]],
        updated_at=datetime.now(timezone.utc),
    )


@router.get("/{auction}/me", response_model=MyRankResponse)
async def get_my_rank(
    auction: str,
    identity: CurrentIdentity,
    ranking_service: RankingServiceDep,
):
    """Get the caller's best-bid rank in an auction."""
    outcome = await ranking_service.bidder_standing(auction, identity.user_id)
    if not outcome.ok:
        return error_response(outcome.error)
    return MyRankResponse(**outcome.value)
