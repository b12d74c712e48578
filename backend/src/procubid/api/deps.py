"""API dependencies for identity, store and service access.

Authentication happens upstream: the gateway in front of this service
verifies the session and forwards the caller's identity in the
`X-User-Id` and `X-User-Role` headers.
"""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from procubid.core.clock import Clock
from procubid.core.config import settings
from procubid.core.database import get_db
from procubid.models.enums import UserRole
from procubid.services.auction_service import AuctionService
from procubid.services.bid_service import BidService
from procubid.services.email_service import EmailService
from procubid.services.notifier import BroadcastGateway
from procubid.services.ranking_service import RankingService
from procubid.services.reports_service import ReportsService
from procubid.services.results_service import ResultsService
from procubid.store.base import AuctionStore
from procubid.store.sql import SqlAuctionStore


@dataclass(frozen=True)
class Identity:
    user_id: UUID
    role: UserRole


async def get_current_identity(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Identity:
    """Read the caller identity forwarded by the gateway.

    Raises:
        HTTPException: If the headers are missing or malformed
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    try:
        return Identity(user_id=UUID(x_user_id), role=UserRole(x_user_role))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid caller identity",
        )


def require_roles(*roles: UserRole):
    """Build a dependency that admits only the given roles."""

    async def checker(
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        if identity.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient privileges for this operation",
            )
        return identity

    return checker


# Type aliases for cleaner dependency injection
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
BidderIdentity = Annotated[Identity, Depends(require_roles(UserRole.BIDDER))]
AdminIdentity = Annotated[
    Identity, Depends(require_roles(UserRole.ADMIN, UserRole.SYSTEM_ADMIN))
]
SystemAdminIdentity = Annotated[Identity, Depends(require_roles(UserRole.SYSTEM_ADMIN))]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Shared application state
# =============================================================================

def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_gateway(request: Request) -> BroadcastGateway:
    return request.app.state.gateway


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


ClockDep = Annotated[Clock, Depends(get_clock)]
GatewayDep = Annotated[BroadcastGateway, Depends(get_gateway)]
EmailServiceDep = Annotated[EmailService, Depends(get_email_service)]


async def get_store(db: DbSession) -> AuctionStore:
    return SqlAuctionStore(db)


StoreDep = Annotated[AuctionStore, Depends(get_store)]


# =============================================================================
# Service dependency injection
# =============================================================================

async def get_bid_service(store: StoreDep, clock: ClockDep, gateway: GatewayDep) -> BidService:
    return BidService(store, clock, gateway)


async def get_ranking_service(store: StoreDep) -> RankingService:
    return RankingService(store)


async def get_auction_service(
    store: StoreDep, clock: ClockDep, email_service: EmailServiceDep
) -> AuctionService:
    return AuctionService(store, clock, email_service)


async def get_results_service(
    store: StoreDep,
    clock: ClockDep,
    email_service: EmailServiceDep,
    gateway: GatewayDep,
) -> ResultsService:
    return ResultsService(
        store,
        clock,
        email_service=email_service,
        gateway=gateway,
        shortlist_size=settings.SHORTLIST_SIZE,
    )


async def get_reports_service(store: StoreDep, clock: ClockDep) -> ReportsService:
    return ReportsService(store, clock)


BidServiceDep = Annotated[BidService, Depends(get_bid_service)]
RankingServiceDep = Annotated[RankingService, Depends(get_ranking_service)]
AuctionServiceDep = Annotated[AuctionService, Depends(get_auction_service)]
ResultsServiceDep = Annotated[ResultsService, Depends(get_results_service)]
ReportsServiceDep = Annotated[ReportsService, Depends(get_reports_service)]
