"""Business logic services."""

from procubid.services.auction_service import AuctionService
from procubid.services.bid_service import BidService
from procubid.services.email_service import EmailService
from procubid.services.notifier import BroadcastGateway, ConnectionManager
from procubid.services.ranking_service import RankingService
from procubid.services.results_service import ResultsService
from procubid.services.scheduler import AuctionScheduler

__all__ = [
    "AuctionService",
    "AuctionScheduler",
    "BidService",
    "BroadcastGateway",
    "ConnectionManager",
    "EmailService",
    "RankingService",
    "ResultsService",
]
