"""Auction record store: abstract interface, canonical records, SQL backend."""

from procubid.store.base import AuctionRef, AuctionStore, StoreError
from procubid.store.records import AuctionRecord, BidderRecord, BidRecord, ResultRecord

__all__ = [
    "AuctionRef",
    "AuctionStore",
    "StoreError",
    "AuctionRecord",
    "BidRecord",
    "BidderRecord",
    "ResultRecord",
]
