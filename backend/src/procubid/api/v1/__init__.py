"""API v1 routers."""

from procubid.api.v1 import auctions, bids, rankings, results, ws

__all__ = ["auctions", "bids", "rankings", "results", "ws"]
