"""WebSocket connection manager and broadcast gateway for real-time updates."""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from fastapi import WebSocket

from procubid.schemas.ws import (
    BidAcceptedData,
    BidAcceptedEvent,
    RankingEntry,
    RankingUpdateData,
    RankingUpdateEvent,
    StatusChangeData,
    StatusChangeEvent,
)

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections organized by auction rooms.

    Structure: {auction_id: {user_id: WebSocket}}
    """

    def __init__(self):
        # {auction_id: {user_id: websocket}}
        self.active_connections: dict[str, dict[str, WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, auction_id: str, user_id: str, websocket: WebSocket) -> None:
        """Accept connection and add to auction room.

        Args:
            auction_id: Auction UUID string
            user_id: User UUID string
            websocket: WebSocket connection
        """
        await websocket.accept()

        async with self._lock:
            room = self.active_connections.setdefault(auction_id, {})

            # A user keeps one connection per room; the newer one wins
            old_ws = room.get(user_id)
            if old_ws is not None:
                try:
                    await old_ws.close()
                except Exception as e:
                    logger.debug(f"Closing replaced WebSocket failed: {e}")

            room[user_id] = websocket
            logger.info(
                f"WebSocket connected: auction={auction_id}, user={user_id}, "
                f"room_size={len(room)}"
            )

    async def disconnect(self, auction_id: str, user_id: str) -> None:
        """Remove connection from auction room."""
        async with self._lock:
            room = self.active_connections.get(auction_id)
            if room is None:
                return
            if user_id in room:
                del room[user_id]
                logger.info(f"WebSocket disconnected: auction={auction_id}, user={user_id}")

            # Clean up empty rooms
            if not room:
                del self.active_connections[auction_id]

    async def send_to_user(self, auction_id: str, user_id: str, message: dict[str, Any]) -> bool:
        """Send message to a specific user in an auction room.

        Returns:
            True if message was sent, False if user not connected
        """
        websocket = self.active_connections.get(auction_id, {}).get(user_id)
        if websocket is None:
            return False

        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send to user {user_id}: {e}")
            await self.disconnect(auction_id, user_id)
            return False

    async def broadcast_to_auction(self, auction_id: str, message: dict[str, Any]) -> int:
        """Broadcast message to all users in an auction room using concurrent sends.

        Args:
            auction_id: Auction UUID string
            message: JSON-serializable message dict

        Returns:
            Number of users successfully sent to
        """
        # Copy to avoid modification during iteration
        connections = dict(self.active_connections.get(auction_id, {}))
        if not connections:
            return 0

        async def send_to_one(user_id: str, ws: WebSocket) -> tuple[str, bool]:
            try:
                await ws.send_json(message)
                return (user_id, True)
            except Exception as e:
                logger.warning(f"Failed to broadcast to user {user_id}: {e}")
                return (user_id, False)

        results = await asyncio.gather(
            *[send_to_one(uid, ws) for uid, ws in connections.items()],
            return_exceptions=True,
        )

        sent_count = 0
        disconnected_users = []
        for result in results:
            if isinstance(result, Exception):
                continue
            user_id, success = result
            if success:
                sent_count += 1
            else:
                disconnected_users.append(user_id)

        for user_id in disconnected_users:
            await self.disconnect(auction_id, user_id)

        return sent_count

    def get_room_size(self, auction_id: str) -> int:
        return len(self.active_connections.get(auction_id, {}))

    def get_active_auctions(self) -> list[str]:
        return list(self.active_connections.keys())


class BroadcastGateway:
    """Fire-and-forget notification surface used by the core services.

    Every method swallows delivery failures after logging them; callers never
    wait on or react to client acknowledgement.
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def broadcast_status_change(
        self, auction_id: Any, new_status: str, message: str, timestamp: datetime
    ) -> int:
        event = StatusChangeEvent(
            data=StatusChangeData(
                auction_id=str(auction_id),
                status=new_status,
                message=message,
                timestamp=timestamp,
            )
        )
        try:
            return await self.manager.broadcast_to_auction(
                str(auction_id), event.model_dump(mode="json")
            )
        except Exception as e:
            logger.error(f"Status broadcast failed for auction {auction_id}: {e}")
            return 0

    async def broadcast_ranking_update(self, auction_id: Any, rankings: list[dict[str, Any]]) -> int:
        """Broadcast the leaderboard to all users in an auction room.

        Args:
            auction_id: Auction UUID
            rankings: Ranking dicts as produced by RankingService.get_rankings

        Returns:
            Number of users notified
        """
        entries = [
            RankingEntry(
                rank=r["rank"],
                bidder_id=str(r["bidder_id"]),
                bidder_code=r.get("bidder_code"),
                bidder_name=r.get("bidder_name"),
                amount=r["amount"],
                bid_time=r["bid_time"],
            )
            for r in rankings
        ]
        event = RankingUpdateEvent(
            data=RankingUpdateData(
                auction_id=str(auction_id),
                rankings=entries,
                total_bidders=len(entries),
                timestamp=datetime.now(timezone.utc),
            )
        )
        try:
            return await self.manager.broadcast_to_auction(
                str(auction_id), event.model_dump(mode="json")
            )
        except Exception as e:
            logger.error(f"Ranking broadcast failed for auction {auction_id}: {e}")
            return 0

    async def send_bid_accepted(
        self,
        auction_id: Any,
        bidder_id: Any,
        bid_id: Any,
        amount: Decimal,
        rank: int | None,
        is_leading: bool,
        timestamp: datetime,
    ) -> bool:
        event = BidAcceptedEvent(
            data=BidAcceptedData(
                bid_id=str(bid_id),
                auction_id=str(auction_id),
                amount=amount,
                rank=rank,
                is_leading=is_leading,
                timestamp=timestamp,
            )
        )
        try:
            return await self.manager.send_to_user(
                str(auction_id), str(bidder_id), event.model_dump(mode="json")
            )
        except Exception as e:
            logger.warning(f"Bid accepted notification failed for bidder {bidder_id}: {e}")
            return False
