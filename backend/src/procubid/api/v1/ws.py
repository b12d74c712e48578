"""WebSocket endpoint for real-time auction updates."""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from procubid.store.base import StoreError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/{auction}")
async def websocket_endpoint(
    websocket: WebSocket,
    auction: str,
    user_id: str = Query(..., description="Caller user UUID"),
):
    """WebSocket endpoint for real-time auction updates.

    Connection URL: ws://host/ws/{auction_id_or_code}?user_id={uuid}

    Events pushed to client:
    - ranking_update: Best-bid leaderboard of a live auction
    - auction_status_change: Persisted status moved (live, ended, cancelled)
    - bid_accepted: Sent only to the bidder who placed the bid

    Client can send:
    - ping: Server responds with pong (heartbeat)
    """
    try:
        UUID(user_id)
    except ValueError:
        await websocket.close(code=4001, reason="Invalid user ID")
        return

    state = websocket.app.state
    try:
        async with state.store_factory() as store:
            record = await store.get_auction(auction)
    except StoreError as e:
        logger.error(f"WebSocket auction lookup failed: auction={auction}, error={e}")
        await websocket.close(code=1011, reason="Auction lookup failed")
        return

    if record is None:
        await websocket.close(code=4002, reason="Auction not found")
        return

    # Rooms are keyed by the auction UUID so codes and UUIDs share a room
    auction_id = str(record.id)
    manager = state.connection_manager
    await manager.connect(auction_id, user_id, websocket)

    try:
        while True:
            data = await websocket.receive_text()

            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: auction={auction_id}, user={user_id}")
    except Exception as e:
        logger.error(f"WebSocket error: auction={auction_id}, user={user_id}, error={e}")
    finally:
        await manager.disconnect(auction_id, user_id)
