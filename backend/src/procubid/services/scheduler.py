"""Status transition scheduler.

Two independent loops run on fixed cadences:

- status sweep: moves the persisted status of open auctions forward to their
  calculated status and emits a status change event per transition.
- ranking broadcast: pushes the leaderboard of every live auction.

Each tick opens a fresh store, so one tick never sees another's session
state. Ticks are plain coroutines and can be awaited directly.
"""

import asyncio
import logging
import time
from contextlib import AbstractAsyncContextManager
from typing import Callable, Optional

from procubid.core.clock import Clock
from procubid.middleware.metrics import (
    record_status_conflict,
    record_status_transition,
    record_sweep_duration,
    record_sweep_error,
)
from procubid.models.enums import AuctionStatus, CalculatedStatus
from procubid.services.liveness import evaluate
from procubid.services.notifier import BroadcastGateway
from procubid.services.ranking_service import RankingService
from procubid.store.base import AuctionStore

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], AbstractAsyncContextManager[AuctionStore]]

STATUS_MESSAGES = {
    AuctionStatus.LIVE: "Auction is now live!",
    AuctionStatus.ENDED: "Auction has ended!",
    AuctionStatus.CANCELLED: "Auction has been cancelled",
}


def status_message(status: AuctionStatus) -> str:
    return STATUS_MESSAGES.get(status, f"Auction status changed to {status.value}")


class AuctionScheduler:
    """Drives persisted auction status and live ranking broadcasts."""

    def __init__(
        self,
        store_factory: StoreFactory,
        gateway: BroadcastGateway,
        clock: Clock,
        status_interval: float = 30.0,
        ranking_interval: float = 5.0,
    ):
        self.store_factory = store_factory
        self.gateway = gateway
        self.clock = clock
        self.status_interval = status_interval
        self.ranking_interval = ranking_interval
        self._status_task: Optional[asyncio.Task] = None
        self._ranking_task: Optional[asyncio.Task] = None

    async def sweep_statuses(self) -> list[dict]:
        """Run one status sweep over every open auction.

        Returns:
            The transitions persisted during this sweep
        """
        started = time.perf_counter()
        transitions: list[dict] = []
        now = self.clock.now()

        async with self.store_factory() as store:
            try:
                auctions = await store.list_open_auctions()
            except Exception as e:
                logger.error(f"Status sweep could not list open auctions: {e}")
                record_sweep_error("status")
                return transitions

            for auction in auctions:
                try:
                    liveness = evaluate(auction, now, self.clock.tz)
                    if liveness.calculated_status is CalculatedStatus.ERROR:
                        logger.warning(
                            f"Auction {auction.auction_code} has an invalid schedule, skipping"
                        )
                        continue

                    new_status = liveness.calculated_status.as_persisted()
                    if new_status is None or new_status == auction.status:
                        continue

                    updated = await store.update_auction_status(
                        auction.id, new_status, expected_current_status=auction.status
                    )
                    if not updated:
                        logger.info(
                            f"Auction {auction.auction_code} changed status concurrently, "
                            f"skipping {auction.status.value} -> {new_status.value}"
                        )
                        record_status_conflict()
                        continue

                    logger.info(
                        f"Auction {auction.auction_code} status "
                        f"{auction.status.value} -> {new_status.value}"
                    )
                    record_status_transition(auction.status.value, new_status.value)
                    transitions.append({
                        "auction_id": auction.id,
                        "from_status": auction.status,
                        "to_status": new_status,
                    })

                    await self.gateway.broadcast_status_change(
                        auction.id, new_status.value, status_message(new_status), now
                    )
                except Exception as e:
                    logger.error(f"Status sweep failed for auction {auction.auction_code}: {e}")
                    record_sweep_error("status")

        record_sweep_duration("status", time.perf_counter() - started)
        return transitions

    async def broadcast_rankings(self) -> int:
        """Broadcast the leaderboard of every auction that is live now.

        Returns:
            Number of auctions broadcast
        """
        started = time.perf_counter()
        broadcast = 0
        now = self.clock.now()

        async with self.store_factory() as store:
            try:
                auctions = await store.list_open_auctions()
            except Exception as e:
                logger.error(f"Ranking broadcast could not list open auctions: {e}")
                record_sweep_error("ranking")
                return broadcast

            ranking_service = RankingService(store)
            for auction in auctions:
                try:
                    if not evaluate(auction, now, self.clock.tz).is_live:
                        continue
                    rankings = await ranking_service.get_rankings(auction.id)
                    await self.gateway.broadcast_ranking_update(auction.id, rankings)
                    broadcast += 1
                except Exception as e:
                    logger.error(
                        f"Error broadcasting ranking for auction {auction.auction_code}: {e}"
                    )
                    record_sweep_error("ranking")

        record_sweep_duration("ranking", time.perf_counter() - started)
        return broadcast

    async def _run_every(self, name: str, interval: float, tick: Callable) -> None:
        while True:
            try:
                await tick()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                logger.info(f"{name} loop cancelled")
                break
            except Exception as e:
                logger.error(f"Error in {name} loop: {e}")
                await asyncio.sleep(interval)

    def start(self) -> None:
        if self._status_task is not None or self._ranking_task is not None:
            return
        logger.info(
            f"Starting scheduler: status every {self.status_interval}s, "
            f"rankings every {self.ranking_interval}s"
        )
        self._status_task = asyncio.create_task(
            self._run_every("Status sweep", self.status_interval, self.sweep_statuses)
        )
        self._ranking_task = asyncio.create_task(
            self._run_every("Ranking broadcast", self.ranking_interval, self.broadcast_rankings)
        )

    async def stop(self) -> None:
        for task in (self._status_task, self._ranking_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._status_task = None
        self._ranking_task = None
        logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._status_task is not None and not self._status_task.done()
