"""Auction liveness evaluation.

Derives the calculated status of an auction from its persisted status, its
wall-clock schedule and the current instant. Pure and deterministic: the
same inputs always yield the same Liveness, and nothing here raises.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Optional

from procubid.models.enums import AuctionStatus, CalculatedStatus
from procubid.store.records import AuctionRecord


@dataclass(frozen=True)
class Liveness:
    calculated_status: CalculatedStatus
    is_live: bool
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    def seconds_until_start(self, now: datetime) -> Optional[int]:
        if self.starts_at is None or now >= self.starts_at:
            return None
        return int((self.starts_at - now).total_seconds())

    def seconds_remaining(self, now: datetime) -> Optional[int]:
        if not self.is_live or self.ends_at is None:
            return None
        return max(0, int((self.ends_at - now).total_seconds()))


def auction_window(
    auction: AuctionRecord, tz: tzinfo
) -> Optional[tuple[datetime, datetime]]:
    """Return the closed [start, end] window, or None if the schedule is unusable."""
    if auction.auction_date is None or auction.start_time is None:
        return None
    if auction.duration_minutes is None or auction.duration_minutes < 0:
        return None
    try:
        start = datetime.combine(auction.auction_date, auction.start_time, tzinfo=tz)
        end = start + timedelta(minutes=auction.duration_minutes)
    except (OverflowError, ValueError):
        return None
    return start, end


def evaluate(auction: AuctionRecord, now: datetime, tz: tzinfo) -> Liveness:
    """Evaluate the calculated status of an auction at `now`.

    Args:
        auction: Canonical auction record
        now: Current instant; a naive value is read in `tz`
        tz: Civil timezone the schedule is expressed in

    Returns:
        Liveness with the calculated status and the window bounds
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)

    window = auction_window(auction, tz)
    if window is None:
        return Liveness(CalculatedStatus.ERROR, False)
    start, end = window

    status = auction.status
    if status is AuctionStatus.APPROVED:
        if now < start:
            calculated = CalculatedStatus.APPROVED
        elif now <= end:
            calculated = CalculatedStatus.LIVE
        else:
            calculated = CalculatedStatus.ENDED
    elif status is AuctionStatus.LIVE:
        calculated = CalculatedStatus.ENDED if now >= end else CalculatedStatus.LIVE
    else:
        # pending, rejected, cancelled and ended never move on the clock
        calculated = CalculatedStatus(status.value)

    return Liveness(
        calculated_status=calculated,
        is_live=calculated is CalculatedStatus.LIVE,
        starts_at=start,
        ends_at=end,
    )
