"""Canonical value records crossing the store boundary.

Rows are normalized here once so that the liveness evaluator, the validator
and the ranking engine only ever see typed values (or None when a field is
missing or malformed).
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from procubid.models.enums import AuctionStatus, Currency, ResultStatus


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a numeric value to Decimal; None for missing or malformed input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def to_time(value: Any) -> Optional[time]:
    """Accepts time objects or "HH:MM" / "HH:MM:SS" strings."""
    if value is None:
        return None
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError:
        return None


def to_minutes(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        minutes = int(str(value).strip())
    except ValueError:
        return None
    return minutes


@dataclass(frozen=True)
class AuctionRecord:
    """Canonical auction value; schedule fields are None when unusable."""

    id: uuid.UUID
    auction_code: str
    title: str
    status: AuctionStatus
    auction_date: Optional[date]
    start_time: Optional[time]
    duration_minutes: Optional[int]
    ceiling_price: Optional[Decimal]
    step_amount: Optional[Decimal]
    currency: Currency = Currency.LKR
    category: Optional[str] = None
    sbu: Optional[str] = None
    special_notices: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by: Optional[uuid.UUID] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "AuctionRecord":
        return cls(
            id=row.id,
            auction_code=row.auction_code,
            title=row.title,
            status=AuctionStatus(row.status),
            auction_date=to_date(row.auction_date),
            start_time=to_time(row.start_time),
            duration_minutes=to_minutes(row.duration_minutes),
            ceiling_price=to_decimal(row.ceiling_price),
            step_amount=to_decimal(row.step_amount),
            currency=Currency(row.currency),
            category=row.category,
            sbu=row.sbu,
            special_notices=row.special_notices,
            created_by=row.created_by,
            approved_by=row.approved_by,
            approved_at=row.approved_at,
            rejected_by=row.rejected_by,
            rejected_at=row.rejected_at,
            rejection_reason=row.rejection_reason,
            cancelled_by=row.cancelled_by,
            cancelled_at=row.cancelled_at,
            cancellation_reason=row.cancellation_reason,
        )


@dataclass(frozen=True)
class BidRecord:
    id: uuid.UUID
    auction_id: uuid.UUID
    bidder_id: uuid.UUID
    amount: Decimal
    bid_time: datetime
    sequence: int

    @classmethod
    def from_row(cls, row: Any) -> "BidRecord":
        return cls(
            id=row.id,
            auction_id=row.auction_id,
            bidder_id=row.bidder_id,
            amount=Decimal(row.amount),
            bid_time=row.bid_time,
            sequence=row.sequence,
        )


@dataclass(frozen=True)
class BidderRecord:
    id: uuid.UUID
    user_code: str
    name: str
    email: str
    company: Optional[str] = None
    role: str = "bidder"
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Any) -> "BidderRecord":
        return cls(
            id=row.id,
            user_code=row.user_code,
            name=row.name,
            email=row.email,
            company=row.company,
            role=row.role,
            is_active=row.is_active,
        )


@dataclass(frozen=True)
class ResultRecord:
    auction_id: uuid.UUID
    bidder_id: uuid.UUID
    status: ResultStatus
    disqualification_reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    shortlisted_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Any) -> "ResultRecord":
        return cls(
            auction_id=row.auction_id,
            bidder_id=row.bidder_id,
            status=ResultStatus(row.status),
            disqualification_reason=row.disqualification_reason,
            cancel_reason=row.cancel_reason,
            shortlisted_at=row.shortlisted_at,
        )
