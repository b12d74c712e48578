"""Bid validation rules.

Checks run in a fixed order and the first failing check decides the
rejection reason: amount, step multiple, ceiling, liveness, invitation.
"""

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from procubid.models.enums import AuctionStatus, CalculatedStatus
from procubid.services.liveness import evaluate
from procubid.store.records import AuctionRecord

MESSAGE_TIME_FORMAT = "%B %d, %Y %I:%M %p"


class RejectionReason(str, Enum):
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_STEP_MULTIPLE = "INVALID_STEP_MULTIPLE"
    EXCEEDS_CEILING_PRICE = "EXCEEDS_CEILING_PRICE"
    AUCTION_NOT_LIVE = "AUCTION_NOT_LIVE"
    NOT_INVITED = "NOT_INVITED"


@dataclass(frozen=True)
class BidDecision:
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def accept(cls) -> "BidDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str, **details: Any) -> "BidDecision":
        return cls(accepted=False, reason=reason, message=message, details=details)


def parse_amount(amount: Any) -> Optional[Decimal]:
    """Parse a submitted amount; None unless it is a finite positive number."""
    if amount is None or isinstance(amount, bool):
        return None
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


def decimal_places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def is_step_multiple(amount: Decimal, step: Decimal) -> bool:
    """Exact multiple check, scaling both values by the step's decimal places.

    An amount that still has a fractional part after scaling (more decimals
    than the step) is never a multiple.
    """
    scale = Decimal(10) ** decimal_places(step)
    scaled_amount = amount * scale
    scaled_step = int(step * scale)
    if scaled_amount != scaled_amount.to_integral_value():
        return False
    return int(scaled_amount) % scaled_step == 0


def nearest_multiples(amount: Decimal, step: Decimal) -> tuple[Decimal, Decimal]:
    lower = (amount // step) * step
    return lower, lower + step


def validate_bid(
    amount: Any,
    auction: AuctionRecord,
    invitation_exists: bool,
    now: datetime,
    tz: tzinfo,
) -> BidDecision:
    """Decide whether a bid may be accepted.

    Args:
        amount: Submitted amount in any numeric or string form
        auction: Canonical auction record
        invitation_exists: Whether the bidder is invited to the auction
        now: Current instant
        tz: Civil timezone of the auction schedule

    Returns:
        BidDecision; rejected decisions carry a reason, a human message
        and structured details
    """
    value = parse_amount(amount)
    if value is None:
        return BidDecision.reject(
            RejectionReason.INVALID_AMOUNT,
            "Bid amount must be a positive number",
        )

    step = auction.step_amount
    ceiling = auction.ceiling_price
    try:
        off_step = step is not None and step > 0 and not is_step_multiple(value, step)
        if off_step:
            lower, higher = nearest_multiples(value, step)
    except (ArithmeticError, ValueError):
        # Amounts too large for the decimal context cannot be scaled
        return _out_of_range(value, ceiling)
    if off_step:
        return BidDecision.reject(
            RejectionReason.INVALID_STEP_MULTIPLE,
            f"Bid amount must be in multiples of {step}. "
            f"Your bid of {value} is not a valid multiple.",
            step_amount=str(step),
            your_bid=str(value),
            nearest_valid_bids={
                "lower": str(lower) if lower > 0 else None,
                "higher": str(higher),
            },
            examples=[str(step), str(step * 2), str(step * 3)],
        )

    if ceiling is not None and value > ceiling:
        return BidDecision.reject(
            RejectionReason.EXCEEDS_CEILING_PRICE,
            f"Bid amount cannot exceed ceiling price of {ceiling}",
            ceiling_price=str(ceiling),
        )

    liveness = evaluate(auction, now, tz)
    if not liveness.is_live:
        return _not_live(auction, liveness.calculated_status, liveness.starts_at, liveness.ends_at)

    if not invitation_exists:
        return BidDecision.reject(
            RejectionReason.NOT_INVITED,
            "You are not invited to this auction",
        )

    return BidDecision.accept()


def _out_of_range(value: Decimal, ceiling: Optional[Decimal]) -> BidDecision:
    if ceiling is not None and value > ceiling:
        return BidDecision.reject(
            RejectionReason.EXCEEDS_CEILING_PRICE,
            f"Bid amount cannot exceed ceiling price of {ceiling}",
            ceiling_price=str(ceiling),
        )
    return BidDecision.reject(
        RejectionReason.INVALID_AMOUNT,
        "Bid amount is out of range",
    )


def _not_live(
    auction: AuctionRecord,
    calculated: CalculatedStatus,
    starts_at: Optional[datetime],
    ends_at: Optional[datetime],
) -> BidDecision:
    if calculated is CalculatedStatus.ERROR:
        return BidDecision.reject(
            RejectionReason.AUCTION_NOT_LIVE,
            "Auction schedule is invalid",
            state="invalid_schedule",
            calculated_status=calculated.value,
        )
    if calculated is CalculatedStatus.APPROVED and starts_at is not None:
        return BidDecision.reject(
            RejectionReason.AUCTION_NOT_LIVE,
            f"Auction has not started yet. It starts at {starts_at.strftime(MESSAGE_TIME_FORMAT)}",
            state="not_started",
            calculated_status=calculated.value,
        )
    if calculated is CalculatedStatus.ENDED and auction.status in (
        AuctionStatus.APPROVED,
        AuctionStatus.LIVE,
        AuctionStatus.ENDED,
    ):
        ended = ends_at.strftime(MESSAGE_TIME_FORMAT) if ends_at else "an earlier time"
        return BidDecision.reject(
            RejectionReason.AUCTION_NOT_LIVE,
            f"Auction has ended. It ended at {ended}",
            state="ended",
            calculated_status=calculated.value,
        )
    return BidDecision.reject(
        RejectionReason.AUCTION_NOT_LIVE,
        f"Auction is not live. Current status: {calculated.value}",
        state="wrong_status",
        calculated_status=calculated.value,
    )
