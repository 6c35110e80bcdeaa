from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..config import BookingPolicy, RefundTier
from ..models import ReservationStatus
from ..utils.time import hours_between
from .pricing import quantize

CONSUMED_STATUSES = frozenset(
    {ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT, ReservationStatus.COMPLETED}
)


@dataclass(frozen=True)
class RefundDecision:
    percentage: int
    amount: Decimal
    platform_retention: Decimal
    hours_until_start: float
    reason: str


def _tier_reason(tier: RefundTier, upper: RefundTier | None) -> str:
    if upper is None:
        if tier.percentage == 100:
            return f"Full refund - cancelled more than {tier.min_hours_before_start} hours in advance"
        return f"{tier.percentage}% refund - cancelled more than {tier.min_hours_before_start} hours in advance"
    return (
        f"{tier.percentage}% refund - cancelled "
        f"{tier.min_hours_before_start}-{upper.min_hours_before_start} hours in advance"
    )


def refund_percentage(hours_until_start: float, policy: BookingPolicy) -> tuple[int, str]:
    tiers = sorted(policy.refund_tiers, key=lambda t: t.min_hours_before_start, reverse=True)
    upper: RefundTier | None = None
    for tier in tiers:
        if hours_until_start >= tier.min_hours_before_start:
            return tier.percentage, _tier_reason(tier, upper)
        upper = tier
    cutoff = tiers[-1].min_hours_before_start if tiers else 0
    return 0, f"No refund - cancelled less than {cutoff} hours before start time"


def calculate_refund(
    *,
    status: ReservationStatus,
    total_amount: Decimal,
    starts_at: datetime,
    now: datetime,
    policy: BookingPolicy,
) -> RefundDecision:
    hours_until_start = hours_between(now, starts_at)
    if status == ReservationStatus.PENDING:
        return RefundDecision(
            percentage=0,
            amount=Decimal("0"),
            platform_retention=Decimal("0"),
            hours_until_start=round(hours_until_start, 1),
            reason="No payment captured - nothing to refund",
        )
    if status in CONSUMED_STATUSES:
        return RefundDecision(
            percentage=0,
            amount=Decimal("0"),
            platform_retention=total_amount,
            hours_until_start=round(hours_until_start, 1),
            reason="Booking already started - no refund applicable",
        )

    percentage, reason = refund_percentage(hours_until_start, policy)
    amount = quantize(total_amount * percentage / Decimal(100), policy)
    return RefundDecision(
        percentage=percentage,
        amount=amount,
        platform_retention=total_amount - amount,
        hours_until_start=round(hours_until_start, 1),
        reason=reason,
    )
