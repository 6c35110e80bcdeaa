from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from parkease.config import BookingPolicy, RefundTier
from parkease.domain.refunds import calculate_refund, refund_percentage
from parkease.models import ReservationStatus

STARTS_AT = datetime(2030, 1, 10, 10, 0, tzinfo=timezone.utc)
TOTAL = Decimal("256.75")
POLICY = BookingPolicy()


def _refund(hours_before: float, status: ReservationStatus = ReservationStatus.CONFIRMED):
    return calculate_refund(
        status=status,
        total_amount=TOTAL,
        starts_at=STARTS_AT,
        now=STARTS_AT - timedelta(hours=hours_before),
        policy=POLICY,
    )


def test_full_refund_a_day_ahead() -> None:
    decision = _refund(25)
    assert decision.percentage == 100
    assert decision.amount == TOTAL
    assert decision.platform_retention == Decimal("0.00")
    assert decision.reason == "Full refund - cancelled more than 24 hours in advance"


def test_half_refund_ten_hours_ahead() -> None:
    decision = _refund(10)
    assert decision.percentage == 50
    assert decision.amount == Decimal("128.38")
    assert decision.platform_retention == TOTAL - decision.amount
    assert decision.reason == "50% refund - cancelled 2-12 hours in advance"


def test_no_refund_an_hour_ahead() -> None:
    decision = _refund(1)
    assert decision.percentage == 0
    assert decision.amount == Decimal("0.00")
    assert decision.reason == "No refund - cancelled less than 2 hours before start time"


@pytest.mark.parametrize(
    "status",
    [ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT, ReservationStatus.COMPLETED],
)
def test_started_bookings_are_not_refunded(status: ReservationStatus) -> None:
    decision = _refund(48, status)
    assert decision.amount == Decimal("0")
    assert decision.platform_retention == TOTAL
    assert decision.reason == "Booking already started - no refund applicable"


def test_percentage_never_increases_closer_to_start() -> None:
    hours = [72, 24, 23.9, 12, 11.5, 2, 1.99, 0.5, 0, -3]
    percentages = [refund_percentage(h, POLICY)[0] for h in hours]
    assert percentages == sorted(percentages, reverse=True)
    assert percentages[0] == 100
    assert percentages[-1] == 0


def test_custom_tiers_are_honoured() -> None:
    policy = BookingPolicy(refund_tiers=(RefundTier(min_hours_before_start=48, percentage=80),))
    assert refund_percentage(50, policy) == (80, "80% refund - cancelled more than 48 hours in advance")
    assert refund_percentage(47, policy)[0] == 0


def test_unpaid_booking_has_nothing_to_refund() -> None:
    decision = _refund(48, ReservationStatus.PENDING)
    assert decision.percentage == 0
    assert decision.amount == Decimal("0")
    assert decision.platform_retention == Decimal("0")
    assert decision.reason == "No payment captured - nothing to refund"
