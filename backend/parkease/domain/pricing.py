"""Quote and overtime arithmetic.

All amounts are `Decimal` and rounded half-to-even at the policy's money
quantum, so repeated bookings do not drift in either party's favour.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_EVEN, Decimal
from enum import StrEnum

from ..config import BookingPolicy
from .values import DAY, HOUR, Tariff, TimeWindow, ceil_div


class PricingMethod(StrEnum):
    HOURLY = "hourly"
    DAILY = "daily"


@dataclass(frozen=True)
class Quote:
    duration_hours: int
    duration_days: int
    base_amount: Decimal
    platform_fee: Decimal
    tax: Decimal
    total_amount: Decimal
    host_earnings: Decimal
    hourly_rate: Decimal
    daily_rate: Decimal
    calculation_method: PricingMethod


@dataclass(frozen=True)
class OvertimeCharge:
    hours: int
    rate: Decimal
    charge: Decimal
    platform_fee: Decimal
    host_earnings: Decimal

    @property
    def message(self) -> str:
        return f"{self.hours} hour(s) overtime at {self.rate}/hr"


def quantize(amount: Decimal, policy: BookingPolicy) -> Decimal:
    return amount.quantize(policy.money_quantum, rounding=ROUND_HALF_EVEN)


def split_platform_fee(amount: Decimal, policy: BookingPolicy) -> tuple[Decimal, Decimal]:
    """Return (platform_fee, host_earnings) for a gross amount."""
    platform_fee = quantize(amount * policy.platform_fee_rate, policy)
    return platform_fee, quantize(amount, policy) - platform_fee


def _partial_day_amount(remainder: timedelta, tariff: Tariff, threshold: timedelta) -> Decimal:
    hourly = ceil_div(remainder, HOUR) * tariff.hourly_rate
    if remainder < threshold:
        return hourly
    # A partial day long enough opens a day block covering the threshold hours.
    day_block = tariff.daily_rate + ceil_div(remainder - threshold, HOUR) * tariff.hourly_rate
    return min(day_block, hourly)


def calculate_quote(tariff: Tariff, window: TimeWindow, policy: BookingPolicy) -> Quote:
    duration = window.duration
    threshold = timedelta(hours=policy.daily_pricing_threshold_hours)

    if duration >= threshold:
        method = PricingMethod.DAILY
        full_days = duration // DAY
        remainder = duration - full_days * DAY
        base = full_days * tariff.daily_rate
        if remainder:
            base += _partial_day_amount(remainder, tariff, threshold)
    else:
        method = PricingMethod.HOURLY
        base = ceil_div(duration, HOUR) * tariff.hourly_rate

    base_amount = quantize(Decimal(base), policy)
    platform_fee, host_earnings = split_platform_fee(base_amount, policy)
    # Tax applies to the platform's cut only.
    tax = quantize(platform_fee * policy.tax_rate, policy)
    return Quote(
        duration_hours=ceil_div(duration, HOUR),
        duration_days=ceil_div(duration, DAY),
        base_amount=base_amount,
        platform_fee=platform_fee,
        tax=tax,
        total_amount=base_amount + tax,
        host_earnings=host_earnings,
        hourly_rate=tariff.hourly_rate,
        daily_rate=tariff.daily_rate,
        calculation_method=method,
    )


def overtime_hours(ends_at: datetime, checked_out_at: datetime) -> int:
    if checked_out_at <= ends_at:
        return 0
    return ceil_div(checked_out_at - ends_at, HOUR)


def calculate_overtime(hours: int, hourly_rate: Decimal, policy: BookingPolicy) -> OvertimeCharge:
    if hours < 0:
        raise ValueError("overtime hours cannot be negative")
    if hourly_rate <= 0:
        raise ValueError("hourly rate must be positive")
    rate = quantize(hourly_rate * policy.overtime_multiplier, policy)
    charge = quantize(rate * hours, policy)
    platform_fee, host_earnings = split_platform_fee(charge, policy)
    return OvertimeCharge(
        hours=hours,
        rate=rate,
        charge=charge,
        platform_fee=platform_fee,
        host_earnings=host_earnings,
    )
