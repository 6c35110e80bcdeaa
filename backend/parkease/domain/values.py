from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from .errors import InvalidWindowError

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


def ceil_div(value: timedelta, unit: timedelta) -> int:
    """Number of whole `unit`s needed to cover `value`."""
    return -(-value // unit)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end) between two aware timestamps."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidWindowError("start and end must be timezone-aware")
        if self.end <= self.start:
            raise InvalidWindowError("End time must be after start time")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        return other.start < self.end and other.end > self.start

    def widened(self, margin: timedelta) -> "TimeWindow":
        return TimeWindow(self.start - margin, self.end + margin)


@dataclass(frozen=True)
class Tariff:
    hourly_rate: Decimal
    daily_rate: Decimal

    def __post_init__(self) -> None:
        if self.hourly_rate <= 0 or self.daily_rate <= 0:
            raise ValueError("hourly and daily rates must be positive")
