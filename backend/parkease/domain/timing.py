from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Optional

from ..config import BookingPolicy
from .errors import InvalidCheckoutTimeError, NotCheckedInError
from .pricing import overtime_hours


class CheckInVerdict(StrEnum):
    ON_TIME = "on_time"
    LATE = "late"
    TOO_EARLY = "too_early"
    NO_SHOW = "no_show"
    BOOKING_ENDED = "booking_ended"


@dataclass(frozen=True)
class CheckInTiming:
    verdict: CheckInVerdict
    earliest: datetime
    latest: datetime
    minutes_late: int = 0

    @property
    def is_late(self) -> bool:
        return self.verdict is CheckInVerdict.LATE


@dataclass(frozen=True)
class CheckOutTiming:
    overtime_hours: int

    @property
    def is_overtime(self) -> bool:
        return self.overtime_hours > 0


def evaluate_check_in(
    *,
    starts_at: datetime,
    ends_at: datetime,
    now: datetime,
    policy: BookingPolicy,
) -> CheckInTiming:
    earliest = starts_at - timedelta(minutes=policy.check_in_early_minutes)
    latest = starts_at + timedelta(minutes=policy.no_show_after_minutes)
    minutes_late = round((now - starts_at) / timedelta(minutes=1))

    if now < earliest:
        verdict = CheckInVerdict.TOO_EARLY
    elif now > latest:
        verdict = CheckInVerdict.NO_SHOW
    elif now > ends_at:
        verdict = CheckInVerdict.BOOKING_ENDED
    elif minutes_late > policy.check_in_late_grace_minutes:
        verdict = CheckInVerdict.LATE
    else:
        verdict = CheckInVerdict.ON_TIME
    return CheckInTiming(
        verdict=verdict,
        earliest=earliest,
        latest=latest,
        minutes_late=max(0, minutes_late),
    )


def evaluate_check_out(
    *,
    checked_in_at: Optional[datetime],
    ends_at: datetime,
    now: datetime,
) -> CheckOutTiming:
    if checked_in_at is None:
        raise NotCheckedInError("Must check in before checking out")
    if now < checked_in_at:
        raise InvalidCheckoutTimeError("Check-out time cannot be before check-in time")
    return CheckOutTiming(
        overtime_hours=overtime_hours(ends_at, now),
    )
