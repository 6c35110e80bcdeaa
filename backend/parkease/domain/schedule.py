from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Iterable, Sequence

from ..models import Weekday
from ..utils.time import to_local
from .values import TimeWindow


@dataclass(frozen=True)
class WeeklyWindow:
    day: Weekday
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("weekly window start must be before its end")

    def label(self) -> str:
        return f"{self.start:%H:%M} - {self.end:%H:%M}"


@dataclass(frozen=True)
class ScheduleCheck:
    in_schedule: bool
    reason: str | None = None


def _hours_label(windows: Sequence[WeeklyWindow]) -> str:
    return ", ".join(w.label() for w in windows)


def check_schedule(
    windows: Iterable[WeeklyWindow],
    window: TimeWindow,
    *,
    tz_name: str,
) -> ScheduleCheck:
    """
    Check a requested window against a spot's weekly availability, using the spot's
    local wall clock. Same-day bookings must fit inside one window of that day;
    cross-midnight bookings need a window containing the start on the start day and
    one containing the end on the end day.
    """
    local_start = to_local(window.start, tz_name)
    local_end = to_local(window.end, tz_name)
    start_day = Weekday.of(local_start)
    end_day = Weekday.of(local_end)
    same_day = local_start.date() == local_end.date()

    all_windows = list(windows)
    start_windows = [w for w in all_windows if w.day == start_day]
    if not start_windows:
        return ScheduleCheck(False, f"Spot not available on {start_day}")

    end_windows = [w for w in all_windows if w.day == end_day]
    if not same_day and not end_windows:
        return ScheduleCheck(False, f"Spot not available on {end_day}")

    start_at = local_start.time()
    end_at = local_end.time()

    opening = [w for w in start_windows if w.start <= start_at < w.end]
    if not opening:
        return ScheduleCheck(
            False,
            f"Start time {start_at:%H:%M} is outside available hours ({_hours_label(start_windows)})",
        )

    if same_day:
        if not any(end_at <= w.end for w in opening):
            return ScheduleCheck(
                False,
                f"End time {end_at:%H:%M} is outside available hours ({_hours_label(start_windows)})",
            )
    elif not any(w.start <= end_at <= w.end for w in end_windows):
        return ScheduleCheck(
            False,
            f"End time {end_at:%H:%M} is outside available hours on {end_day} ({_hours_label(end_windows)})",
        )

    return ScheduleCheck(True)
