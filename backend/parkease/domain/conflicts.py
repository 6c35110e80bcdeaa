from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Sequence

from .errors import FullyBookedError, InsufficientBufferError
from .values import TimeWindow


@dataclass(frozen=True)
class BookedWindow:
    """An active reservation as seen by admission control."""

    reservation_id: int
    window: TimeWindow


def _candidates(existing: Iterable[BookedWindow], exclude_reservation_id: int | None) -> list[BookedWindow]:
    return [b for b in existing if b.reservation_id != exclude_reservation_id]


def find_overlapping(
    candidate: TimeWindow,
    existing: Iterable[BookedWindow],
    *,
    exclude_reservation_id: int | None = None,
) -> list[BookedWindow]:
    return [b for b in _candidates(existing, exclude_reservation_id) if b.window.overlaps(candidate)]


def has_buffer(candidate: TimeWindow, existing: Iterable[BookedWindow], buffer: timedelta) -> bool:
    """A neighbour may touch the candidate or sit at least `buffer` away, nothing in between."""
    for booked in existing:
        gap_before_existing = booked.window.start - candidate.end
        if timedelta(0) < gap_before_existing < buffer:
            return False
        gap_after_existing = candidate.start - booked.window.end
        if timedelta(0) < gap_after_existing < buffer:
            return False
    return True


def check_conflicts(
    candidate: TimeWindow,
    *,
    capacity: int,
    existing: Sequence[BookedWindow],
    buffer: timedelta,
    exclude_reservation_id: int | None = None,
) -> int:
    """
    Admission check against a consistent snapshot of a spot's active reservations.
    Returns the capacity left for the candidate window before it is booked.
    Raises FullyBookedError or InsufficientBufferError.
    """
    others = _candidates(existing, exclude_reservation_id)
    overlapping = find_overlapping(candidate, others)
    if len(overlapping) >= capacity:
        raise FullyBookedError(
            "Spot is fully booked for this time period",
            conflicting_bookings=len(overlapping),
            capacity=capacity,
        )
    if not has_buffer(candidate, others, buffer):
        minutes = int(buffer / timedelta(minutes=1))
        raise InsufficientBufferError(
            f"Insufficient buffer time between bookings ({minutes} min required)"
        )
    return capacity - len(overlapping)
