from __future__ import annotations

from typing import Mapping

from ..models import ReservationStatus
from .errors import InvalidStateError

S = ReservationStatus

TRANSITIONS: Mapping[ReservationStatus, frozenset[ReservationStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.CHECKED_IN, S.CANCELLED, S.DISPUTED}),
    S.CHECKED_IN: frozenset({S.CHECKED_OUT, S.DISPUTED}),
    S.CHECKED_OUT: frozenset({S.COMPLETED, S.DISPUTED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    # Frozen until an administrative process outside this package resolves it.
    S.DISPUTED: frozenset(),
}

_missing = set(ReservationStatus) - set(TRANSITIONS)
if _missing:
    raise RuntimeError(f"transition table lacks statuses: {sorted(_missing)}")


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: ReservationStatus, target: ReservationStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot move booking from {current} to {target}",
            current_status=str(current),
            target_status=str(target),
        )
