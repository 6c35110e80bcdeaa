from dataclasses import dataclass, field
from datetime import timedelta
from typing import Sequence

from ..config import BookingPolicy
from ..models import SpotStatus, VehicleType
from .conflicts import BookedWindow, check_conflicts
from .errors import OutOfScheduleError, SelfBookingError, SpotInactiveError, VehicleNotSupportedError
from .schedule import WeeklyWindow, check_schedule
from .values import Tariff, TimeWindow


@dataclass(frozen=True)
class SpotSnapshot:
    spot_id: int
    host_id: int
    tariff: Tariff
    capacity: int
    status: SpotStatus
    windows: tuple[WeeklyWindow, ...]
    timezone: str
    vehicle_types: frozenset[VehicleType] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")


def validate_admission(
    snapshot: SpotSnapshot,
    window: TimeWindow,
    *,
    seeker_id: int | None,
    vehicle_type: VehicleType | None,
    active: Sequence[BookedWindow],
    policy: BookingPolicy,
    exclude_reservation_id: int | None = None,
) -> int:
    """
    Pure admission gate: spot is bookable, request fits the weekly schedule, and the
    active reservations leave capacity and buffer for it. Seeker and vehicle checks
    are skipped when those are not known yet (availability preview).
    Returns remaining capacity after booking if OK. Raises domain errors otherwise.
    """
    if snapshot.status != SpotStatus.ACTIVE:
        raise SpotInactiveError(f"Spot is {snapshot.status}")
    if seeker_id is not None and snapshot.host_id == seeker_id:
        raise SelfBookingError("You cannot book your own parking spot")
    if vehicle_type is not None and snapshot.vehicle_types and vehicle_type not in snapshot.vehicle_types:
        supported = ", ".join(sorted(snapshot.vehicle_types))
        raise VehicleNotSupportedError(
            f"This spot does not support {vehicle_type}. Supported types: {supported}"
        )

    schedule = check_schedule(snapshot.windows, window, tz_name=snapshot.timezone)
    if not schedule.in_schedule:
        raise OutOfScheduleError(schedule.reason or "Requested time is outside the spot's schedule")

    remaining = check_conflicts(
        window,
        capacity=snapshot.capacity,
        existing=active,
        buffer=timedelta(minutes=policy.buffer_minutes),
        exclude_reservation_id=exclude_reservation_id,
    )
    return remaining - 1
