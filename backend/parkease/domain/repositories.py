from __future__ import annotations

from datetime import datetime
from types import TracebackType
from typing import Callable, Protocol

from ..models import Reservation, ReservationCharge
from .conflicts import BookedWindow
from .services import SpotSnapshot
from .values import TimeWindow


class SpotRepository(Protocol):
    async def get(self, spot_id: int) -> SpotSnapshot | None: ...

    async def get_for_update(self, spot_id: int) -> SpotSnapshot | None: ...


class ReservationRepository(Protocol):
    async def list_active_for_spot(self, spot_id: int, window_hint: TimeWindow) -> list[BookedWindow]: ...

    async def create(self, reservation: Reservation) -> Reservation: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def update(self, reservation: Reservation, *, expected_version: int) -> Reservation: ...

    async def add_charge(self, charge: ReservationCharge) -> ReservationCharge: ...

    async def list_charges(self, reservation_id: int) -> list[ReservationCharge]: ...

    async def list_pending_created_before(self, cutoff: datetime) -> list[Reservation]: ...


class UnitOfWork(Protocol):
    """One atomic storage transaction. Commits on clean exit, rolls back otherwise."""

    spots: SpotRepository
    reservations: ReservationRepository

    async def __aenter__(self) -> "UnitOfWork": ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


class TrustScoreHook(Protocol):
    async def on_booking_terminal(self, user_id: int, outcome: str) -> None: ...
