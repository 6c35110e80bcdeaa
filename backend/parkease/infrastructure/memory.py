"""In-process storage with staged writes.

Reads hand out detached copies; nothing becomes visible to other units of work
until commit, and reservation updates are compare-and-set on `version`.
"""
from __future__ import annotations

import copy
import itertools
from datetime import datetime
from types import TracebackType
from typing import Iterator

from sqlalchemy import inspect

from ..domain.conflicts import BookedWindow
from ..domain.errors import ReservationConflictError, StaleReservationError
from ..domain.services import SpotSnapshot
from ..domain.values import TimeWindow
from ..models import ACTIVE_STATUSES, Reservation, ReservationCharge, ReservationStatus


def _detached_copy(reservation: Reservation) -> Reservation:
    mapper = inspect(Reservation)
    return Reservation(
        **{attr.key: copy.copy(getattr(reservation, attr.key)) for attr in mapper.column_attrs}
    )


class InMemoryStore:
    def __init__(self) -> None:
        self.spots: dict[int, SpotSnapshot] = {}
        self.reservations: dict[int, Reservation] = {}
        self.charges: list[ReservationCharge] = []
        self._reservation_ids: Iterator[int] = itertools.count(1)
        self._charge_ids: Iterator[int] = itertools.count(1)

    def add_spot(self, spot: SpotSnapshot) -> SpotSnapshot:
        self.spots[spot.spot_id] = spot
        return spot

    def unit_of_work(self) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self)

    def next_reservation_id(self) -> int:
        return next(self._reservation_ids)

    def next_charge_id(self) -> int:
        return next(self._charge_ids)


class InMemorySpotRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get(self, spot_id: int) -> SpotSnapshot | None:
        return self.store.spots.get(spot_id)

    async def get_for_update(self, spot_id: int) -> SpotSnapshot | None:
        # Spot-level mutual exclusion is held by the caller.
        return self.store.spots.get(spot_id)


class InMemoryReservationRepository:
    def __init__(self, store: InMemoryStore, uow: "InMemoryUnitOfWork") -> None:
        self.store = store
        self.uow = uow

    def _visible(self) -> list[Reservation]:
        committed = [r for r in self.store.reservations.values() if r.id not in self.uow.updated]
        return committed + [r for r, _ in self.uow.updated.values()] + self.uow.created

    async def list_active_for_spot(self, spot_id: int, window_hint: TimeWindow) -> list[BookedWindow]:
        booked = []
        for reservation in self._visible():
            if reservation.spot_id != spot_id or reservation.status not in ACTIVE_STATUSES:
                continue
            window = TimeWindow(reservation.starts_at, reservation.ends_at)
            if window.overlaps(window_hint):
                booked.append(BookedWindow(reservation_id=reservation.id, window=window))
        return booked

    async def create(self, reservation: Reservation) -> Reservation:
        reservation.id = self.store.next_reservation_id()
        self.uow.created.append(reservation)
        return reservation

    async def get(self, reservation_id: int) -> Reservation | None:
        stored = self.store.reservations.get(reservation_id)
        return _detached_copy(stored) if stored is not None else None

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        return await self.get(reservation_id)

    async def update(self, reservation: Reservation, *, expected_version: int) -> Reservation:
        self.uow.updated[reservation.id] = (reservation, expected_version)
        return reservation

    async def add_charge(self, charge: ReservationCharge) -> ReservationCharge:
        charge.id = self.store.next_charge_id()
        self.uow.charges.append(charge)
        return charge

    async def list_charges(self, reservation_id: int) -> list[ReservationCharge]:
        charges = self.store.charges + self.uow.charges
        return [c for c in charges if c.reservation_id == reservation_id]

    async def list_pending_created_before(self, cutoff: datetime) -> list[Reservation]:
        return [
            _detached_copy(r)
            for r in self.store.reservations.values()
            if r.status == ReservationStatus.PENDING and r.created_at <= cutoff
        ]


class InMemoryUnitOfWork:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.created: list[Reservation] = []
        self.updated: dict[int, tuple[Reservation, int]] = {}
        self.charges: list[ReservationCharge] = []
        self.spots = InMemorySpotRepository(store)
        self.reservations = InMemoryReservationRepository(store, self)

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self._commit()

    def _commit(self) -> None:
        for reservation_id, (_, expected_version) in self.updated.items():
            stored = self.store.reservations.get(reservation_id)
            if stored is None or stored.version != expected_version:
                raise StaleReservationError(f"reservation {reservation_id} changed concurrently")
        for reservation in self.created:
            self._ensure_capacity(reservation)

        for reservation_id, (reservation, _) in self.updated.items():
            self.store.reservations[reservation_id] = _detached_copy(reservation)
        for reservation in self.created:
            self.store.reservations[reservation.id] = _detached_copy(reservation)
        self.store.charges.extend(self.charges)

    def _ensure_capacity(self, reservation: Reservation) -> None:
        # Last check at the commit point: a writer that skipped the spot lock loses here.
        spot = self.store.spots.get(reservation.spot_id)
        if spot is None:
            return
        window = TimeWindow(reservation.starts_at, reservation.ends_at)
        overlapping = [
            other
            for other in self.store.reservations.values()
            if other.spot_id == reservation.spot_id
            and other.status in ACTIVE_STATUSES
            and TimeWindow(other.starts_at, other.ends_at).overlaps(window)
        ]
        if len(overlapping) >= spot.capacity:
            raise ReservationConflictError(
                f"spot {reservation.spot_id} has no capacity left for this window"
            )
