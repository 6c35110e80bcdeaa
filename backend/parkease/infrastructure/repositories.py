from __future__ import annotations

from datetime import datetime
from types import TracebackType
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from ..domain.conflicts import BookedWindow
from ..domain.errors import ReservationConflictError, StaleReservationError
from ..domain.repositories import ReservationRepository, SpotRepository
from ..domain.schedule import WeeklyWindow
from ..domain.services import SpotSnapshot
from ..domain.values import Tariff, TimeWindow
from ..models import (
    ACTIVE_STATUSES,
    ParkingSpot,
    Reservation,
    ReservationCharge,
    ReservationStatus,
    VehicleType,
)


def spot_to_snapshot(spot: ParkingSpot, *, default_timezone: str) -> SpotSnapshot:
    return SpotSnapshot(
        spot_id=spot.id,
        host_id=spot.host_id,
        tariff=Tariff(hourly_rate=spot.hourly_rate, daily_rate=spot.daily_rate),
        capacity=spot.capacity,
        status=spot.status,
        windows=tuple(
            WeeklyWindow(day=w.day, start=w.start_time, end=w.end_time) for w in spot.availability
        ),
        timezone=spot.timezone or default_timezone,
        vehicle_types=frozenset(VehicleType(v) for v in spot.vehicle_types or ()),
    )


class SqlAlchemySpotRepository(SpotRepository):
    def __init__(self, session: AsyncSession, *, default_timezone: str) -> None:
        self.session = session
        self.default_timezone = default_timezone

    async def _load(self, spot_id: int, *, lock: bool) -> SpotSnapshot | None:
        stmt = select(ParkingSpot).options(selectinload(ParkingSpot.availability)).where(ParkingSpot.id == spot_id)
        if lock:
            # Row lock on the spot serialises admission for this spot only.
            stmt = stmt.with_for_update()
        spot = await self.session.scalar(stmt)
        if not isinstance(spot, ParkingSpot):
            return None
        return spot_to_snapshot(spot, default_timezone=self.default_timezone)

    async def get(self, spot_id: int) -> SpotSnapshot | None:
        return await self._load(spot_id, lock=False)

    async def get_for_update(self, spot_id: int) -> SpotSnapshot | None:
        return await self._load(spot_id, lock=True)


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active_for_spot(self, spot_id: int, window_hint: TimeWindow) -> List[BookedWindow]:
        stmt = select(Reservation.id, Reservation.starts_at, Reservation.ends_at).where(
            Reservation.spot_id == spot_id,
            Reservation.status.in_(ACTIVE_STATUSES),
            Reservation.starts_at < window_hint.end,
            Reservation.ends_at > window_hint.start,
        )
        rows = await self.session.execute(stmt)
        return [
            BookedWindow(reservation_id=res_id, window=TimeWindow(starts_at, ends_at))
            for res_id, starts_at, ends_at in rows.all()
        ]

    async def create(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ReservationConflictError("reservation insert conflicted with another writer") from exc
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        result = await self.session.scalar(select(Reservation).where(Reservation.id == reservation_id))
        return result if isinstance(result, Reservation) else None

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        result = await self.session.scalar(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        )
        return result if isinstance(result, Reservation) else None

    async def update(self, reservation: Reservation, *, expected_version: int) -> Reservation:
        # The mapper's version_id_col puts expected_version into the UPDATE's WHERE clause.
        self.session.add(reservation)
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise StaleReservationError(
                f"reservation {reservation.id} is no longer at version {expected_version}"
            ) from exc
        return reservation

    async def add_charge(self, charge: ReservationCharge) -> ReservationCharge:
        self.session.add(charge)
        await self.session.flush()
        return charge

    async def list_charges(self, reservation_id: int) -> List[ReservationCharge]:
        stmt = (
            select(ReservationCharge)
            .where(ReservationCharge.reservation_id == reservation_id)
            .order_by(ReservationCharge.id)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_pending_created_before(self, cutoff: datetime) -> List[Reservation]:
        stmt = select(Reservation).where(
            Reservation.status == ReservationStatus.PENDING,
            Reservation.created_at <= cutoff,
        )
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyUnitOfWork:
    """One AsyncSession transaction wrapping both repositories."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, default_timezone: str) -> None:
        self.session_factory = session_factory
        self.default_timezone = default_timezone

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        self.session = self.session_factory()
        self.spots = SqlAlchemySpotRepository(self.session, default_timezone=self.default_timezone)
        self.reservations = SqlAlchemyReservationRepository(self.session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is not None:
                await self.session.rollback()
                return
            try:
                await self.session.commit()
            except IntegrityError as commit_exc:
                raise ReservationConflictError("commit conflicted with another writer") from commit_exc
            except StaleDataError as commit_exc:
                raise StaleReservationError("reservation changed concurrently") from commit_exc
        finally:
            await self.session.close()
