from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

import pytest
from parkease.domain.errors import ReservationConflictError, StaleReservationError
from parkease.domain.schedule import WeeklyWindow
from parkease.domain.services import SpotSnapshot
from parkease.domain.values import Tariff, TimeWindow
from parkease.infrastructure.memory import InMemoryStore
from parkease.models import ChargeKind, Reservation, ReservationCharge, ReservationStatus, SpotStatus, VehicleType, Weekday

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def _store() -> InMemoryStore:
    store = InMemoryStore()
    store.add_spot(
        SpotSnapshot(
            spot_id=1,
            host_id=20,
            tariff=Tariff(hourly_rate=Decimal("50"), daily_rate=Decimal("200")),
            capacity=1,
            status=SpotStatus.ACTIVE,
            windows=(WeeklyWindow(day=Weekday.MONDAY, start=time(6, 0), end=time(22, 0)),),
            timezone="UTC",
        )
    )
    return store


def _reservation(start_hour: int = 10, status: ReservationStatus = ReservationStatus.PENDING) -> Reservation:
    starts_at = NOW.replace(hour=start_hour)
    return Reservation(
        spot_id=1,
        seeker_id=10,
        host_id=20,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(hours=2),
        duration_hours=2,
        vehicle_number="KA01AB1234",
        vehicle_type=VehicleType.CAR,
        hourly_rate=Decimal("50"),
        daily_rate=Decimal("200"),
        pricing_method="hourly",
        base_amount=Decimal("100.00"),
        platform_fee=Decimal("15.00"),
        tax=Decimal("2.70"),
        total_amount=Decimal("102.70"),
        host_earnings=Decimal("85.00"),
        status=status,
        version=1,
        created_at=NOW,
        updated_at=NOW,
    )


async def _seed(store: InMemoryStore) -> int:
    async with store.unit_of_work() as uow:
        created = await uow.reservations.create(_reservation())
    return created.id


@pytest.mark.asyncio
async def test_writes_are_invisible_until_commit() -> None:
    store = _store()
    async with store.unit_of_work() as uow:
        created = await uow.reservations.create(_reservation())
        window = TimeWindow(NOW.replace(hour=9), NOW.replace(hour=13))
        assert [b.reservation_id for b in await uow.reservations.list_active_for_spot(1, window)] == [created.id]
        assert store.reservations == {}
    assert store.reservations[created.id].status == ReservationStatus.PENDING


@pytest.mark.asyncio
async def test_exception_discards_staged_writes() -> None:
    store = _store()
    with pytest.raises(RuntimeError):
        async with store.unit_of_work() as uow:
            reservation = await uow.reservations.create(_reservation())
            await uow.reservations.add_charge(
                ReservationCharge(
                    reservation_id=reservation.id,
                    user_id=10,
                    kind=ChargeKind.OVERTIME,
                    amount=Decimal("75.00"),
                    platform_fee=Decimal("0"),
                    host_earnings=Decimal("0"),
                    description="Overtime charges",
                    created_at=NOW,
                )
            )
            raise RuntimeError("abort")
    assert store.reservations == {}
    assert store.charges == []


@pytest.mark.asyncio
async def test_reads_hand_out_copies() -> None:
    store = _store()
    reservation_id = await _seed(store)
    async with store.unit_of_work() as uow:
        loaded = await uow.reservations.get(reservation_id)
        assert loaded is not None
        loaded.status = ReservationStatus.CONFIRMED
    assert store.reservations[reservation_id].status == ReservationStatus.PENDING


@pytest.mark.asyncio
async def test_lost_update_is_detected() -> None:
    store = _store()
    reservation_id = await _seed(store)

    slow = store.unit_of_work()
    stale = await slow.reservations.get_for_update(reservation_id)
    assert stale is not None

    async with store.unit_of_work() as fast:
        fresh = await fast.reservations.get_for_update(reservation_id)
        assert fresh is not None
        fresh.status = ReservationStatus.CONFIRMED
        fresh.version = 2
        await fast.reservations.update(fresh, expected_version=1)

    stale.status = ReservationStatus.CANCELLED
    stale.version = 2
    with pytest.raises(StaleReservationError):
        async with slow:
            await slow.reservations.update(stale, expected_version=1)
    assert store.reservations[reservation_id].status == ReservationStatus.CONFIRMED


@pytest.mark.asyncio
async def test_commit_rejects_overbooking() -> None:
    store = _store()
    await _seed(store)
    with pytest.raises(ReservationConflictError):
        async with store.unit_of_work() as uow:
            await uow.reservations.create(_reservation(start_hour=11))
    assert len(store.reservations) == 1


@pytest.mark.asyncio
async def test_pending_listing_uses_cutoff() -> None:
    store = _store()
    reservation_id = await _seed(store)
    async with store.unit_of_work() as uow:
        assert await uow.reservations.list_pending_created_before(NOW - timedelta(minutes=1)) == []
        listed = await uow.reservations.list_pending_created_before(NOW)
    assert [r.id for r in listed] == [reservation_id]
