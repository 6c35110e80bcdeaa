from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from parkease.models import ChargeKind, Reservation, ReservationCharge, ReservationStatus, VehicleType
from parkease.schemas import Evidence, ReservationRead, VehicleInfo, build_timeline
from pydantic import ValidationError

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def _reservation() -> Reservation:
    return Reservation(
        id=3,
        spot_id=1,
        seeker_id=10,
        host_id=20,
        starts_at=NOW + timedelta(hours=2),
        ends_at=NOW + timedelta(hours=4),
        vehicle_number="MH12AB1234",
        vehicle_type=VehicleType.SUV,
        base_amount=Decimal("100.00"),
        platform_fee=Decimal("15.00"),
        tax=Decimal("2.70"),
        total_amount=Decimal("102.70"),
        host_earnings=Decimal("85.00"),
        status=ReservationStatus.CANCELLED,
        version=3,
        created_at=NOW,
        confirmed_at=NOW + timedelta(minutes=5),
        cancelled_at=NOW + timedelta(minutes=30),
        cancellation_reason="plans changed",
        cancelled_by=10,
    )


def test_vehicle_number_is_normalised() -> None:
    vehicle = VehicleInfo(number="ka-01 ab 1234", vehicle_type=VehicleType.CAR)
    assert vehicle.number == "KA01AB1234"


@pytest.mark.parametrize("number", ["K01AB1234", "KA01AB123", "1234KA01AB"])
def test_invalid_vehicle_numbers_rejected(number: str) -> None:
    with pytest.raises(ValidationError):
        VehicleInfo(number=number, vehicle_type=VehicleType.CAR)


def test_unknown_vehicle_type_rejected() -> None:
    with pytest.raises(ValidationError):
        VehicleInfo(number="KA01AB1234", vehicle_type="tank")


def test_evidence_defaults_empty() -> None:
    evidence = Evidence()
    assert evidence.photos == []
    assert evidence.notes == ""


def test_timeline_is_ordered() -> None:
    events = build_timeline(_reservation())
    assert [e.event for e in events] == ["Booking created", "Payment confirmed", "Booking cancelled"]
    assert events[-1].description == "plans changed"
    assert events[-1].actor_id == 10


def test_read_model_adds_overtime_to_amount_due() -> None:
    charges = [
        ReservationCharge(
            reservation_id=3,
            user_id=10,
            kind=ChargeKind.OVERTIME,
            amount=Decimal("75.00"),
            platform_fee=Decimal("11.25"),
            host_earnings=Decimal("63.75"),
            description="Overtime charges: 1 hour(s) overtime at 75.00/hr",
            created_at=NOW,
        ),
        ReservationCharge(
            reservation_id=3,
            user_id=10,
            kind=ChargeKind.REFUND,
            amount=Decimal("102.70"),
            platform_fee=Decimal("0"),
            host_earnings=Decimal("0"),
            description="Refund",
            created_at=NOW,
        ),
    ]
    read = ReservationRead.from_db(reservation=_reservation(), charges=charges)
    assert read.amount_due == Decimal("177.70")

    dumped = read.model_dump(mode="json")
    assert dumped["total_amount"] == "102.70"
    assert dumped["status"] == "cancelled"
    assert dumped["charges"][0]["kind"] == "overtime"
