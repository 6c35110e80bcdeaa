from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from .models import ChargeKind, Reservation, ReservationCharge, ReservationStatus, VehicleType

VEHICLE_NUMBER_PATTERN = r"^[A-Z]{2}[0-9]{1,2}[A-Z]{1,2}[0-9]{4}$"


class VehicleInfo(BaseModel):
    number: str = Field(pattern=VEHICLE_NUMBER_PATTERN)
    vehicle_type: VehicleType
    special_instructions: Optional[str] = Field(default=None, max_length=500)

    @field_validator("number", mode="before")
    @classmethod
    def _normalize_number(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.replace(" ", "").replace("-", "").upper()
        return value


class Evidence(BaseModel):
    photos: List[str] = Field(default_factory=list)
    notes: str = Field(default="", max_length=500)


class ChargeRead(BaseModel):
    kind: ChargeKind
    user_id: int
    amount: Decimal
    platform_fee: Decimal
    host_earnings: Decimal
    description: str
    created_at: datetime

    @field_serializer("amount", "platform_fee", "host_earnings")
    def _ser_money(self, value: Decimal) -> str:
        return str(value)

    @classmethod
    def from_db(cls, *, charge: ReservationCharge) -> "ChargeRead":
        return cls(
            kind=charge.kind,
            user_id=charge.user_id,
            amount=charge.amount,
            platform_fee=charge.platform_fee,
            host_earnings=charge.host_earnings,
            description=charge.description,
            created_at=charge.created_at,
        )


class TimelineEvent(BaseModel):
    status: ReservationStatus
    timestamp: datetime
    event: str
    description: str
    actor_id: Optional[int] = None


def build_timeline(reservation: Reservation) -> list[TimelineEvent]:
    """Human-readable history of a reservation, oldest first."""
    events = [
        TimelineEvent(
            status=ReservationStatus.PENDING,
            timestamp=reservation.created_at,
            event="Booking created",
            description="Booking initiated and payment pending",
        )
    ]
    if reservation.confirmed_at is not None:
        events.append(
            TimelineEvent(
                status=ReservationStatus.CONFIRMED,
                timestamp=reservation.confirmed_at,
                event="Payment confirmed",
                description="Booking confirmed and spot reserved",
            )
        )
    if reservation.check_in_at is not None:
        events.append(
            TimelineEvent(
                status=ReservationStatus.CHECKED_IN,
                timestamp=reservation.check_in_at,
                event="Checked in",
                description=(
                    f"Late check-in ({reservation.check_in_minutes_late} min late)"
                    if reservation.check_in_is_late
                    else "On-time check-in"
                ),
            )
        )
    if reservation.check_out_at is not None:
        events.append(
            TimelineEvent(
                status=ReservationStatus.CHECKED_OUT,
                timestamp=reservation.check_out_at,
                event="Checked out",
                description=(
                    f"Parking session completed with {reservation.overtime_hours} hour(s) overtime"
                    if reservation.overtime_hours
                    else "Parking session completed"
                ),
            )
        )
    if reservation.completed_at is not None:
        events.append(
            TimelineEvent(
                status=ReservationStatus.COMPLETED,
                timestamp=reservation.completed_at,
                event="Booking completed",
                description="Booking finalized and payout released",
            )
        )
    if reservation.cancelled_at is not None:
        events.append(
            TimelineEvent(
                status=ReservationStatus.CANCELLED,
                timestamp=reservation.cancelled_at,
                event="Booking cancelled",
                description=reservation.cancellation_reason or "Booking cancelled",
                actor_id=reservation.cancelled_by,
            )
        )
    if reservation.dispute_raised_at is not None:
        events.append(
            TimelineEvent(
                status=ReservationStatus.DISPUTED,
                timestamp=reservation.dispute_raised_at,
                event="Dispute raised",
                description=reservation.dispute_reason or "Dispute under investigation",
                actor_id=reservation.dispute_raised_by,
            )
        )
    return sorted(events, key=lambda e: e.timestamp)


class ReservationRead(BaseModel):
    reservation_id: int
    spot_id: int
    seeker_id: int
    host_id: int
    status: ReservationStatus
    version: int
    starts_at: datetime
    ends_at: datetime
    vehicle_number: str
    vehicle_type: VehicleType
    base_amount: Decimal
    platform_fee: Decimal
    tax: Decimal
    total_amount: Decimal
    host_earnings: Decimal
    amount_due: Decimal
    charges: List[ChargeRead]
    timeline: List[TimelineEvent]

    @field_serializer("base_amount", "platform_fee", "tax", "total_amount", "host_earnings", "amount_due")
    def _ser_money(self, value: Decimal) -> str:
        return str(value)

    @classmethod
    def from_db(
        cls,
        *,
        reservation: Reservation,
        charges: Optional[List[ReservationCharge]] = None,
    ) -> "ReservationRead":
        charges = charges or []
        overtime = sum((c.amount for c in charges if c.kind == ChargeKind.OVERTIME), Decimal("0"))
        return cls(
            reservation_id=reservation.id,
            spot_id=reservation.spot_id,
            seeker_id=reservation.seeker_id,
            host_id=reservation.host_id,
            status=reservation.status,
            version=reservation.version,
            starts_at=reservation.starts_at,
            ends_at=reservation.ends_at,
            vehicle_number=reservation.vehicle_number,
            vehicle_type=reservation.vehicle_type,
            base_amount=reservation.base_amount,
            platform_fee=reservation.platform_fee,
            tax=reservation.tax,
            total_amount=reservation.total_amount,
            host_earnings=reservation.host_earnings,
            amount_due=reservation.total_amount + overtime,
            charges=[ChargeRead.from_db(charge=c) for c in charges],
            timeline=build_timeline(reservation),
        )
