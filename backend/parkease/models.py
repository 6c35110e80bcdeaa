from __future__ import annotations

from datetime import datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any, Optional

from sqlalchemy import JSON, CheckConstraint, Enum, ForeignKey, Index, TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, DateTime, Integer, Numeric, String, Time

from .utils.time import to_utc_naive, utc_naive_to_aware


class Base(DeclarativeBase):
    pass


class UtcDateTime(TypeDecorator[datetime]):
    """Stores aware datetimes as naive UTC and hands them back aware."""

    impl = DateTime(timezone=False)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return to_utc_naive(value)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return utc_naive_to_aware(value)


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class SpotStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class Weekday(StrEnum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def of(cls, dt: datetime) -> "Weekday":
        return list(cls)[dt.weekday()]


class VehicleType(StrEnum):
    CAR = "car"
    BIKE = "bike"
    BICYCLE = "bicycle"
    SUV = "suv"
    TRUCK = "truck"


class ReservationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checkedIn"
    CHECKED_OUT = "checkedOut"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


ACTIVE_STATUSES = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN}
)


class ChargeKind(StrEnum):
    OVERTIME = "overtime"
    REFUND = "refund"
    NO_SHOW_PENALTY = "no_show_penalty"
    HOST_PENALTY = "host_penalty"


class ParkingSpot(Base):
    __tablename__ = "parking_spots"
    __table_args__ = (
        CheckConstraint("hourly_rate > 0", name="chk_spots_hourly_rate"),
        CheckConstraint("daily_rate > 0", name="chk_spots_daily_rate"),
        CheckConstraint("capacity >= 1", name="chk_spots_capacity"),
        Index("idx_spots_host", "host_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    vehicle_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[SpotStatus] = mapped_column(
        _str_enum(SpotStatus),
        nullable=False,
        default=SpotStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    availability: Mapped[list["AvailabilityWindow"]] = relationship(
        back_populates="spot", cascade="all, delete-orphan"
    )


class AvailabilityWindow(Base):
    __tablename__ = "spot_availability"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_availability_time"),
        Index("idx_availability_spot", "spot_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    spot_id: Mapped[int] = mapped_column(ForeignKey("parking_spots.id"), nullable=False)
    day: Mapped[Weekday] = mapped_column(_str_enum(Weekday), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    spot: Mapped["ParkingSpot"] = relationship(back_populates="availability")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="chk_res_time"),
        CheckConstraint("total_amount >= 0", name="chk_res_total"),
        Index("idx_res_spot_status", "spot_id", "status"),
        Index("idx_res_seeker", "seeker_id", "status"),
        Index("idx_res_host", "host_id", "status"),
        Index("idx_res_window", "starts_at", "ends_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    spot_id: Mapped[int] = mapped_column(ForeignKey("parking_spots.id"), nullable=False)
    seeker_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    host_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    duration_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    vehicle_number: Mapped[str] = mapped_column(String(16), nullable=False)
    vehicle_type: Mapped[VehicleType] = mapped_column(_str_enum(VehicleType), nullable=False)
    special_instructions: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Quote as admitted; never rewritten once created.
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    pricing_method: Mapped[str] = mapped_column(String(16), nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    host_earnings: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[ReservationStatus] = mapped_column(
        _str_enum(ReservationStatus),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payment_note: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    check_in_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    check_in_photos: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    check_in_notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    check_in_is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    check_in_minutes_late: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    check_out_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    check_out_photos: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    check_out_notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    overtime_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overtime_charge: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cancelled_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    dispute_reason: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    dispute_category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    dispute_evidence: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    dispute_raised_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    dispute_raised_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    # Application-managed version; UPDATEs carry the loaded version in their WHERE clause.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}


class ReservationCharge(Base):
    """Money delta appended to a reservation after its quote."""

    __tablename__ = "reservation_charges"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="chk_charge_amount"),
        Index("idx_charge_reservation", "reservation_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    reservation_id: Mapped[int] = mapped_column(ForeignKey("reservations.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[ChargeKind] = mapped_column(_str_enum(ChargeKind), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    host_earnings: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
