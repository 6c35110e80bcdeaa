"""Reservation lifecycle engine.

The engine is the only writer of reservation state. Admission runs under a
per-spot lock and inside one unit of work, so the read of active reservations
and the insert of the new `pending` row commit together. Every later
transition is a compare-and-set on the reservation's version. External calls
(trust-score hook) happen only after the commit point.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import StrEnum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from ..config import BookingPolicy
from ..domain.errors import (
    AdmissionError,
    BookingEndedError,
    FullyBookedError,
    InvalidStartTimeError,
    InvalidStateError,
    NoShowError,
    NotAuthorizedError,
    PhotosRequiredError,
    ReservationConflictError,
    ReservationNotFoundError,
    SpotNotFoundError,
    StaleReservationError,
    TooEarlyError,
)
from ..domain.lifecycle import ensure_transition
from ..domain.pricing import OvertimeCharge, Quote, calculate_overtime, calculate_quote, quantize
from ..domain.refunds import RefundDecision, calculate_refund
from ..domain.repositories import TrustScoreHook, UnitOfWork, UnitOfWorkFactory
from ..domain.services import SpotSnapshot, validate_admission
from ..domain.timing import CheckInTiming, CheckInVerdict, evaluate_check_in, evaluate_check_out
from ..domain.values import Tariff, TimeWindow
from ..models import ChargeKind, Reservation, ReservationCharge, ReservationStatus
from ..schemas import Evidence, ReservationRead, VehicleInfo
from ..utils.audit_log import AuditAction, AuditInitiator, emit_audit_log
from ..utils.locks import KeyedLocks
from ..utils.request_id import ensure_request_id
from ..utils.time import ensure_aware, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_SHOW_REASON = "no-show"
PAYMENT_EXPIRED_REASON = "Payment window expired"
DEFAULT_CANCELLATION_REASON = "User requested cancellation"


class TerminalOutcome(StrEnum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Availability:
    available: bool
    remaining_capacity: int
    code: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class Cancellation:
    reservation: Reservation
    refund: RefundDecision
    cancelled_by_role: AuditInitiator
    host_penalty: Decimal


class ReservationEngine:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        policy: BookingPolicy | None = None,
        trust_hook: TrustScoreHook | None = None,
        clock: Callable[[], datetime] = utc_now,
        hook_timeout: float | None = 5.0,
    ) -> None:
        self.uow_factory = uow_factory
        self.policy = policy or BookingPolicy()
        self.trust_hook = trust_hook
        self.clock = clock
        self.hook_timeout = hook_timeout
        self._spot_locks = KeyedLocks()

    # -- queries -----------------------------------------------------------

    def quote(self, tariff: Tariff, window: TimeWindow) -> Quote:
        return calculate_quote(tariff, window, self.policy)

    async def check_availability(
        self,
        spot_id: int,
        window: TimeWindow,
        *,
        timeout: float | None = None,
    ) -> Availability:
        """Preview admission without writing anything."""
        async with asyncio.timeout(timeout):
            async with self.uow_factory() as uow:
                spot = await uow.spots.get(spot_id)
                if spot is None:
                    raise SpotNotFoundError("Parking spot not found")
                active = await uow.reservations.list_active_for_spot(spot_id, self._neighbourhood(window))
        try:
            remaining = validate_admission(
                spot,
                window,
                seeker_id=None,
                vehicle_type=None,
                active=active,
                policy=self.policy,
            )
        except AdmissionError as exc:
            return Availability(available=False, remaining_capacity=0, code=exc.code, reason=exc.reason)
        return Availability(available=True, remaining_capacity=remaining + 1)

    async def get(self, reservation_id: int, *, timeout: float | None = None) -> ReservationRead:
        async with asyncio.timeout(timeout):
            async with self.uow_factory() as uow:
                reservation = await uow.reservations.get(reservation_id)
                if reservation is None:
                    raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
                charges = await uow.reservations.list_charges(reservation_id)
        return ReservationRead.from_db(reservation=reservation, charges=charges)

    # -- admission ---------------------------------------------------------

    async def reserve(
        self,
        spot_id: int,
        seeker_id: int,
        window: TimeWindow,
        vehicle: VehicleInfo,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> tuple[Reservation, Quote]:
        async with asyncio.timeout(timeout):
            now = self._now(now)
            if window.start <= now:
                raise InvalidStartTimeError("Start time must be in the future")
            try:
                reservation, quote = await self._admit(spot_id, seeker_id, window, vehicle, now)
            except ReservationConflictError:
                logger.info("admission race lost on spot %s, re-checking once", spot_id)
                try:
                    reservation, quote = await self._admit(spot_id, seeker_id, window, vehicle, now)
                except ReservationConflictError as exc:
                    raise FullyBookedError("Spot is fully booked for this time period") from exc

        self._audit(
            "reservation.created",
            "seeker",
            reservation,
            status_from=None,
            actor_id=seeker_id,
            extra={"total_amount": quote.total_amount, "pricing_method": quote.calculation_method},
        )
        return reservation, quote

    async def _admit(
        self,
        spot_id: int,
        seeker_id: int,
        window: TimeWindow,
        vehicle: VehicleInfo,
        now: datetime,
    ) -> tuple[Reservation, Quote]:
        async with self._spot_locks.hold(spot_id):
            async with self.uow_factory() as uow:
                spot = await uow.spots.get_for_update(spot_id)
                if spot is None:
                    raise SpotNotFoundError("Parking spot not found")
                active = await uow.reservations.list_active_for_spot(spot_id, self._neighbourhood(window))
                validate_admission(
                    spot,
                    window,
                    seeker_id=seeker_id,
                    vehicle_type=vehicle.vehicle_type,
                    active=active,
                    policy=self.policy,
                )
                quote = calculate_quote(spot.tariff, window, self.policy)
                reservation = await uow.reservations.create(
                    self._new_reservation(spot, seeker_id, window, vehicle, quote, now)
                )
        return reservation, quote

    # -- payment signals ---------------------------------------------------

    async def confirm(
        self,
        reservation_id: int,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> Reservation:
        return await self._confirm_logged(reservation_id, now=now, timeout=timeout, initiator="system")

    async def payment_captured(
        self,
        reservation_id: int,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> Optional[Reservation]:
        """Gateway signal after an independently verified payment. Never raises for bad ids."""
        try:
            return await self._confirm_logged(reservation_id, now=now, timeout=timeout, initiator="gateway")
        except ReservationNotFoundError:
            logger.warning("payment captured for unknown reservation %s, dropping signal", reservation_id)
        except InvalidStateError as exc:
            logger.warning("payment captured for reservation %s ignored: %s", reservation_id, exc.reason)
        return None

    async def payment_failed(
        self,
        reservation_id: int,
        reason: str,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> Optional[Reservation]:
        """Record a failed payment; the booking stays `pending` so the seeker can retry."""
        now = self._now(now)
        note = f"Payment failed: {reason or 'Unknown error'}"
        try:
            async with asyncio.timeout(timeout):
                reservation, changed = await self._retry_on_stale(
                    functools.partial(self._record_payment_failure, reservation_id, note, now)
                )
        except ReservationNotFoundError:
            logger.warning("payment failure for unknown reservation %s, dropping signal", reservation_id)
            return None
        except InvalidStateError as exc:
            logger.warning("payment failure for reservation %s ignored: %s", reservation_id, exc.reason)
            return None
        if changed:
            self._audit(
                "reservation.payment_failed",
                "gateway",
                reservation,
                status_from=reservation.status,
                message=note,
            )
        return reservation

    async def _confirm_logged(
        self,
        reservation_id: int,
        *,
        now: datetime | None,
        timeout: float | None,
        initiator: AuditInitiator,
    ) -> Reservation:
        async with asyncio.timeout(timeout):
            now = self._now(now)
            reservation, previous = await self._retry_on_stale(
                functools.partial(self._confirm, reservation_id, now)
            )
        if previous is not None:
            self._audit("reservation.confirmed", initiator, reservation, status_from=previous)
        return reservation

    async def _confirm(self, reservation_id: int, now: datetime) -> tuple[Reservation, Optional[ReservationStatus]]:
        async with self._locked(reservation_id) as (uow, reservation):
            # Idempotent: a repeated confirmation returns the booking as-is.
            if reservation.status == ReservationStatus.CONFIRMED:
                return reservation, None
            previous = reservation.status
            ensure_transition(previous, ReservationStatus.CONFIRMED)
            reservation.status = ReservationStatus.CONFIRMED
            reservation.confirmed_at = now
            reservation.payment_note = None
            await self._save(uow, reservation, now)
        return reservation, previous

    async def _record_payment_failure(
        self, reservation_id: int, note: str, now: datetime
    ) -> tuple[Reservation, bool]:
        async with self._locked(reservation_id) as (uow, reservation):
            if reservation.status != ReservationStatus.PENDING:
                raise InvalidStateError(f"Cannot record payment failure with status: {reservation.status}")
            if reservation.payment_note == note:
                return reservation, False
            reservation.payment_note = note
            await self._save(uow, reservation, now)
        return reservation, True

    # -- check-in / check-out ----------------------------------------------

    async def check_in(
        self,
        reservation_id: int,
        evidence: Evidence,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> tuple[Reservation, CheckInTiming]:
        async with asyncio.timeout(timeout):
            now = self._now(now)
            reservation, timing, previous = await self._retry_on_stale(
                functools.partial(self._check_in, reservation_id, evidence, now)
            )

        if timing.verdict is CheckInVerdict.NO_SHOW:
            self._audit("reservation.no_show", "system", reservation, status_from=previous, message=NO_SHOW_REASON)
            await self._notify_terminal(reservation, TerminalOutcome.NO_SHOW)
            raise NoShowError(
                "Check-in window expired - marked as no-show",
                reservation_id=reservation.id,
                refund_amount=Decimal("0"),
                penalty_amount=reservation.total_amount,
                latest_check_in=timing.latest,
            )

        self._audit(
            "reservation.checked_in",
            "seeker",
            reservation,
            status_from=previous,
            actor_id=reservation.seeker_id,
            extra={"is_late": timing.is_late, "minutes_late": timing.minutes_late},
        )
        return reservation, timing

    async def _check_in(
        self, reservation_id: int, evidence: Evidence, now: datetime
    ) -> tuple[Reservation, CheckInTiming, ReservationStatus]:
        async with self._locked(reservation_id) as (uow, reservation):
            previous = reservation.status
            ensure_transition(previous, ReservationStatus.CHECKED_IN)
            timing = evaluate_check_in(
                starts_at=reservation.starts_at,
                ends_at=reservation.ends_at,
                now=now,
                policy=self.policy,
            )
            if timing.verdict is CheckInVerdict.TOO_EARLY:
                raise TooEarlyError("Too early for check-in", earliest_check_in=timing.earliest)
            if timing.verdict is CheckInVerdict.BOOKING_ENDED:
                raise BookingEndedError("Booking period has ended")

            if timing.verdict is CheckInVerdict.NO_SHOW:
                ensure_transition(previous, ReservationStatus.CANCELLED)
                self._mark_cancelled(reservation, actor_id=None, reason=NO_SHOW_REASON, now=now)
                await uow.reservations.add_charge(
                    self._charge(
                        reservation,
                        ChargeKind.NO_SHOW_PENALTY,
                        amount=reservation.total_amount,
                        user_id=reservation.seeker_id,
                        description="No-show penalty - full amount forfeited",
                        now=now,
                    )
                )
                await self._save(uow, reservation, now)
                return reservation, timing, previous

            if not evidence.photos:
                raise PhotosRequiredError("At least one photo is required for check-in")
            reservation.status = ReservationStatus.CHECKED_IN
            reservation.check_in_at = now
            reservation.check_in_photos = list(evidence.photos[: self.policy.max_check_in_photos])
            reservation.check_in_notes = evidence.notes
            reservation.check_in_is_late = timing.is_late
            reservation.check_in_minutes_late = timing.minutes_late
            await self._save(uow, reservation, now)
        return reservation, timing, previous

    async def check_out(
        self,
        reservation_id: int,
        evidence: Evidence,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> tuple[Reservation, Optional[OvertimeCharge]]:
        async with asyncio.timeout(timeout):
            now = self._now(now)
            reservation, overtime, previous = await self._retry_on_stale(
                functools.partial(self._check_out, reservation_id, evidence, now)
            )
        extra: dict[str, Any] = {"overtime_hours": reservation.overtime_hours}
        if overtime is not None:
            extra["overtime_charge"] = overtime.charge
        self._audit(
            "reservation.checked_out",
            "seeker",
            reservation,
            status_from=previous,
            actor_id=reservation.seeker_id,
            extra=extra,
        )
        return reservation, overtime

    async def _check_out(
        self, reservation_id: int, evidence: Evidence, now: datetime
    ) -> tuple[Reservation, Optional[OvertimeCharge], ReservationStatus]:
        async with self._locked(reservation_id) as (uow, reservation):
            previous = reservation.status
            ensure_transition(previous, ReservationStatus.CHECKED_OUT)
            timing = evaluate_check_out(
                checked_in_at=reservation.check_in_at,
                ends_at=reservation.ends_at,
                now=now,
            )
            overtime = None
            if timing.is_overtime:
                overtime = calculate_overtime(timing.overtime_hours, reservation.hourly_rate, self.policy)
                await uow.reservations.add_charge(
                    self._charge(
                        reservation,
                        ChargeKind.OVERTIME,
                        amount=overtime.charge,
                        platform_fee=overtime.platform_fee,
                        host_earnings=overtime.host_earnings,
                        user_id=reservation.seeker_id,
                        description=f"Overtime charges: {overtime.message}",
                        now=now,
                    )
                )
            reservation.status = ReservationStatus.CHECKED_OUT
            reservation.check_out_at = now
            reservation.check_out_photos = list(evidence.photos)
            reservation.check_out_notes = evidence.notes
            reservation.overtime_hours = timing.overtime_hours
            reservation.overtime_charge = overtime.charge if overtime else Decimal("0")
            await self._save(uow, reservation, now)
        return reservation, overtime, previous

    # -- cancellation, disputes, completion --------------------------------

    async def cancel(
        self,
        reservation_id: int,
        actor_id: int,
        reason: str | None = None,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> Cancellation:
        async with asyncio.timeout(timeout):
            now = self._now(now)
            cancellation, previous = await self._retry_on_stale(
                functools.partial(self._cancel, reservation_id, actor_id, reason or DEFAULT_CANCELLATION_REASON, now)
            )
        reservation = cancellation.reservation
        self._audit(
            "reservation.cancelled",
            cancellation.cancelled_by_role,
            reservation,
            status_from=previous,
            actor_id=actor_id,
            message=reservation.cancellation_reason,
            extra={
                "refund_amount": cancellation.refund.amount,
                "refund_percentage": cancellation.refund.percentage,
                "host_penalty": cancellation.host_penalty,
            },
        )
        await self._notify_terminal(reservation, TerminalOutcome.CANCELLED)
        return cancellation

    async def _cancel(
        self, reservation_id: int, actor_id: int, reason: str, now: datetime
    ) -> tuple[Cancellation, ReservationStatus]:
        async with self._locked(reservation_id) as (uow, reservation):
            role = self._party_role(reservation, actor_id, action="cancel")
            previous = reservation.status
            if previous not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
                raise InvalidStateError(f"Cannot cancel booking with status: {previous}")
            ensure_transition(previous, ReservationStatus.CANCELLED)

            refund = calculate_refund(
                status=previous,
                total_amount=reservation.total_amount,
                starts_at=reservation.starts_at,
                now=now,
                policy=self.policy,
            )
            self._mark_cancelled(reservation, actor_id=actor_id, reason=reason, now=now)
            if refund.amount > 0:
                await uow.reservations.add_charge(
                    self._charge(
                        reservation,
                        ChargeKind.REFUND,
                        amount=refund.amount,
                        user_id=reservation.seeker_id,
                        description=f"Refund: {refund.reason}",
                        now=now,
                    )
                )
            host_penalty = Decimal("0")
            if role == "host":
                host_penalty = quantize(
                    reservation.host_earnings * self.policy.host_cancellation_penalty_rate, self.policy
                )
                if host_penalty > 0:
                    await uow.reservations.add_charge(
                        self._charge(
                            reservation,
                            ChargeKind.HOST_PENALTY,
                            amount=host_penalty,
                            user_id=reservation.host_id,
                            description="Host cancellation penalty",
                            now=now,
                        )
                    )
            await self._save(uow, reservation, now)
        cancellation = Cancellation(
            reservation=reservation,
            refund=refund,
            cancelled_by_role=role,
            host_penalty=host_penalty,
        )
        return cancellation, previous

    async def raise_dispute(
        self,
        reservation_id: int,
        actor_id: int,
        reason: str,
        *,
        category: str | None = None,
        evidence: Evidence | None = None,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> Reservation:
        async with asyncio.timeout(timeout):
            now = self._now(now)
            reservation, previous, role = await self._retry_on_stale(
                functools.partial(self._raise_dispute, reservation_id, actor_id, reason, category, evidence, now)
            )
        self._audit(
            "reservation.disputed",
            role,
            reservation,
            status_from=previous,
            actor_id=actor_id,
            message=reason,
            extra={"category": category},
        )
        return reservation

    async def _raise_dispute(
        self,
        reservation_id: int,
        actor_id: int,
        reason: str,
        category: str | None,
        evidence: Evidence | None,
        now: datetime,
    ) -> tuple[Reservation, ReservationStatus, AuditInitiator]:
        async with self._locked(reservation_id) as (uow, reservation):
            role = self._party_role(reservation, actor_id, action="dispute")
            previous = reservation.status
            ensure_transition(previous, ReservationStatus.DISPUTED)
            reservation.status = ReservationStatus.DISPUTED
            reservation.dispute_reason = reason
            reservation.dispute_category = category
            reservation.dispute_evidence = list(evidence.photos) if evidence else None
            reservation.dispute_raised_by = actor_id
            reservation.dispute_raised_at = now
            await self._save(uow, reservation, now)
        return reservation, previous, role

    async def complete(
        self,
        reservation_id: int,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> Reservation:
        """Close a checked-out booking once the external payout holdback has passed."""
        async with asyncio.timeout(timeout):
            now = self._now(now)
            reservation, previous = await self._retry_on_stale(
                functools.partial(self._complete, reservation_id, now)
            )
        self._audit("reservation.completed", "system", reservation, status_from=previous)
        await self._notify_terminal(reservation, TerminalOutcome.COMPLETED)
        return reservation

    async def _complete(self, reservation_id: int, now: datetime) -> tuple[Reservation, ReservationStatus]:
        async with self._locked(reservation_id) as (uow, reservation):
            previous = reservation.status
            ensure_transition(previous, ReservationStatus.COMPLETED)
            reservation.status = ReservationStatus.COMPLETED
            reservation.completed_at = now
            await self._save(uow, reservation, now)
        return reservation, previous

    async def expire_unpaid(
        self,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> list[Reservation]:
        """Optional sweep: cancel `pending` bookings whose payment window has elapsed."""
        expired: list[Reservation] = []
        async with asyncio.timeout(timeout):
            now = self._now(now)
            cutoff = now - timedelta(minutes=self.policy.payment_window_minutes)
            async with self.uow_factory() as uow:
                candidates = await uow.reservations.list_pending_created_before(cutoff)
            for candidate in candidates:
                try:
                    reservation = await self._retry_on_stale(
                        functools.partial(self._expire, candidate.id, cutoff, now)
                    )
                except StaleReservationError:
                    logger.info("reservation %s kept changing during expiry sweep, skipping", candidate.id)
                    continue
                if reservation is not None:
                    expired.append(reservation)

        for reservation in expired:
            self._audit(
                "reservation.expired",
                "system",
                reservation,
                status_from=ReservationStatus.PENDING,
                message=PAYMENT_EXPIRED_REASON,
            )
            await self._notify_terminal(reservation, TerminalOutcome.EXPIRED)
        return expired

    async def _expire(self, reservation_id: int, cutoff: datetime, now: datetime) -> Optional[Reservation]:
        async with self._locked(reservation_id) as (uow, reservation):
            if reservation.status != ReservationStatus.PENDING or reservation.created_at > cutoff:
                return None
            self._mark_cancelled(reservation, actor_id=None, reason=PAYMENT_EXPIRED_REASON, now=now)
            await self._save(uow, reservation, now)
        return reservation

    # -- helpers -----------------------------------------------------------

    def _now(self, now: datetime | None) -> datetime:
        return ensure_aware(now) if now is not None else self.clock()

    def _neighbourhood(self, window: TimeWindow) -> TimeWindow:
        return window.widened(timedelta(minutes=self.policy.buffer_minutes))

    @asynccontextmanager
    async def _locked(self, reservation_id: int) -> AsyncIterator[tuple[UnitOfWork, Reservation]]:
        async with self.uow_factory() as uow:
            reservation = await uow.reservations.get_for_update(reservation_id)
            if reservation is None:
                raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
            yield uow, reservation

    async def _save(self, uow: UnitOfWork, reservation: Reservation, now: datetime) -> None:
        expected_version = reservation.version
        reservation.version = expected_version + 1
        reservation.updated_at = now
        await uow.reservations.update(reservation, expected_version=expected_version)

    async def _retry_on_stale(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        except StaleReservationError:
            logger.info("concurrent update detected, re-reading reservation")
            return await operation()

    @staticmethod
    def _party_role(reservation: Reservation, actor_id: int, *, action: str) -> AuditInitiator:
        if actor_id == reservation.seeker_id:
            return "seeker"
        if actor_id == reservation.host_id:
            return "host"
        raise NotAuthorizedError(f"You are not authorized to {action} this booking")

    @staticmethod
    def _mark_cancelled(reservation: Reservation, *, actor_id: int | None, reason: str, now: datetime) -> None:
        reservation.status = ReservationStatus.CANCELLED
        reservation.cancellation_reason = reason
        reservation.cancelled_by = actor_id
        reservation.cancelled_at = now

    @staticmethod
    def _charge(
        reservation: Reservation,
        kind: ChargeKind,
        *,
        amount: Decimal,
        user_id: int,
        description: str,
        now: datetime,
        platform_fee: Decimal = Decimal("0"),
        host_earnings: Decimal = Decimal("0"),
    ) -> ReservationCharge:
        return ReservationCharge(
            reservation_id=reservation.id,
            user_id=user_id,
            kind=kind,
            amount=amount,
            platform_fee=platform_fee,
            host_earnings=host_earnings,
            description=description,
            created_at=now,
        )

    @staticmethod
    def _new_reservation(
        spot: SpotSnapshot,
        seeker_id: int,
        window: TimeWindow,
        vehicle: VehicleInfo,
        quote: Quote,
        now: datetime,
    ) -> Reservation:
        return Reservation(
            spot_id=spot.spot_id,
            seeker_id=seeker_id,
            host_id=spot.host_id,
            starts_at=window.start,
            ends_at=window.end,
            duration_hours=quote.duration_hours,
            vehicle_number=vehicle.number,
            vehicle_type=vehicle.vehicle_type,
            special_instructions=vehicle.special_instructions,
            hourly_rate=quote.hourly_rate,
            daily_rate=quote.daily_rate,
            pricing_method=str(quote.calculation_method),
            base_amount=quote.base_amount,
            platform_fee=quote.platform_fee,
            tax=quote.tax,
            total_amount=quote.total_amount,
            host_earnings=quote.host_earnings,
            status=ReservationStatus.PENDING,
            version=1,
            check_in_is_late=False,
            check_in_minutes_late=0,
            overtime_hours=0,
            overtime_charge=Decimal("0"),
            created_at=now,
            updated_at=now,
        )

    def _audit(
        self,
        action: AuditAction,
        initiator: AuditInitiator,
        reservation: Reservation,
        *,
        status_from: Optional[ReservationStatus],
        actor_id: Optional[int] = None,
        message: Optional[str] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        ensure_request_id()
        emit_audit_log(
            action=action,
            initiator=initiator,
            reservation_id=reservation.id,
            spot_id=reservation.spot_id,
            seeker_id=reservation.seeker_id,
            host_id=reservation.host_id,
            actor_id=actor_id,
            status_from=status_from,
            status_to=reservation.status,
            version=reservation.version,
            message=message,
            extra=extra,
        )

    async def _notify_terminal(self, reservation: Reservation, outcome: TerminalOutcome) -> None:
        if self.trust_hook is None:
            return
        for user_id in (reservation.seeker_id, reservation.host_id):
            try:
                await asyncio.wait_for(
                    self.trust_hook.on_booking_terminal(user_id, str(outcome)),
                    timeout=self.hook_timeout,
                )
            except TimeoutError:
                logger.warning(
                    "trust score hook timed out after %ss for user %s (%s)", self.hook_timeout, user_id, outcome
                )
            except Exception:
                # The state change is already committed; the hook is best effort.
                logger.exception("trust score hook failed for user %s (%s)", user_id, outcome)
