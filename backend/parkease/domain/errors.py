from __future__ import annotations

from typing import Any, ClassVar


class BookingError(Exception):
    """Base class for every expected booking failure.

    `code` is stable and meant for callers to branch on; `reason` is a
    human-readable explanation suitable for display.
    """

    code: ClassVar[str] = "BOOKING_ERROR"

    def __init__(self, reason: str, **details: Any) -> None:
        super().__init__(reason)
        self.reason = reason
        self.details = details

    def __str__(self) -> str:
        return f"{self.code}: {self.reason}"


class AdmissionError(BookingError):
    """Request cannot be admitted; surfaced to the caller as-is, never retried."""


class SpotNotFoundError(AdmissionError):
    code = "SPOT_NOT_FOUND"


class SpotInactiveError(AdmissionError):
    code = "SPOT_INACTIVE"


class InvalidWindowError(AdmissionError):
    code = "INVALID_TIME_RANGE"


class InvalidStartTimeError(InvalidWindowError):
    code = "INVALID_START_TIME"


class OutOfScheduleError(AdmissionError):
    code = "OUT_OF_SCHEDULE"


class FullyBookedError(AdmissionError):
    code = "FULLY_BOOKED"


class InsufficientBufferError(AdmissionError):
    code = "INSUFFICIENT_BUFFER"


class VehicleNotSupportedError(AdmissionError):
    code = "VEHICLE_NOT_SUPPORTED"


class SelfBookingError(AdmissionError):
    code = "SELF_BOOKING"


class StateError(BookingError):
    """Caller used the API against a status that does not allow it."""


class ReservationNotFoundError(StateError):
    code = "RESERVATION_NOT_FOUND"


class InvalidStateError(StateError):
    code = "INVALID_STATE"


class NotCheckedInError(StateError):
    code = "NOT_CHECKED_IN"


class TooEarlyError(StateError):
    code = "TOO_EARLY"


class NoShowError(StateError):
    """Check-in attempted after the window closed; the reservation is already cancelled."""

    code = "NO_SHOW"


class BookingEndedError(StateError):
    code = "BOOKING_ENDED"


class InvalidCheckoutTimeError(StateError):
    code = "INVALID_CHECKOUT_TIME"


class PhotosRequiredError(StateError):
    code = "PHOTOS_REQUIRED"


class NotAuthorizedError(StateError):
    code = "UNAUTHORIZED"


class ConcurrencyError(Exception):
    """Lost a race against another writer. Handled inside the engine."""


class ReservationConflictError(ConcurrencyError):
    pass


class StaleReservationError(ConcurrencyError):
    pass
