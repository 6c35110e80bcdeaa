from datetime import datetime, timedelta, timezone

import pytest
from parkease.config import BookingPolicy
from parkease.domain.errors import InvalidCheckoutTimeError, NotCheckedInError
from parkease.domain.timing import CheckInVerdict, evaluate_check_in, evaluate_check_out

POLICY = BookingPolicy()
STARTS_AT = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)
ENDS_AT = STARTS_AT + timedelta(hours=2)


def _check_in(minutes_from_start: int, ends_at: datetime = ENDS_AT):
    return evaluate_check_in(
        starts_at=STARTS_AT,
        ends_at=ends_at,
        now=STARTS_AT + timedelta(minutes=minutes_from_start),
        policy=POLICY,
    )


@pytest.mark.parametrize(
    ("minutes", "verdict"),
    [
        (-31, CheckInVerdict.TOO_EARLY),
        (-30, CheckInVerdict.ON_TIME),
        (0, CheckInVerdict.ON_TIME),
        (30, CheckInVerdict.ON_TIME),
        (31, CheckInVerdict.LATE),
        (60, CheckInVerdict.LATE),
        (61, CheckInVerdict.NO_SHOW),
    ],
)
def test_check_in_verdicts(minutes: int, verdict: CheckInVerdict) -> None:
    assert _check_in(minutes).verdict is verdict


def test_late_check_in_reports_minutes() -> None:
    timing = _check_in(45)
    assert timing.is_late
    assert timing.minutes_late == 45
    assert timing.latest == STARTS_AT + timedelta(minutes=60)


def test_too_early_reports_earliest_time() -> None:
    timing = _check_in(-90)
    assert timing.earliest == STARTS_AT - timedelta(minutes=30)
    assert timing.minutes_late == 0


def test_short_booking_that_already_ended() -> None:
    timing = _check_in(45, ends_at=STARTS_AT + timedelta(minutes=30))
    assert timing.verdict is CheckInVerdict.BOOKING_ENDED


def test_check_out_counts_overtime_hours() -> None:
    timing = evaluate_check_out(
        checked_in_at=STARTS_AT + timedelta(minutes=5),
        ends_at=ENDS_AT,
        now=ENDS_AT + timedelta(minutes=70),
    )
    assert timing.overtime_hours == 2
    assert timing.is_overtime


def test_check_out_requires_check_in() -> None:
    with pytest.raises(NotCheckedInError):
        evaluate_check_out(checked_in_at=None, ends_at=ENDS_AT, now=ENDS_AT)


def test_check_out_cannot_precede_check_in() -> None:
    with pytest.raises(InvalidCheckoutTimeError):
        evaluate_check_out(checked_in_at=STARTS_AT, ends_at=ENDS_AT, now=STARTS_AT - timedelta(minutes=1))
