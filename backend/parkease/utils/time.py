from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc)


def to_local(dt: datetime, tz_name: str) -> datetime:
    return ensure_aware(dt).astimezone(ZoneInfo(tz_name))


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from `start` to `end`."""
    return (end - start) / timedelta(hours=1)
