"""
Wall-clock helpers for the configured local time zone.
"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from .config import LOCAL_TIMEZONE

SATURDAY = 5


def local_now() -> datetime:
    """Returns the current time in the configured zone."""
    return datetime.now(ZoneInfo(LOCAL_TIMEZONE))


def local_today() -> date:
    return local_now().date()


def slot_for(moment: datetime) -> str:
    """Formats the notification slot ("HH:00") a moment falls into."""
    return f"{moment.hour:02d}:00"


def next_hour_boundary(now: datetime) -> datetime:
    """
    Returns the next top of the hour strictly after `now`.

    Aware datetimes step through UTC so that a DST change never yields a
    nonexistent or repeated local hour.
    """
    if now.tzinfo is None:
        return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    utc_hour = now.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
    return (utc_hour + timedelta(hours=1)).astimezone(now.tzinfo)


def seconds_between(start: datetime, end: datetime) -> float:
    """Elapsed seconds from start to end, measured in UTC for aware datetimes."""
    if start.tzinfo is not None and end.tzinfo is not None:
        start = start.astimezone(timezone.utc)
        end = end.astimezone(timezone.utc)
    return (end - start).total_seconds()


def _first_saturday(year: int, month: int) -> date:
    first = date(year, month, 1)
    return first + timedelta(days=(SATURDAY - first.weekday()) % 7)


def next_feed_update(now: datetime, hour: int) -> datetime:
    """
    Returns the next feed refresh after `now`: the first Saturday of a month
    at `hour` o'clock, in the time zone of `now`.
    """
    year, month = now.year, now.month
    while True:
        candidate = datetime.combine(
            _first_saturday(year, month), time(hour), tzinfo=now.tzinfo
        )
        if candidate > now:
            return candidate
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
