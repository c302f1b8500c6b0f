from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def day_of_week(day: date) -> int:
    # Monday = 0 ... Sunday = 6
    return day.weekday()


def from_sunday_based_weekday(weekday: int) -> int:
    """Convert a Sunday = 0 weekday number into the Monday = 0 convention."""
    return (weekday + 6) % 7


def hours_to_timedelta(hours: float) -> timedelta:
    return timedelta(hours=hours)


def end_instant(day: date, start_time: float, duration: float, timezone: str) -> datetime:
    """Return the aware instant a lesson ends.

    The end is computed from local midnight of ``day`` plus the fractional hours of
    ``start_time + duration``, so lessons crossing midnight roll over to the next day.
    """
    tz = ZoneInfo(timezone)
    midnight = datetime.combine(day, time.min, tzinfo=tz)
    return midnight + hours_to_timedelta(start_time + duration)


def local_today(now: datetime, timezone: str) -> date:
    return ensure_utc(now).astimezone(ZoneInfo(timezone)).date()


def start_of_week(day: date) -> date:
    return day - timedelta(days=day_of_week(day))


def format_hours(value: float) -> str:
    hour = int(value)
    minutes = round((value - hour) * 60)
    if minutes == 60:
        hour += 1
        minutes = 0
    period = "PM" if hour % 24 >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minutes:02d} {period}"
