"""
Deadline arithmetic: assignment deadline instants, day boundaries, days late.

All functions are pure; "now" is always passed in by the caller.
"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from reminders.errors import ConfigurationError


def get_zone(name: str | None) -> ZoneInfo:
    if not name or not str(name).strip():
        raise ConfigurationError("Timezone is not set")
    try:
        return ZoneInfo(str(name).strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {name!r}") from e


def parse_deadline_time(value: time | str | None) -> time:
    """Accept a ``time`` or an ``HH:MM[:SS]`` string."""
    if isinstance(value, time):
        return value
    if not value or not str(value).strip():
        raise ConfigurationError("Deadline time is not set")
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid deadline time: {value!r}") from e


def compute_deadline(deadline_time: time | str | None, tz_name: str | None, report_date: date) -> datetime:
    """Local midnight of ``report_date`` plus the time-of-day offset, in UTC."""
    zone = get_zone(tz_name)
    at = parse_deadline_time(deadline_time)
    midnight = datetime.combine(report_date, time.min, tzinfo=zone).astimezone(timezone.utc)
    offset = timedelta(hours=at.hour, minutes=at.minute, seconds=at.second, microseconds=at.microsecond)
    return midnight + offset


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes coming back from the store are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_today(now: datetime, tz_name: str) -> date:
    return as_utc(now).astimezone(get_zone(tz_name)).date()


def start_of_day(now: datetime, tz_name: str) -> datetime:
    """Start of the calendar day containing ``now`` in ``tz_name``, as UTC."""
    zone = get_zone(tz_name)
    today = as_utc(now).astimezone(zone).date()
    return datetime.combine(today, time.min, tzinfo=zone).astimezone(timezone.utc)


def days_late(now: datetime, deadline: datetime) -> int:
    """Whole days elapsed since the deadline, 0 when not yet passed."""
    elapsed = as_utc(now) - as_utc(deadline)
    if elapsed <= timedelta(0):
        return 0
    return elapsed // timedelta(days=1)
