"""
Clock helpers: UTC storage timestamps and the reminder timezone.

REMINDER_TIMEZONE (IANA name) decides what "today" and "10:30" mean for reminders;
empty means the server's local timezone.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lunch_notify.config import settings

_log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def reminder_tz(name: str | None = None) -> tzinfo:
    name = settings.reminder_timezone if name is None else name
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            _log.warning("Unknown REMINDER_TIMEZONE %r; falling back to server local time", name)
    return datetime.now().astimezone().tzinfo


def local_now(now: datetime | None = None, tz: tzinfo | None = None) -> datetime:
    """Aware datetime in the reminder timezone. A naive `now` is taken as UTC."""
    tz = tz or reminder_tz()
    return (as_utc(now) if now is not None else utcnow()).astimezone(tz)


def local_day_bounds_utc(local_day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """[start of local_day, start of next day) converted to UTC."""
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def parse_hhmm(value: str) -> time:
    """Parse 'HH:MM' (24h). Raises ValueError on anything else."""
    raw = (value or "").strip()
    parts = raw.split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    return time(hour, minute)
