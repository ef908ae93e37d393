"""Logical-day resolution.

A logical day starts at the user's configured day start time rather than at
midnight. All boundaries are computed in a fixed UTC+9 reference timezone so
every device derives the same day for the same instant. The offset is a
constant: no DST, no timezone database.
"""
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple, Union

REFERENCE_UTC_OFFSET = timedelta(hours=9)
DEFAULT_DAY_START_TIME = "05:00"

_DAY_START_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")
_LOGICAL_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Instant = Union[datetime, int, float]


def is_valid_day_start_time(value) -> bool:
    return isinstance(value, str) and _DAY_START_RE.match(value) is not None


def parse_day_start_time(value: str) -> Tuple[int, int]:
    m = _DAY_START_RE.match(value) if isinstance(value, str) else None
    if m is None:
        raise ValueError(f"Invalid day start time: {value!r} (expected HH:MM)")
    return int(m.group(1)), int(m.group(2))


def normalize_day_start_time(value: str) -> str:
    hour, minute = parse_day_start_time(value)
    return f"{hour:02d}:{minute:02d}"


def _to_utc(instant: Instant) -> datetime:
    if isinstance(instant, datetime):
        if instant.tzinfo is None:
            # Naive datetimes are taken to be UTC.
            return instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(timezone.utc)
    return datetime.fromtimestamp(instant, tz=timezone.utc)


def resolve_logical_day(instant: Instant, day_start_time: str) -> date:
    """Return the logical day ``instant`` belongs to.

    An instant whose reference-local time is strictly before the day start
    time belongs to the previous calendar day. An instant exactly at the
    start time already belongs to the new day.
    """
    start_hour, start_minute = parse_day_start_time(day_start_time)
    ref = _to_utc(instant) + REFERENCE_UTC_OFFSET

    if (ref.hour, ref.minute) < (start_hour, start_minute):
        return ref.date() - timedelta(days=1)
    return ref.date()


def today(day_start_time: str, now: Optional[Instant] = None) -> date:
    if now is None:
        now = datetime.now(timezone.utc)
    return resolve_logical_day(now, day_start_time)


def format_logical_day(day: date) -> str:
    return day.isoformat()


def parse_logical_day(text: str) -> date:
    if not isinstance(text, str) or not _LOGICAL_DAY_RE.match(text):
        raise ValueError(f"Invalid logical day: {text!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(text)


def logical_day_bounds(day: date, day_start_time: str) -> Tuple[datetime, datetime]:
    """Half-open UTC interval ``[start, end)`` covered by a logical day.

    Example with day start "05:00":
        2024-06-10 -> (2024-06-09T20:00Z, 2024-06-10T20:00Z)
    """
    start_hour, start_minute = parse_day_start_time(day_start_time)
    ref_start = datetime(day.year, day.month, day.day, start_hour, start_minute, tzinfo=timezone.utc)
    start = ref_start - REFERENCE_UTC_OFFSET
    return start, start + timedelta(days=1)


def is_in_logical_day(instant: Instant, day: date, day_start_time: str) -> bool:
    start, end = logical_day_bounds(day, day_start_time)
    return start <= _to_utc(instant) < end
