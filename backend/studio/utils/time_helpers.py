"""
Time-of-day and slot-date helpers.

Historical booking rows store slot times in whatever format the client that
created them used ("18:00", "6:00 PM", "6:00 p. m."). Everything that groups
or compares slots goes through normalize_time first.
"""

from __future__ import annotations

from datetime import date, datetime, time
import logging
import re
from typing import Optional, Union

logger = logging.getLogger(__name__)

SENTINEL_TIME = "00:00"

_TIME_PATTERN = re.compile(
    r"^(?P<hour>\d{1,2})"
    r"(?::(?P<minute>\d{2})(?::(?P<second>\d{2}))?)?"
    r"\s*(?:(?P<marker>[ap])\.?\s*m\.?)?$",
    re.IGNORECASE,
)


def _clean(value: str) -> str:
    # Browsers emit narrow/no-break spaces before AM/PM markers
    return value.replace("\u202f", " ").replace("\xa0", " ").strip()


def parse_time_of_day(value: Optional[str]) -> Optional[time]:
    """Parse a 12-hour or 24-hour time string. Returns None when unparseable."""
    if not isinstance(value, str):
        return None
    match = _TIME_PATTERN.match(_clean(value))
    if not match:
        return None

    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    marker = (match.group("marker") or "").lower()

    if minute > 59:
        return None
    if marker:
        if not 1 <= hour <= 12:
            return None
        if marker == "a":
            hour = 0 if hour == 12 else hour
        else:
            hour = 12 if hour == 12 else hour + 12
    elif hour == 24 and minute == 0:
        # End-of-day sentinel
        hour = 0
    elif hour > 23:
        return None
    return time(hour, minute)


def normalize_time(value: Optional[str]) -> str:
    """
    Canonicalize a time-of-day string to zero-padded 24-hour ``HH:MM``.

    Never raises: unparseable input yields ``"00:00"`` and a data-quality warning,
    because this runs inside aggregation loops over dirty historical data.
    """
    parsed = parse_time_of_day(value)
    if parsed is None:
        logger.warning(f"Could not normalize time {value!r}; using {SENTINEL_TIME}")
        return SENTINEL_TIME
    return parsed.strftime("%H:%M")


def is_valid_time(value: Optional[str]) -> bool:
    return parse_time_of_day(value) is not None


def to_12_hour(value: str) -> str:
    """Render a time as the en-US 12-hour label used by older clients ("2:00 PM")."""
    parsed = parse_time_of_day(value) or time(0, 0)
    hour = parsed.hour % 12 or 12
    marker = "AM" if parsed.hour < 12 else "PM"
    return f"{hour}:{parsed.minute:02d} {marker}"


def parse_slot_date(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse an ISO ``YYYY-MM-DD`` slot date, tolerating a trailing timestamp.

    Returns None (and logs) for malformed values so callers can skip only
    the offending slot.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        logger.warning(f"Missing slot date {value!r}")
        return None
    raw = value.strip().split("T", 1)[0]
    try:
        return date.fromisoformat(raw)
    except ValueError:
        logger.warning(f"Malformed slot date {value!r}")
        return None


def slot_datetime(slot_date: date, time_str: str) -> datetime:
    """Naive local datetime at which a slot starts."""
    parsed = parse_time_of_day(time_str) or time(0, 0)
    return datetime.combine(slot_date, parsed)


def time_to_minutes(value: str) -> int:
    """Minutes since midnight of a normalized time string."""
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)
