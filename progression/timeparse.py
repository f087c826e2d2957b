"""Tolerant time parsing for task and email records.

Rows written by this service carry epoch-millisecond columns, but legacy rows
may hold only human-readable due_date/due_time strings (e.g. "3/14/2025" and
"9:30 AM"), numeric strings, or datetimes. None of these helpers raise:
anything that cannot be read comes back as None.
"""
import logging
import re
import time
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)

# Direct epoch fields, in the order they are consulted
SCHEDULE_FIELDS = ("due_timestamp", "scheduled_time", "scheduled_at")


def now_ms() -> int:
    return int(time.time() * 1000)


def to_millis(value: Any) -> Optional[int]:
    """Coerce a stored time value to epoch milliseconds.

    Accepts ints/floats (already ms), numeric strings, datetimes (naive ones
    are read as UTC), dates, and {"seconds": n} dicts from older exports.
    Falsy values (including 0) read as missing.
    """
    if not value or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return int((value - datetime(1970, 1, 1)).total_seconds() * 1000)
        return int(value.timestamp() * 1000)
    if isinstance(value, date):
        return to_millis(datetime(value.year, value.month, value.day))
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            return int(seconds * 1000)
    return None


def _strict_parts(text: str, sep: str) -> Optional[list[int]]:
    parts = text.split(sep)
    if len(parts) != 3:
        return None
    try:
        return [int(p) for p in parts]
    except ValueError:
        return None


def parse_date(value: Any, tz: tzinfo) -> Optional[datetime]:
    """Parse a calendar date into local midnight in tz.

    M/D/YYYY and YYYY-M-D are read strictly; anything else is handed to
    dateutil and truncated to its date.
    """
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None

    parts = None
    if "/" in text:
        mdy = _strict_parts(text, "/")
        if mdy:
            parts = (mdy[2], mdy[0], mdy[1])
    elif "-" in text:
        ymd = _strict_parts(text, "-")
        if ymd:
            parts = tuple(ymd)

    try:
        if parts:
            return datetime(*parts, tzinfo=tz)
        parsed = date_parser.parse(text)
        return datetime(parsed.year, parsed.month, parsed.day, tzinfo=tz)
    except (ValueError, OverflowError) as e:
        logger.debug("Unparsable date %r: %s", text, e)
        return None


def parse_time_to_minutes(value: Any) -> Optional[int]:
    """'9:30 AM' -> 570. Only the h:mm AM/PM shape is accepted."""
    if not value:
        return None
    match = _TIME_RE.match(str(value).strip())
    if not match:
        return None
    hour = int(match.group(1)) % 12
    if match.group(3).upper() == "PM":
        hour += 12
    return hour * 60 + int(match.group(2))


def scheduled_ms(task: dict, tz: tzinfo) -> Optional[int]:
    """When a task is due, in epoch ms, or None if no field can be read."""
    for field in SCHEDULE_FIELDS:
        direct = to_millis(task.get(field))
        if direct is not None:
            return direct

    day = parse_date(task.get("due_date"), tz)
    if day is None:
        return None
    minutes = parse_time_to_minutes(task.get("due_time"))
    if minutes is not None:
        day = day + timedelta(minutes=minutes)
    return int(day.timestamp() * 1000)


def format_due(ms: int, tz: tzinfo) -> tuple[str, str]:
    """Render epoch ms as ('M/D/YYYY', 'h:mm AM') in tz, the shape the CRM shows."""
    local = datetime.fromtimestamp(ms / 1000, tz)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.month}/{local.day}/{local.year}",
        f"{hour}:{local.minute:02d} {suffix}",
    )


def iso_or_empty(ms: Optional[float]) -> str:
    if ms is None or ms in (float("inf"), float("-inf")):
        return ""
    try:
        return datetime.fromtimestamp(ms / 1000, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    except (OverflowError, OSError, ValueError):
        return str(ms)
