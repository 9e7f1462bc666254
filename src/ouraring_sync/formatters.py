"""Display formatting for Oura metrics inside Roam blocks.

Every formatter returns ``None`` (or ``""`` for the time helpers) when it
has nothing to show, so callers can drop the row instead of rendering a
zero or a blank value.
"""

import math
import re
from datetime import date, datetime

EN_DASH = "–"

_TAG_PREFIX = re.compile(r"^tag_(generic_)?")
_CLOCK = re.compile(r"^(\d{2}):(\d{2})")
_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def is_valid_number(value: object) -> bool:
    """True for real ints/floats that are not NaN (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _plain(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def to_title_case(text: str) -> str:
    """Title-case snake_case, camelCase or space separated words."""
    spaced = re.sub(r"([A-Z])", r" \1", text.replace("_", " ")).strip()
    words = [word for word in spaced.split(" ") if word]
    return " ".join(word[0].upper() + word[1:].lower() for word in words)


def format_number(value: int | float | None, suffix: str | None = None) -> str | None:
    if not is_valid_number(value):
        return None
    return f"{_plain(value)} {suffix}" if suffix else _plain(value)


def format_percentage(value: int | float | None) -> str | None:
    if not is_valid_number(value):
        return None
    return f"{_plain(value)}%"


def format_heart_rate(avg: int | float | None, minimum: int | float | None) -> str | None:
    """Format average and lowest heart rate, e.g. ``58 bpm avg / min 49``."""
    parts: list[str] = []
    if is_valid_number(avg):
        parts.append(f"{_plain(avg)} bpm avg")
    if is_valid_number(minimum):
        parts.append(f"min {_plain(minimum)}")
    return " / ".join(parts) if parts else None


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def format_time(value: str | None) -> str:
    """Wall-clock ``HH:MM`` of an ISO timestamp, in the offset it was recorded with."""
    parsed = _parse_datetime(value)
    return parsed.strftime("%H:%M") if parsed else ""


def format_timestamp(timestamp: str | None) -> str:
    return format_time(timestamp)


def format_bedtime(start: str | None, end: str | None) -> str | None:
    if not start and not end:
        return None
    start_label = format_time(start)
    end_label = format_time(end)
    separator = f" {EN_DASH} " if start_label and end_label else ""
    return f"{start_label}{separator}{end_label}" or None


def format_distance(meters: int | float | None) -> str | None:
    if not is_valid_number(meters):
        return None
    return f"{meters / 1000:.2f} km"


def format_temperature(deviation: int | float | None) -> str | None:
    if not is_valid_number(deviation):
        return None
    sign = "+" if deviation >= 0 else ""
    return f"{sign}{deviation:.2f}°C"


def format_minutes_from_seconds(seconds: int | float | None) -> str | None:
    """Format a duration in seconds as ``2h 30m``, ``2h`` or ``45m``."""
    if not is_valid_number(seconds):
        return None
    total_minutes = _round_half_up(seconds / 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    return f"{minutes}m"


def format_tag_time(time_str: str | None) -> str:
    """``HH:MM`` from ``HH:MM:SS`` or ``HH:MM:SS+00:00``; ISO datetimes are also accepted."""
    if not time_str:
        return ""
    match = _CLOCK.match(time_str)
    if match:
        return f"{match.group(1)}:{match.group(2)}"
    return format_time(time_str)


def format_ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_daily_note_date(iso_date: str) -> str:
    """``2025-11-29`` -> ``November 29th, 2025`` (Roam daily note title)."""
    parsed = date.fromisoformat(iso_date)
    return f"{_MONTHS[parsed.month - 1]} {format_ordinal(parsed.day)}, {parsed.year}"


def calculate_duration(start: str | None, end: str | None) -> str | None:
    start_dt = _parse_datetime(start)
    end_dt = _parse_datetime(end)
    if start_dt is None or end_dt is None:
        return None
    try:
        seconds = (end_dt - start_dt).total_seconds()
    except TypeError:
        # naive vs aware timestamps
        return None
    return format_minutes_from_seconds(max(0.0, seconds))


def format_activity_name(activity: str) -> str:
    return to_title_case(activity)


def format_tag_type(code: str | None) -> str:
    """Readable tag name: drops ``tag_`` / ``tag_generic_`` and title-cases the rest."""
    if not code:
        return "Tag"
    cleaned = _TAG_PREFIX.sub("", code).replace("_", " ")
    return to_title_case(cleaned) or "Tag"
