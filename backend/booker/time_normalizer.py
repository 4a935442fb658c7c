"""Canonical day+time keys for slot and preference text.

A key looks like ``"tue 3pm"`` or ``"thu 8:30pm"``: a three letter day, a
space, the 12-hour clock hour, minutes only when non-zero, and the period.
Both sides of a comparison go through :func:`normalize`, so ``"Tuesday
3:00 PM"``, ``"Tue 3pm"`` and ``"Tuesday 15:00"`` all meet at ``"tue 3pm"``.
"""
import re
from datetime import date
from typing import Optional, Tuple

DAY_MAP = {
    'sunday': 'sun', 'sun': 'sun',
    'monday': 'mon', 'mon': 'mon',
    'tuesday': 'tue', 'tue': 'tue',
    'wednesday': 'wed', 'wed': 'wed',
    'thursday': 'thu', 'thu': 'thu',
    'friday': 'fri', 'fri': 'fri',
    'saturday': 'sat', 'sat': 'sat',
}

FULL_DAY_NAMES = {
    'sun': 'Sunday', 'mon': 'Monday', 'tue': 'Tuesday', 'wed': 'Wednesday',
    'thu': 'Thursday', 'fri': 'Friday', 'sat': 'Saturday',
}

# Every full day name starts with its abbreviation, so matching the
# abbreviation at a word start covers "tue", "tues" and "tuesday" alike.
_DAY_PATTERN = re.compile(r'\b(sun|mon|tue|wed|thu|fri|sat)')

# Tried in order: explicit am/pm marker, then HH:MM, then a bare hour.
_TIME_PATTERNS = (
    re.compile(r'\b(\d{1,2})(?::?(\d{2}))?\s*([ap])\.?m\b\.?'),
    re.compile(r'\b(\d{1,2}):(\d{2})\b()'),
    re.compile(r'\b(\d{1,2})\b()()'),
)


def _find_day(text: str) -> Optional[str]:
    match = _DAY_PATTERN.search(text)
    return DAY_MAP[match.group(1)] if match else None


def _find_time(text: str) -> Optional[Tuple[int, int, str]]:
    """Return (hour, minute, period) from the first usable time token."""
    for pattern in _TIME_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.group(2) else 0
        period = f"{match.group(3)}m" if match.group(3) else None
        if minute > 59:
            return None
        if period:
            if hour < 1 or hour > 12:
                return None
            return hour, minute, period
        # No marker: read it as 24-hour time
        if hour > 23:
            return None
        period = 'pm' if hour >= 12 else 'am'
        if hour > 12:
            hour -= 12
        elif hour == 0:
            hour = 12
        return hour, minute, period
    return None


def _format_time(hour: int, minute: int, period: str) -> str:
    minutes = f":{minute:02d}" if minute else ""
    return f"{hour}{minutes}{period}"


def normalize(text: Optional[str]) -> Optional[str]:
    """Convert free-form day and time text into a canonical slot key.

    Returns None when the text has no recognizable day or no time.
    """
    if not text:
        return None
    lowered = text.lower()

    day = _find_day(lowered)
    if not day:
        return None

    parsed = _find_time(lowered)
    if not parsed:
        return None

    return f"{day} {_format_time(*parsed)}"


def normalize_time(text: Optional[str]) -> Optional[str]:
    """Return only the canonical time part, e.g. ``"8:30pm"``."""
    if not text:
        return None
    parsed = _find_time(text.lower())
    return _format_time(*parsed) if parsed else None


def extract_day_of_week(text: Optional[str]) -> Optional[str]:
    """Recover the full day name ("Thursday") from a preference string."""
    if not text:
        return None
    day = _find_day(text.lower())
    return FULL_DAY_NAMES[day] if day else None


def day_name_for(value: date) -> str:
    """Full English day name for a date, independent of the host locale."""
    # date.weekday(): Monday == 0
    return ('Monday', 'Tuesday', 'Wednesday', 'Thursday',
            'Friday', 'Saturday', 'Sunday')[value.weekday()]
