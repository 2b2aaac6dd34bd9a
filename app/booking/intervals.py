"""Wall-clock interval arithmetic on minutes since midnight.

All scheduling math works on integer minutes in ``[0, 1440)``. Intervals are
half-open: ``[start, start + duration)``.
"""

import re
from datetime import date

from app.core.errors import ValidationError
from app.models.scheduling import DayOfWeek

MINUTES_PER_DAY = 24 * 60

_HHMM_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

# date.weekday() index -> DayOfWeek, Monday first
_WEEKDAYS = list(DayOfWeek)


def overlaps(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    """Return True if ``[start_a, start_a+duration_a)`` meets ``[start_b, start_b+duration_b)``.

    Examples:
        >>> overlaps(570, 30, 540, 60)
        True
        >>> overlaps(540, 30, 570, 30)
        False
    """
    return start_a < start_b + duration_b and start_b < start_a + duration_a


def parse_hhmm(value: str) -> int:
    """Parse an ``HH:MM`` string into minutes since midnight.

    Raises:
        ValidationError: If the value is not a valid 24-hour time
    """
    match = _HHMM_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time '{value}'. Expected HH:MM (24-hour)")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as zero-padded ``HH:MM``."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValidationError(f"Minute offset {minutes} is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_hhmm(value: str) -> str:
    """Return the canonical zero-padded form of an ``HH:MM`` string."""
    return format_hhmm(parse_hhmm(value))


def day_of_week(on_date: date) -> DayOfWeek:
    """Resolve the weekday of a local calendar date.

    Uses the calendar index rather than locale-dependent day names.
    """
    return _WEEKDAYS[on_date.weekday()]
