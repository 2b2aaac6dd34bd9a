"""Clock helpers.

Lifecycle timestamps are stored in UTC. Appointment dates and HH:MM times are
clinic wall-clock values, so comparisons against them use naive local time.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Get the current naive local datetime used for booking rules."""
    return datetime.now()


def local_today() -> date:
    return local_now().date()
