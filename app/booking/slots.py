"""Slot enumeration over recurring weekly availability windows.

These helpers are pure: the availability service loads windows and active
appointments, then hands plain values to the functions below.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from app.booking.intervals import format_hhmm, overlaps, parse_hhmm


@dataclass(frozen=True)
class Slot:
    """A bookable opportunity on a given date.

    Attributes:
        time: Start time as HH:MM
        duration_minutes: Slot unit length
        fee: Consultation fee at the workplace
    """

    time: str
    duration_minutes: int
    fee: Decimal


@dataclass(frozen=True)
class BookedInterval:
    """Minute range already consumed by an active appointment."""

    start: int
    duration: int


def window_bounds(start_time: str, end_time: str) -> tuple[int, int]:
    """Convert an HH:MM window to minute bounds."""
    return parse_hhmm(start_time), parse_hhmm(end_time)


def enumerate_candidates(
    windows: Iterable[tuple[int, int]],
    unit_minutes: int,
) -> list[int]:
    """Enumerate candidate slot starts for each window.

    A candidate ``t`` is emitted when ``start <= t`` and ``t + unit <= end``,
    so a trailing remainder shorter than one unit produces nothing. Windows
    are enumerated independently; overlapping windows yield duplicates.
    """
    if unit_minutes <= 0:
        raise ValueError("unit_minutes must be positive")

    candidates: list[int] = []
    for start, end in windows:
        current = start
        while current + unit_minutes <= end:
            candidates.append(current)
            current += unit_minutes
    return candidates


def remove_booked(
    candidates: Iterable[int],
    booked: Sequence[BookedInterval],
    unit_minutes: int,
) -> list[int]:
    """Drop candidates that overlap any booked interval, sorted ascending."""
    free = [
        start
        for start in candidates
        if not any(overlaps(start, unit_minutes, b.start, b.duration) for b in booked)
    ]
    # Duplicate starts from overlapping windows are kept
    return sorted(free)


def build_slots(
    windows: Iterable[tuple[int, int]],
    booked: Sequence[BookedInterval],
    unit_minutes: int,
    fee: Decimal,
) -> list[Slot]:
    """Expand windows into free slots annotated with the workplace fee."""
    free = remove_booked(enumerate_candidates(windows, unit_minutes), booked, unit_minutes)
    return [Slot(time=format_hhmm(start), duration_minutes=unit_minutes, fee=fee) for start in free]


def window_contains(
    windows: Iterable[tuple[int, int]],
    start: int,
    duration: int,
) -> bool:
    """Check that ``[start, start + duration)`` fits inside one window."""
    return any(w_start <= start and start + duration <= w_end for w_start, w_end in windows)


def find_conflict(
    start: int,
    duration: int,
    booked: Iterable[BookedInterval],
) -> BookedInterval | None:
    """Return the first booked interval overlapping the request, if any."""
    for interval in booked:
        if overlaps(start, duration, interval.start, interval.duration):
            return interval
    return None
