"""Pure booking rules: interval math, slot enumeration and lifecycle policy."""

from app.booking.intervals import format_hhmm, overlaps, parse_hhmm
from app.booking.policy import can_be_cancelled, get_transition_policy
from app.booking.slots import Slot, build_slots

__all__ = [
    "overlaps",
    "parse_hhmm",
    "format_hhmm",
    "can_be_cancelled",
    "get_transition_policy",
    "Slot",
    "build_slots",
]
