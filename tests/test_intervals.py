"""Tests for wall-clock interval arithmetic."""

from datetime import date

import pytest

from app.booking.intervals import day_of_week, format_hhmm, normalize_hhmm, overlaps, parse_hhmm
from app.core.errors import ValidationError
from app.models.scheduling import DayOfWeek


class TestOverlaps:
    """Tests for half-open interval overlap."""

    def test_contained_interval_overlaps(self) -> None:
        """09:30+30 sits inside 09:00+60."""
        assert overlaps(570, 30, 540, 60) is True

    def test_adjacent_intervals_do_not_overlap(self) -> None:
        """09:00-09:30 and 09:30-10:00 share only an endpoint."""
        assert overlaps(540, 30, 570, 30) is False
        assert overlaps(570, 30, 540, 30) is False

    def test_partial_overlap(self) -> None:
        """09:15+30 overlaps 09:30+30."""
        assert overlaps(555, 30, 570, 30) is True

    def test_overlap_is_symmetric(self) -> None:
        """Argument order does not matter."""
        cases = [(540, 60, 570, 30), (600, 15, 540, 120), (0, 30, 30, 30)]
        for a, da, b, db in cases:
            assert overlaps(a, da, b, db) == overlaps(b, db, a, da)


class TestTimeParsing:
    """Tests for HH:MM parsing and formatting."""

    def test_parse_hhmm(self) -> None:
        assert parse_hhmm("09:30") == 570
        assert parse_hhmm("00:00") == 0
        assert parse_hhmm("23:59") == 1439

    def test_parse_accepts_single_digit_hour(self) -> None:
        assert parse_hhmm("9:05") == 545

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "", "0930", None])
    def test_parse_rejects_malformed(self, value) -> None:
        """Malformed times raise ValidationError."""
        with pytest.raises(ValidationError):
            parse_hhmm(value)

    def test_format_hhmm_zero_pads(self) -> None:
        assert format_hhmm(545) == "09:05"
        assert format_hhmm(0) == "00:00"

    def test_format_outside_day_rejected(self) -> None:
        with pytest.raises(ValidationError):
            format_hhmm(1440)

    def test_normalize(self) -> None:
        assert normalize_hhmm(" 9:00 ") == "09:00"


class TestDayOfWeek:
    """Tests for weekday resolution."""

    def test_known_dates(self) -> None:
        """Weekday comes from the calendar, Monday first."""
        assert day_of_week(date(2024, 1, 1)) == DayOfWeek.MONDAY
        assert day_of_week(date(2024, 1, 6)) == DayOfWeek.SATURDAY
        assert day_of_week(date(2024, 1, 7)) == DayOfWeek.SUNDAY
