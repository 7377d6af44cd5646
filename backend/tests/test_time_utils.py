"""Tests for time parsing, overlap and booking config."""
import itertools
from datetime import date

import pytest

from barbershop.errors import ParseError
from barbershop.services.slots import (
    BookingConfig,
    minutes_to_time_str,
    overlaps,
    to_minutes,
    weekday_of,
)


class TestToMinutes:

    @pytest.mark.parametrize("value, expected", [
        ("00:00", 0),
        ("09:00", 540),
        ("9:30", 570),
        ("16:30", 990),
        ("23:59", 1439),
    ])
    def test_valid(self, value, expected):
        assert to_minutes(value) == expected

    @pytest.mark.parametrize("value", [
        "", "9", "09:0", "ab:cd", "24:00", "12:60", "-1:00", "09:00:00", "09h00",
    ])
    def test_malformed_raises_parse_error(self, value):
        with pytest.raises(ParseError):
            to_minutes(value)

    def test_non_string_raises_parse_error(self):
        with pytest.raises(ParseError):
            to_minutes(900)

    def test_parse_error_is_value_error(self):
        """Pydantic validators turn ValueError into a 422."""
        assert issubclass(ParseError, ValueError)

    def test_format_back(self):
        assert minutes_to_time_str(540) == "09:00"
        assert minutes_to_time_str(605) == "10:05"


class TestOverlaps:

    def test_back_to_back_does_not_overlap(self):
        assert overlaps("09:00", 30, "09:30", 30) is False
        assert overlaps("09:30", 30, "09:00", 30) is False

    def test_corte_barba_overlaps_next_half_hour(self):
        # 09:00-09:50 vs 09:30-10:00
        assert overlaps("09:00", 50, "09:30", 30) is True

    def test_contained_interval(self):
        assert overlaps("10:00", 60, "10:15", 15) is True

    def test_same_start(self):
        assert overlaps("10:00", 15, "10:00", 20) is True

    def test_disjoint(self):
        assert overlaps("09:00", 20, "14:00", 50) is False

    def test_symmetric(self):
        starts = ["09:00", "09:15", "09:30", "10:00"]
        durations = [15, 20, 30, 50]
        for s1, d1, s2, d2 in itertools.product(starts, durations, starts, durations):
            assert overlaps(s1, d1, s2, d2) == overlaps(s2, d2, s1, d1)

    def test_malformed_time_propagates(self):
        with pytest.raises(ParseError):
            overlaps("9am", 30, "10:00", 30)


class TestWeekday:

    def test_sunday_is_zero(self):
        assert weekday_of(date(2024, 6, 9)) == 0

    def test_monday_is_one(self):
        assert weekday_of(date(2024, 6, 10)) == 1

    def test_saturday_is_six(self):
        assert weekday_of(date(2024, 6, 15)) == 6


class TestBookingConfig:

    def test_defaults(self):
        config = BookingConfig()
        assert config.open_minutes == 540
        assert config.close_minutes == 1020
        assert config.cache_ttl_seconds == 3.0

    def test_rejects_odd_step(self):
        with pytest.raises(ValueError):
            BookingConfig(slot_step_minutes=20)

    def test_rejects_inverted_hours(self):
        with pytest.raises(ValueError):
            BookingConfig(open_time="18:00", close_time="09:00")

    def test_rejects_bad_time(self):
        with pytest.raises(ParseError):
            BookingConfig(open_time="nine")
