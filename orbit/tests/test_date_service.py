"""
Tests for DateService.

Tests cover:
1. Logical day resolution across timezones and DST
2. Timezone fallback
3. Parsing and formatting
4. Day ranges
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from orbit.exceptions import ValidationException
from orbit.services.date_service import DateService


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestResolveLogicalDay:
    """Tests for resolve_logical_day"""

    def test_utc(self):
        assert DateService.resolve_logical_day(utc(2024, 6, 12, 23, 59), "UTC") == date(2024, 6, 12)

    def test_naive_instant_treated_as_utc(self):
        assert DateService.resolve_logical_day(datetime(2024, 6, 12, 23, 59), "UTC") == date(2024, 6, 12)

    def test_new_york_before_local_midnight(self):
        """04:59Z on Mar 10 is still Mar 9 in New York"""
        assert DateService.resolve_logical_day(utc(2024, 3, 10, 4, 59), "America/New_York") == date(2024, 3, 9)

    def test_spring_forward_both_sides_same_day(self):
        """01:59 EST and 03:01 EDT are the same calendar day"""
        before = DateService.resolve_logical_day(utc(2024, 3, 10, 6, 59), "America/New_York")
        after = DateService.resolve_logical_day(utc(2024, 3, 10, 7, 1), "America/New_York")
        assert before == after == date(2024, 3, 10)

    def test_fall_back_repeated_hour(self):
        """06:30Z on Nov 3 is 01:30 EST, the second 01:30 of the day"""
        assert DateService.resolve_logical_day(utc(2024, 11, 3, 6, 30), "America/New_York") == date(2024, 11, 3)

    def test_utc_plus_14_is_ahead(self):
        assert DateService.resolve_logical_day(utc(2024, 6, 11, 10, 0), "Pacific/Kiritimati") == date(2024, 6, 12)

    def test_utc_minus_12_is_behind(self):
        # POSIX sign convention: Etc/GMT+12 is UTC-12
        assert DateService.resolve_logical_day(utc(2024, 6, 12, 11, 0), "Etc/GMT+12") == date(2024, 6, 11)

    def test_utc_noon_extremes(self):
        noon = utc(2024, 6, 12, 12, 0)
        assert DateService.resolve_logical_day(noon, "Pacific/Kiritimati") == date(2024, 6, 13)
        assert DateService.resolve_logical_day(noon, "Etc/GMT+12") == date(2024, 6, 12)


class TestTimezoneFallback:
    """Invalid identifiers resolve in UTC and say so"""

    @pytest.mark.parametrize("tz", ["Mars/Olympus_Mons", "", None, "../etc/passwd", "America", "Etc", "a" * 300])
    def test_invalid_timezone_falls_back(self, tz):
        resolution = DateService.resolve(utc(2024, 6, 12, 23, 30), tz)
        assert resolution.day == date(2024, 6, 12)
        assert resolution.timezone == "UTC"
        assert resolution.fell_back is True

    def test_valid_timezone_does_not_fall_back(self):
        resolution = DateService.resolve(utc(2024, 6, 12, 23, 30), "Europe/Berlin")
        assert resolution.day == date(2024, 6, 13)
        assert resolution.timezone == "Europe/Berlin"
        assert resolution.fell_back is False

    def test_today_uses_given_instant(self):
        assert DateService.today("Asia/Tokyo", utc(2024, 6, 12, 16, 0)) == date(2024, 6, 13)


class TestParseAndFormat:
    """Tests for parse_logical_day / format_logical_day"""

    def test_format_is_zero_padded(self):
        assert DateService.format_logical_day(date(2024, 1, 5)) == "2024-01-05"

    def test_parse(self):
        assert DateService.parse_logical_day("2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize("value", ["2023-02-29", "2024-13-01", "yesterday", ""])
    def test_parse_rejects_non_dates(self, value):
        with pytest.raises(ValidationException):
            DateService.parse_logical_day(value)

    def test_previous_day_crosses_year(self):
        assert DateService.previous_day(date(2024, 1, 1)) == date(2023, 12, 31)

    def test_iter_days_inclusive(self):
        days = list(DateService.iter_days(date(2024, 2, 27), date(2024, 3, 1)))
        assert days == [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_iter_days_empty_when_reversed(self):
        assert list(DateService.iter_days(date(2024, 3, 2), date(2024, 3, 1))) == []


class TestGetDayRange:
    """Tests for get_day_range"""

    def test_utc_day_is_24_hours(self):
        start, end = DateService.get_day_range(date(2024, 6, 12), "UTC")
        assert start == utc(2024, 6, 12)
        assert end - start == timedelta(hours=24)

    def test_spring_forward_day_is_23_hours(self):
        start, end = DateService.get_day_range(date(2024, 3, 10), "America/New_York")
        assert start == utc(2024, 3, 10, 5, 0)
        assert end == utc(2024, 3, 11, 4, 0)
        assert end - start == timedelta(hours=23)

    def test_fall_back_day_is_25_hours(self):
        start, end = DateService.get_day_range(date(2024, 11, 3), "America/New_York")
        assert end - start == timedelta(hours=25)
