"""
Unit tests for datetime utilities.
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from utils.datetime_utils import (
    calculate_end_time,
    combine_in_zone,
    ensure_aware,
    get_weekday_name,
    get_zone,
    hours_between,
    is_valid_timezone,
    minutes_to_time_string,
    organization_now,
    parse_date_string,
    parse_time_string,
    time_to_minutes,
)


class TestParsing:
    def test_parse_date(self):
        assert parse_date_string("2025-06-03") == date(2025, 6, 3)

    @pytest.mark.parametrize("value", ["2025-6-3", "2025/06/03", "03-06-2025", "2025-02-30", ""])
    def test_parse_date_rejects(self, value):
        with pytest.raises(ValueError):
            parse_date_string(value)

    @pytest.mark.parametrize("value,expected", [("09:05", time(9, 5)), ("9:05", time(9, 5)), ("23:59", time(23, 59))])
    def test_parse_time(self, value, expected):
        assert parse_time_string(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "12:60", "12:5", "noon", "12:00:00"])
    def test_parse_time_rejects(self, value):
        with pytest.raises(ValueError):
            parse_time_string(value)


class TestMinuteArithmetic:
    def test_time_to_minutes(self):
        assert time_to_minutes(time(10, 30)) == 630
        assert time_to_minutes("10:30") == 630

    def test_end_of_day_is_not_wrapped(self):
        assert minutes_to_time_string(1440) == "24:00"
        assert calculate_end_time("23:30", 30) == "24:00"
        assert calculate_end_time("09:45", 30) == "10:15"


class TestWeekdays:
    @pytest.mark.parametrize(
        "day,name",
        [
            (date(2025, 6, 2), "monday"),
            (date(2025, 6, 7), "saturday"),
            (date(2025, 6, 8), "sunday"),
            (date(2024, 2, 29), "thursday"),
        ],
    )
    def test_weekday_from_calendar_date(self, day, name):
        assert get_weekday_name(day) == name


class TestTimezones:
    def test_unknown_zone_falls_back_to_default(self):
        assert get_zone("Not/AZone") == ZoneInfo("Europe/Paris")
        assert get_zone(None) == ZoneInfo("Europe/Paris")

    def test_is_valid_timezone(self):
        assert is_valid_timezone("Asia/Tokyo")
        assert not is_valid_timezone("Asia/Atlantis")

    def test_combine_in_zone(self):
        start = combine_in_zone(date(2025, 6, 3), time(10, 0), "Europe/Paris")

        assert start.utcoffset().total_seconds() == 2 * 3600
        assert start.astimezone(timezone.utc).hour == 8

    def test_organization_now_is_aware(self):
        assert organization_now("Asia/Tokyo").tzinfo == ZoneInfo("Asia/Tokyo")

    def test_hours_between(self):
        start = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)
        end = datetime(2025, 6, 3, 14, 0, tzinfo=timezone.utc)

        assert hours_between(start, end) == 30
        assert hours_between(end, start) == -30

    def test_ensure_aware(self):
        naive = datetime(2025, 6, 2, 8, 0)
        aware = datetime(2025, 6, 2, 8, 0, tzinfo=ZoneInfo("Asia/Tokyo"))

        assert ensure_aware(naive).tzinfo == timezone.utc
        assert ensure_aware(aware) is aware
