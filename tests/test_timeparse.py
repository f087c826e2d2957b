"""Unit tests for progression.timeparse."""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from progression.timeparse import (
    format_due,
    iso_or_empty,
    parse_date,
    parse_time_to_minutes,
    scheduled_ms,
    to_millis,
)

UTC = timezone.utc
JAN_2_2024_MS = 1704153600000


class TestToMillis:
    @pytest.mark.parametrize("value, expected", [
        (1704153600000, 1704153600000),
        (1704153600000.7, 1704153600000),
        ("1704153600000", 1704153600000),
        (" 42 ", 42),
        ({"seconds": 5}, 5000),
        ({"_seconds": 2}, 2000),
        (datetime(2024, 1, 2, tzinfo=UTC), JAN_2_2024_MS),
        (datetime(2024, 1, 2), JAN_2_2024_MS),
        (date(2024, 1, 2), JAN_2_2024_MS),
    ])
    def test_readable_values(self, value, expected):
        assert to_millis(value) == expected

    @pytest.mark.parametrize("value", [
        None, 0, "", "   ", "soon", "inf", float("nan"), True, {"nanos": 3}, [1],
    ])
    def test_unreadable_values_are_none(self, value):
        assert to_millis(value) is None


class TestParseDate:
    def test_month_day_year(self):
        assert parse_date("3/14/2025", UTC) == datetime(2025, 3, 14, tzinfo=UTC)

    def test_year_month_day(self):
        assert parse_date("2025-03-14", UTC) == datetime(2025, 3, 14, tzinfo=UTC)

    def test_free_form_falls_back_to_dateutil(self):
        assert parse_date("March 14, 2025", UTC) == datetime(2025, 3, 14, tzinfo=UTC)

    def test_free_form_drops_time_of_day(self):
        assert parse_date("2025-03-14T18:45:00", UTC) == datetime(2025, 3, 14, tzinfo=UTC)

    def test_local_midnight_in_zone(self):
        chicago = ZoneInfo("America/Chicago")
        parsed = parse_date("1/2/2024", chicago)
        assert parsed.tzinfo is chicago
        assert (parsed.hour, parsed.minute) == (0, 0)

    @pytest.mark.parametrize("value", [None, "", "  ", "garbage", "13/45/2025", "2025-02-30"])
    def test_invalid_is_none(self, value):
        assert parse_date(value, UTC) is None


class TestParseTimeToMinutes:
    @pytest.mark.parametrize("value, expected", [
        ("9:30 AM", 570),
        ("9:30AM", 570),
        ("12:00 AM", 0),
        ("12:15 PM", 735),
        ("1:05 pm", 785),
        ("11:59 PM", 1439),
    ])
    def test_am_pm(self, value, expected):
        assert parse_time_to_minutes(value) == expected

    @pytest.mark.parametrize("value", [None, "", "13:00", "9 AM", "noon", "9:5 AM"])
    def test_other_shapes_are_none(self, value):
        assert parse_time_to_minutes(value) is None


class TestScheduledMs:
    def test_due_timestamp_wins(self):
        task = {"due_timestamp": 5000, "scheduled_time": 1, "due_date": "1/1/2020"}
        assert scheduled_ms(task, UTC) == 5000

    def test_falls_through_epoch_fields_in_order(self):
        assert scheduled_ms({"due_timestamp": None, "scheduled_time": "7000"}, UTC) == 7000
        assert scheduled_ms({"scheduled_at": 9000}, UTC) == 9000

    def test_date_and_time_strings(self):
        task = {"due_date": "1/2/2024", "due_time": "1:00 PM"}
        assert scheduled_ms(task, UTC) == JAN_2_2024_MS + 13 * 3600 * 1000

    def test_date_without_readable_time_is_midnight(self):
        assert scheduled_ms({"due_date": "2024-01-02", "due_time": "whenever"}, UTC) == JAN_2_2024_MS

    def test_nothing_readable(self):
        assert scheduled_ms({"due_time": "9:00 AM"}, UTC) is None
        assert scheduled_ms({}, UTC) is None


class TestFormatDue:
    def test_utc(self):
        assert format_due(JAN_2_2024_MS + 13 * 3600 * 1000, UTC) == ("1/2/2024", "1:00 PM")

    def test_midnight_is_twelve_am(self):
        assert format_due(JAN_2_2024_MS, UTC) == ("1/2/2024", "12:00 AM")

    def test_renders_in_crm_zone(self):
        # 13:00 UTC is 7:00 CST
        chicago = ZoneInfo("America/Chicago")
        assert format_due(JAN_2_2024_MS + 13 * 3600 * 1000, chicago) == ("1/2/2024", "7:00 AM")

    def test_round_trips_through_scheduled_ms(self):
        chicago = ZoneInfo("America/Chicago")
        ms = JAN_2_2024_MS + 13 * 3600 * 1000
        due_date, due_time = format_due(ms, chicago)
        assert scheduled_ms({"due_date": due_date, "due_time": due_time}, chicago) == ms


def test_iso_or_empty():
    assert iso_or_empty(JAN_2_2024_MS) == "2024-01-02T00:00:00.000Z"
    assert iso_or_empty(None) == ""
    assert iso_or_empty(float("inf")) == ""
