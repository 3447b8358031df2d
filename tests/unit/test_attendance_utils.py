"""Unit tests for attendance calculations."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.attendance import attendance_utils
from app.attendance.attendance_utils import (
    compute_early_departure,
    compute_lateness,
    day_of_week,
    default_shift,
    distance_meters,
    end_of_day,
    format_work_hours,
    is_within_radius,
    local_now,
    midnight,
    month_range,
    overtime_hours,
    rate,
    shift_from_employee,
    status_color,
    work_hours_between,
)


class TestGeo:
    def test_distance_to_self_is_zero(self) -> None:
        assert distance_meters(12.97, 77.59, 12.97, 77.59) == 0

    def test_one_degree_latitude_is_about_111km(self) -> None:
        distance = distance_meters(0, 0, 1, 0)
        assert 111000 < distance < 111400

    def test_within_radius_uses_geojson_lon_lat_order(self) -> None:
        center = {"type": "Point", "coordinates": [77.5946, 12.9716]}

        inside, distance = is_within_radius(12.9717, 77.5946, center, 100)
        assert inside is True
        assert distance < 20

        outside, _ = is_within_radius(12.9816, 77.5946, center, 100)
        assert outside is False


class TestDays:
    def test_midnight_accepts_datetime_date_and_iso_string(self) -> None:
        expected = datetime(2024, 3, 5)
        assert midnight(datetime(2024, 3, 5, 14, 30)) == expected
        assert midnight(date(2024, 3, 5)) == expected
        assert midnight("2024-03-05T10:00:00Z") == expected

    def test_end_of_day(self) -> None:
        assert end_of_day(date(2024, 3, 5)) == datetime(2024, 3, 5, 23, 59, 59, 999999)

    def test_month_range_rolls_over_december(self) -> None:
        assert month_range(2024, 12) == (datetime(2024, 12, 1), datetime(2025, 1, 1))
        assert month_range(2024, 2) == (datetime(2024, 2, 1), datetime(2024, 3, 1))

    def test_day_of_week(self) -> None:
        assert day_of_week(datetime(2024, 3, 3)) == "Sunday"


# Saturday 18:30 UTC is already Sunday 00:00 in Asia/Kolkata
SATURDAY_EVENING_UTC = datetime(2026, 10, 17, 18, 30, tzinfo=timezone.utc)


class UtcHostClock(datetime):
    """datetime pinned to one instant, as seen from a UTC host."""

    @classmethod
    def now(cls, tz=None):
        if tz is None:
            return SATURDAY_EVENING_UTC.replace(tzinfo=None)
        return SATURDAY_EVENING_UTC.astimezone(tz)


@pytest.fixture
def kolkata_clock(monkeypatch):
    monkeypatch.setattr(attendance_utils, "datetime", UtcHostClock)
    monkeypatch.setattr(attendance_utils, "ATTENDANCE_TZ", ZoneInfo("Asia/Kolkata"))


class TestAttendanceClock:
    def test_local_now_follows_attendance_time_zone(self, kolkata_clock) -> None:
        assert local_now() == datetime(2026, 10, 18, 0, 0)

    def test_today_is_the_attendance_day_not_the_host_day(self, kolkata_clock) -> None:
        assert midnight() == datetime(2026, 10, 18)
        assert day_of_week(midnight()) == "Sunday"

    def test_aware_datetimes_are_converted_before_truncating(self, monkeypatch) -> None:
        monkeypatch.setattr(attendance_utils, "ATTENDANCE_TZ", ZoneInfo("Asia/Kolkata"))

        assert midnight(SATURDAY_EVENING_UTC) == datetime(2026, 10, 18)


class TestShifts:
    def test_employee_shift_overrides_defaults(self) -> None:
        user = {"employee_record": {"shift_timings": {"start": "10:00", "grace_period": None}}}

        shift = shift_from_employee(user)

        assert shift["start"] == "10:00"
        assert shift["grace_period"] == default_shift()["grace_period"]

    def test_missing_shift_falls_back_to_defaults(self) -> None:
        assert shift_from_employee({}) == default_shift()

    def test_lateness_within_grace_period_is_on_time(self) -> None:
        shift = {"start": "09:00", "end": "17:00", "grace_period": 15, "working_hours": 8}

        assert compute_lateness(datetime(2024, 3, 5, 9, 10), shift) == (0, False)
        assert compute_lateness(datetime(2024, 3, 5, 8, 50), shift) == (0, False)
        assert compute_lateness(datetime(2024, 3, 5, 9, 40), shift) == (40, True)

    def test_early_departure(self) -> None:
        shift = {"start": "09:00", "end": "17:00", "grace_period": 15, "working_hours": 8}

        assert compute_early_departure(datetime(2024, 3, 5, 16, 30), shift) == 30
        assert compute_early_departure(datetime(2024, 3, 5, 17, 30), shift) == 0


class TestHours:
    def test_work_and_overtime_hours(self) -> None:
        hours = work_hours_between(datetime(2024, 3, 5, 9), datetime(2024, 3, 5, 18, 30))

        assert hours == 9.5
        assert overtime_hours(hours, 8) == 1.5
        assert overtime_hours(6, 8) == 0

    def test_format_work_hours(self) -> None:
        assert format_work_hours(None) == "0h"
        assert format_work_hours(7.5) == "7h 30m"
        assert format_work_hours(7.999) == "8h 0m"

    def test_status_color_and_rate(self) -> None:
        assert status_color("PRESENT") == "#10b981"
        assert status_color("UNKNOWN") == status_color("HOLIDAY")
        assert rate(1, 4) == 25.0
        assert rate(3, 0) == 0.0
