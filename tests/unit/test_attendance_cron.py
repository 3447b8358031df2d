"""Unit tests for the scheduled attendance jobs and the holiday sweep they share."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pymongo.errors import DuplicateKeyError

from app.attendance import admin_attendance_service, attendance_cron, attendance_utils
from app.attendance.attendance_models import AttendanceStatus


def pinned_clock(instant: datetime) -> type:
    """datetime class whose now() is one fixed instant seen from a UTC host."""

    class PinnedClock(datetime):
        @classmethod
        def now(cls, tz=None):
            if tz is None:
                return instant.replace(tzinfo=None)
            return instant.astimezone(tz)

    return PinnedClock


@pytest.fixture
def at_utc(monkeypatch):
    """Pin the attendance clock to a UTC instant with the Asia/Kolkata attendance zone."""
    monkeypatch.setattr(attendance_utils, "ATTENDANCE_TZ", ZoneInfo("Asia/Kolkata"))

    def _pin(instant: datetime) -> None:
        monkeypatch.setattr(attendance_utils, "datetime", pinned_clock(instant))

    return _pin


@pytest.fixture
def sweep(monkeypatch):
    mock = AsyncMock(return_value=3)
    monkeypatch.setattr(attendance_cron, "mark_holiday_for_all", mock)
    return mock


def employee(user_id: str) -> dict:
    return {"user_id": user_id, "name": f"Employee {user_id}", "email": f"{user_id.lower()}@example.com", "role": "TEACHER"}


class TestSundayHoliday:
    async def test_runs_on_sunday_in_attendance_zone_from_utc_host(self, at_utc, sweep) -> None:
        # Sunday 00:00 Asia/Kolkata is still Saturday 18:30 on a UTC host
        at_utc(datetime(2026, 10, 17, 18, 30, tzinfo=timezone.utc))

        count = await attendance_cron.mark_sunday_holiday()

        assert count == 3
        day, notes = sweep.await_args.args
        assert day == datetime(2026, 10, 18)
        assert notes == "Weekly holiday"

    async def test_skips_other_days(self, sweep) -> None:
        count = await attendance_cron.mark_sunday_holiday(datetime(2026, 10, 17, 12, 0))

        assert count == 0
        sweep.assert_not_awaited()

    async def test_failure_is_logged_and_reported_as_zero(self, sweep) -> None:
        sweep.side_effect = RuntimeError("connection reset")

        assert await attendance_cron.mark_sunday_holiday(datetime(2026, 10, 18)) == 0


class TestAbsentSweep:
    async def test_marks_the_attendance_day_as_absent(self, at_utc, sweep) -> None:
        # 23:59 Asia/Kolkata is 18:29 UTC on the same calendar day
        at_utc(datetime(2026, 10, 16, 18, 29, tzinfo=timezone.utc))

        await attendance_cron.mark_absentees()

        day, notes = sweep.await_args.args
        assert day == datetime(2026, 10, 16)
        assert notes == "Auto-marked absent"
        assert sweep.await_args.kwargs["status"] == AttendanceStatus.ABSENT


class TestSchedule:
    def test_jobs_fire_in_scheduler_time_zone(self) -> None:
        scheduler = attendance_cron.register_jobs(AsyncIOScheduler(timezone="Asia/Kolkata"))

        jobs = {job.id: job for job in scheduler.get_jobs()}

        assert set(jobs) == {"attendance_absent_sweep", "attendance_sunday_holiday"}
        sunday = {field.name: str(field) for field in jobs["attendance_sunday_holiday"].trigger.fields}
        assert sunday["day_of_week"] == "sun"
        assert sunday["hour"] == "0"
        absent = {field.name: str(field) for field in jobs["attendance_absent_sweep"].trigger.fields}
        assert (absent["hour"], absent["minute"]) == ("23", "59")


class TestMarkHolidayForAll:
    @pytest.fixture
    def db(self, fake_db, cursor_of, monkeypatch):
        monkeypatch.setattr(admin_attendance_service, "db", fake_db)
        fake_db.users.find.return_value = cursor_of([employee("E1"), employee("E2"), employee("E3")])
        return fake_db

    async def test_existing_records_are_never_overwritten(self, db) -> None:
        db.teacher_attendance.distinct.return_value = ["E1"]

        count = await admin_attendance_service.mark_holiday_for_all(datetime(2026, 10, 18), "Weekly holiday")

        assert count == 2
        inserted = [call.args[0] for call in db.teacher_attendance.insert_one.await_args_list]
        assert [doc["employee_id"] for doc in inserted] == ["E2", "E3"]
        assert all(doc["status"] == AttendanceStatus.HOLIDAY for doc in inserted)
        assert inserted[0]["metadata"]["source"] == "system"
        db.teacher_attendance.update_one.assert_not_awaited()

    async def test_record_created_meanwhile_does_not_stop_the_batch(self, db) -> None:
        db.teacher_attendance.insert_one.side_effect = [None, DuplicateKeyError("E2 already marked"), None]

        count = await admin_attendance_service.mark_holiday_for_all(datetime(2026, 10, 18), "Weekly holiday")

        assert count == 2
        assert db.teacher_attendance.insert_one.await_count == 3

    async def test_holiday_endpoint_reports_created_count(self, db, admin_user, monkeypatch) -> None:
        monkeypatch.setattr(admin_attendance_service, "log_audit", AsyncMock())
        db.teacher_attendance.insert_one.side_effect = [DuplicateKeyError("E1 already marked"), None, None]

        result = await admin_attendance_service.mark_holiday(admin_user, "2026-01-26", "Republic Day")

        assert result["count"] == 2
        assert result["message"] == "Marked 2 employees as HOLIDAY for Mon Jan 26 2026"
