"""Unit tests for admin attendance management against a fake database."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from app.attendance import admin_attendance_service as service
from app.attendance.attendance_models import AttendanceSource, AttendanceStatus, TeacherAttendance
from app.attendance.attendance_utils import default_shift


@pytest.fixture
def db(fake_db, monkeypatch):
    monkeypatch.setattr(service, "db", fake_db)
    monkeypatch.setattr(service, "log_audit", AsyncMock())
    return fake_db


def employee(user_id: str = "USR_T", **extra) -> dict:
    doc = {"user_id": user_id, "name": f"Teacher {user_id}", "email": f"{user_id.lower()}@example.com", "role": "TEACHER"}
    doc.update(extra)
    return doc


def blank_record(day: datetime = datetime(2024, 3, 5)) -> TeacherAttendance:
    return TeacherAttendance(
        record_id="TAT_1",
        employee_id="USR_T",
        employee_name="Teacher",
        employee_email="teacher@example.com",
        employee_role="TEACHER",
        date=day,
        day_of_week="Tuesday",
    )


class TestManualTimes:
    def test_lateness_beyond_grace_marks_late(self) -> None:
        record = blank_record()
        data = {"check_in_time": datetime(2024, 3, 5, 9, 40), "check_out_time": datetime(2024, 3, 5, 16, 30)}

        service.apply_manual_times(record, default_shift(), data, explicit_status=False)

        assert record.status == AttendanceStatus.LATE
        assert record.late_minutes == 40
        assert record.early_departure_minutes == 30
        assert record.total_work_hours == 6.83
        assert record.actual_check_in.is_within_geofence is True
        assert record.actual_check_out.start_time == datetime(2024, 3, 5, 16, 30)

    def test_explicit_status_and_values_win(self) -> None:
        record = blank_record()
        record.status = AttendanceStatus.ON_DUTY
        data = {"check_in_time": datetime(2024, 3, 5, 10, 0), "late_minutes": 5, "work_hours": 7}

        service.apply_manual_times(record, default_shift(), data, explicit_status=True)

        assert record.status == AttendanceStatus.ON_DUTY
        assert record.late_minutes == 5
        assert record.total_work_hours == 7

    def test_without_times_session_starts_at_shift_start(self) -> None:
        record = blank_record()

        service.apply_manual_times(record, default_shift(), {}, explicit_status=False)

        assert record.actual_check_in.start_time == datetime(2024, 3, 5, 9, 0)
        assert record.actual_check_out is None
        assert record.status == AttendanceStatus.PRESENT


class TestMarkAttendance:
    async def test_unknown_employee_is_404(self, db, admin_user) -> None:
        with pytest.raises(HTTPException) as exc:
            await service.mark_attendance(admin_user, {"employee_id": "USR_X", "date": datetime(2024, 3, 5)})

        assert exc.value.status_code == 404
        assert exc.value.detail == "Teacher or Faculty Admin not found"

    async def test_existing_record_is_400(self, db, admin_user) -> None:
        db.users.find_one.return_value = employee()
        db.teacher_attendance.find_one.return_value = {"record_id": "TAT_OLD"}

        with pytest.raises(HTTPException) as exc:
            await service.mark_attendance(admin_user, {"employee_id": "USR_T", "date": datetime(2024, 3, 5)})

        assert exc.value.status_code == 400
        assert exc.value.detail == "Attendance already marked for this date. Use update API instead."
        db.teacher_attendance.insert_one.assert_not_awaited()

    async def test_concurrent_insert_is_400(self, db, admin_user) -> None:
        db.users.find_one.return_value = employee()
        db.teacher_attendance.insert_one.side_effect = DuplicateKeyError("employee/date")

        with pytest.raises(HTTPException) as exc:
            await service.mark_attendance(admin_user, {"employee_id": "USR_T", "date": datetime(2024, 3, 5)})

        assert exc.value.status_code == 400

    async def test_leave_has_no_hours_or_session(self, db, admin_user) -> None:
        db.users.find_one.return_value = employee()

        result = await service.mark_attendance(
            admin_user, {"employee_id": "USR_T", "date": datetime(2024, 3, 5, 15, 0), "is_leave": True}
        )

        doc = db.teacher_attendance.insert_one.await_args.args[0]
        assert doc["status"] == AttendanceStatus.ON_LEAVE
        assert doc["total_work_hours"] == 0
        assert doc["actual_check_in"] is None
        assert doc["leave_id"].startswith("LEV_")
        assert doc["date"] == datetime(2024, 3, 5)
        assert doc["metadata"]["source"] == AttendanceSource.MANUAL_ENTRY
        assert result["attendance"]["formatted_work_hours"] == "0h"

    async def test_manual_check_in_is_recorded(self, db, admin_user) -> None:
        db.users.find_one.return_value = employee()

        await service.mark_attendance(admin_user, {
            "employee_id": "USR_T",
            "date": datetime(2024, 3, 5),
            "check_in_time": datetime(2024, 3, 5, 9, 5),
            "check_out_time": datetime(2024, 3, 5, 17, 5),
        })

        doc = db.teacher_attendance.insert_one.await_args.args[0]
        assert doc["status"] == AttendanceStatus.PRESENT
        assert doc["total_work_hours"] == 8
        assert doc["late_minutes"] == 0
        assert doc["marked_by"] == admin_user.user_id


class TestBulkMark:
    async def test_every_employee_lands_in_one_bucket(self, db, admin_user, cursor_of) -> None:
        db.users.find.return_value = cursor_of([employee("E1"), employee("E2"), employee("E4")])
        db.teacher_attendance.distinct.return_value = ["E2"]
        db.teacher_attendance.insert_one.side_effect = [None, RuntimeError("write failed")]

        result = await service.bulk_mark_attendance(admin_user, {
            "date": datetime(2024, 3, 5),
            "employee_ids": ["E1", "E2", "E3", "E4", "E1"],
        })

        results = result["results"]
        assert [r["employee_id"] for r in results["successful"]] == ["E1"]
        assert [r["employee_id"] for r in results["skipped"]] == ["E2"]
        assert results["failed"] == [
            {"employee_id": "E3", "reason": "Employee not found or invalid role"},
            {"employee_id": "E4", "reason": "write failed"},
        ]
        assert result["message"] == "Bulk attendance marked: 1 successful, 1 skipped, 2 failed"

    async def test_holiday_has_zero_hours(self, db, admin_user, cursor_of) -> None:
        db.users.find.return_value = cursor_of([employee("E1")])

        await service.bulk_mark_attendance(admin_user, {
            "date": datetime(2024, 3, 5), "employee_ids": ["E1"], "status": "HOLIDAY",
        })

        doc = db.teacher_attendance.insert_one.await_args.args[0]
        assert doc["status"] == AttendanceStatus.HOLIDAY
        assert doc["total_work_hours"] == 0
        assert doc["metadata"]["source"] == AttendanceSource.BULK_ENTRY

    async def test_present_gets_shift_working_hours(self, db, admin_user, cursor_of) -> None:
        db.users.find.return_value = cursor_of([employee("E1")])

        await service.bulk_mark_attendance(admin_user, {"date": datetime(2024, 3, 5), "employee_ids": ["E1"]})

        assert db.teacher_attendance.insert_one.await_args.args[0]["total_work_hours"] == 8


class TestRegularizationDecision:
    def pending(self, status: str = "PENDING") -> dict:
        return {
            "record_id": "TAT_1",
            "status": "ABSENT",
            "notes": "Auto-marked absent",
            "regularization_request": {
                "request_id": "REG_1",
                "status": status,
                "requested_status": "PRESENT",
                "reason": "Network outage at gate",
            },
        }

    async def test_approval_applies_requested_status(self, db, admin_user) -> None:
        db.teacher_attendance.find_one.return_value = self.pending()

        result = await service.decide_regularization(admin_user, "REG_1", "APPROVED", "Verified with CCTV")

        query, update = db.teacher_attendance.update_one.await_args.args
        assert query == {"record_id": "TAT_1"}
        changes = update["$set"]
        assert changes["status"] == "PRESENT"
        assert changes["notes"] == "Auto-marked absent [Regularized: Network outage at gate]"
        assert changes["regularization_request.approved_by"] == admin_user.user_id
        assert changes["regularization_request.admin_remarks"] == "Verified with CCTV"
        assert result["message"] == "Regularization request approved successfully"

    async def test_rejection_keeps_status(self, db, admin_user) -> None:
        db.teacher_attendance.find_one.return_value = self.pending()

        await service.decide_regularization(admin_user, "REG_1", "REJECTED")

        changes = db.teacher_attendance.update_one.await_args.args[1]["$set"]
        assert changes["regularization_request.status"] == "REJECTED"
        assert "status" not in changes
        assert "notes" not in changes

    async def test_decided_request_is_400(self, db, admin_user) -> None:
        db.teacher_attendance.find_one.return_value = self.pending(status="APPROVED")

        with pytest.raises(HTTPException) as exc:
            await service.decide_regularization(admin_user, "REG_1", "REJECTED")

        assert exc.value.status_code == 400
        assert exc.value.detail == "Request already approved"
        db.teacher_attendance.update_one.assert_not_awaited()

    async def test_unknown_request_is_404(self, db, admin_user) -> None:
        with pytest.raises(HTTPException) as exc:
            await service.decide_regularization(admin_user, "REG_X", "APPROVED")

        assert exc.value.status_code == 404


class TestCalendar:
    @pytest.mark.parametrize("month, year", [(None, 2024), (3, None), (None, None)])
    async def test_month_and_year_are_required(self, db, month, year) -> None:
        with pytest.raises(HTTPException) as exc:
            await service.get_calendar(month, year)

        assert exc.value.status_code == 400
        assert exc.value.detail == "Month and year are required"

    async def test_days_are_grouped_with_colours(self, db, cursor_of) -> None:
        db.teacher_attendance.find.return_value = cursor_of([
            {"record_id": "A", "date": datetime(2024, 3, 4), "employee_id": "E1", "employee_name": "Asha", "status": "PRESENT"},
            {"record_id": "B", "date": datetime(2024, 3, 4), "employee_id": "E2", "employee_name": "Ravi", "status": "LATE"},
            {"record_id": "C", "date": datetime(2024, 3, 5), "employee_id": "E1", "employee_name": "Asha", "status": "ON_LEAVE"},
        ])

        calendar = await service.get_calendar(3, 2024)

        assert [d["date"] for d in calendar["days"]] == ["2024-03-04", "2024-03-05"]
        assert [r["color"] for r in calendar["days"][0]["records"]] == ["#10b981", "#f59e0b"]
        assert calendar["days"][0]["records"][0]["title"] == "Asha - PRESENT"
        assert calendar["summary"]["leave"] == 1


class TestDeleteWindow:
    @pytest.fixture
    def today(self, monkeypatch):
        monkeypatch.setattr(service, "local_now", lambda: datetime(2024, 3, 31, 12, 0))

    async def test_old_record_cannot_be_deleted(self, db, admin_user, today) -> None:
        db.teacher_attendance.find_one.return_value = {"record_id": "TAT_1", "employee_id": "E1", "date": datetime(2024, 2, 20)}

        with pytest.raises(HTTPException) as exc:
            await service.delete_attendance(admin_user, "TAT_1")

        assert exc.value.status_code == 400
        assert "older than 30 days" in exc.value.detail
        db.teacher_attendance.delete_one.assert_not_awaited()

    async def test_recent_record_is_deleted(self, db, admin_user, today) -> None:
        db.teacher_attendance.find_one.return_value = {"record_id": "TAT_1", "employee_id": "E1", "date": datetime(2024, 3, 20)}

        result = await service.delete_attendance(admin_user, "TAT_1")

        assert result["message"] == "Attendance record deleted successfully"
        db.teacher_attendance.delete_one.assert_awaited_once_with({"record_id": "TAT_1"})


class TestCheckExisting:
    async def test_requires_date_and_ids(self, db) -> None:
        with pytest.raises(HTTPException) as exc:
            await service.check_existing("2024-03-05", None)

        assert exc.value.status_code == 400

    async def test_splits_comma_separated_ids(self, db) -> None:
        db.teacher_attendance.distinct.return_value = ["E2"]

        result = await service.check_existing("2024-03-05", "E1, E2,,E3")

        assert result["existing_employee_ids"] == ["E2"]
        field, query = db.teacher_attendance.distinct.await_args.args
        assert field == "employee_id"
        assert query["employee_id"] == {"$in": ["E1", "E2", "E3"]}
        assert query["date"] == {"$gte": datetime(2024, 3, 5), "$lt": datetime(2024, 3, 6)}
