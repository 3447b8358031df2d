"""Unit tests for teacher removal and leave decisions."""

from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException

from app.admin import people_service


@pytest.fixture
def db(fake_db, monkeypatch):
    monkeypatch.setattr(people_service, "db", fake_db)
    monkeypatch.setattr(people_service, "log_audit", AsyncMock())
    return fake_db


def teacher_with_leave(status: str = "PENDING", days: int = 2) -> dict:
    return {
        "user_id": "USR_T",
        "role": "TEACHER",
        "employee_record": {
            "leaves": {
                "total": 12,
                "taken": 0,
                "remaining": 12,
                "records": [{"leave_id": "LV_1", "days": days, "status": status}],
            }
        },
    }


class TestDeleteTeacher:
    async def test_active_classrooms_block_delete(self, db, admin_user) -> None:
        db.users.find_one.return_value = {"user_id": "USR_T", "role": "TEACHER"}
        db.classrooms.count_documents.return_value = 2

        with pytest.raises(HTTPException) as exc:
            await people_service.delete_teacher(admin_user, "USR_T")

        assert exc.value.status_code == 400
        assert "2 active classroom(s)" in exc.value.detail
        db.users.delete_one.assert_not_awaited()

    async def test_inactive_classrooms_are_detached(self, db, admin_user) -> None:
        db.users.find_one.return_value = {"user_id": "USR_T", "role": "TEACHER"}

        result = await people_service.delete_teacher(admin_user, "USR_T")

        assert result == {"message": "Teacher deleted successfully"}
        query, update = db.classrooms.update_many.await_args.args
        assert query == {"teacher_id": "USR_T"}
        assert update["$set"]["teacher_id"] is None
        assert update["$set"]["status"] == "INACTIVE"
        db.users.delete_one.assert_awaited_once_with({"user_id": "USR_T"})

    async def test_unknown_teacher_is_404(self, db, admin_user) -> None:
        with pytest.raises(HTTPException) as exc:
            await people_service.delete_teacher(admin_user, "USR_X")
        assert exc.value.detail == "Teacher not found"


class TestDecideLeave:
    async def test_approval_moves_days_to_taken(self, db, admin_user) -> None:
        db.users.find_one.return_value = teacher_with_leave(days=3)

        result = await people_service.decide_leave(admin_user, "USR_T", "LV_1", "APPROVED")

        assert result == {"message": "Leave approved successfully"}
        update = db.users.update_one.await_args.args[1]
        assert update["$set"]["employee_record.leaves.records.$.status"] == "APPROVED"
        assert update["$inc"] == {"employee_record.leaves.taken": 3, "employee_record.leaves.remaining": -3}

    async def test_rejection_leaves_balance_alone(self, db, admin_user) -> None:
        db.users.find_one.return_value = teacher_with_leave()

        await people_service.decide_leave(admin_user, "USR_T", "LV_1", "REJECTED")

        assert "$inc" not in db.users.update_one.await_args.args[1]

    async def test_decided_leave_cannot_change(self, db, admin_user) -> None:
        db.users.find_one.return_value = teacher_with_leave(status="APPROVED")

        with pytest.raises(HTTPException) as exc:
            await people_service.decide_leave(admin_user, "USR_T", "LV_1", "REJECTED")

        assert exc.value.status_code == 400
        assert exc.value.detail == "Leave already approved"

    async def test_unknown_leave_is_404(self, db, admin_user) -> None:
        db.users.find_one.return_value = teacher_with_leave()

        with pytest.raises(HTTPException) as exc:
            await people_service.decide_leave(admin_user, "USR_T", "LV_X", "APPROVED")
        assert exc.value.status_code == 404
