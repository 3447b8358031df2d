"""Unit tests for certificate issuing and public verification against a fake database."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from app.certificates import certificate_service


@pytest.fixture
def db(fake_db, monkeypatch):
    monkeypatch.setattr(certificate_service, "db", fake_db)
    monkeypatch.setattr(certificate_service, "log_audit", AsyncMock())
    return fake_db


@pytest.fixture
def writer(monkeypatch) -> MagicMock:
    write = MagicMock(side_effect=lambda cid, **details: (f"/uploads/certificates/{cid}.pdf", f"/tmp/{cid}.pdf"))
    monkeypatch.setattr(certificate_service, "write_course_certificate", write)
    return write


class TestIssueCertificates:
    async def test_unknown_students_are_reported(self, db, admin_user, cursor_of) -> None:
        db.users.find.return_value = cursor_of([{"user_id": "S1"}])

        result = await certificate_service.issue_certificates(admin_user, {
            "student_ids": ["S1", "S2"],
            "title": "Hackathon Winner",
            "description": None,
            "type": None,
            "score": 98,
        })

        assert result["message"] == "Certificates issued successfully"
        assert [c["student_id"] for c in result["issued_certificates"]] == ["S1"]
        assert result["errors"] == [{"student_id": "S2", "message": "Student not found"}]

        pushed = db.users.update_one.await_args.args[1]["$push"]["certificates"]
        assert pushed["title"] == "Hackathon Winner"
        assert pushed["is_public"] is True
        assert pushed["qr_code"].startswith("data:image/png;base64,")
        assert pushed["metadata"] == {"score": 98, "issued_by": admin_user.user_id}

    async def test_failed_update_is_reported_per_student(self, db, admin_user, cursor_of) -> None:
        db.users.find.return_value = cursor_of([{"user_id": "S1"}])
        db.users.update_one.side_effect = RuntimeError("write failed")

        result = await certificate_service.issue_certificates(admin_user, {
            "student_ids": ["S1"], "title": "Hackathon Winner",
        })

        assert result["issued_certificates"] == []
        assert result["errors"] == [{"student_id": "S1", "message": "write failed"}]


class TestCourseCertificate:
    async def test_requires_completed_enrollment(self, db, admin_user, writer) -> None:
        db.course_enrollments.find_one.return_value = {
            "enrollment_id": "ENR_1", "student_id": "S1", "course_id": "CRS_1", "status": "in_progress",
        }

        with pytest.raises(HTTPException) as exc:
            await certificate_service.issue_course_certificate(admin_user, "ENR_1")

        assert exc.value.status_code == 400
        writer.assert_not_called()

    async def test_reuses_existing_certificate_id(self, db, admin_user, writer) -> None:
        db.course_enrollments.find_one.return_value = {
            "enrollment_id": "ENR_1",
            "student_id": "S1",
            "course_id": "CRS_1",
            "status": "completed",
            "final_grade": "A",
            "final_percentage": 91,
            "completion_date": datetime(2024, 5, 1),
            "certificate_id": "NX-CERT-2024-ABC123",
        }
        db.users.find_one.return_value = {"name": "Ravi Kumar"}
        db.courses.find_one.return_value = {"title": "Data Structures", "duration": {"value": 2, "unit": "semesters"}}

        result = await certificate_service.issue_course_certificate(admin_user, "ENR_1", "Dr. Sen")

        assert result["certificate_id"] == "NX-CERT-2024-ABC123"
        assert result["certificate_url"] == "/uploads/certificates/NX-CERT-2024-ABC123.pdf"
        assert result["verification_url"].endswith("/verify/cert/NX-CERT-2024-ABC123")

        details = writer.call_args.kwargs
        assert details["student_name"] == "Ravi Kumar"
        assert details["duration"] == "2 semesters"
        assert details["instructor_name"] == "Dr. Sen"

        update = db.course_enrollments.update_one.await_args.args[1]["$set"]
        assert update["certificate_issued"] is True
        assert update["certificate_id"] == "NX-CERT-2024-ABC123"

    async def test_missing_enrollment_is_404(self, db, admin_user, writer) -> None:
        with pytest.raises(HTTPException) as exc:
            await certificate_service.issue_course_certificate(admin_user, "ENR_X")
        assert exc.value.detail == "Enrollment not found"


class TestVerification:
    async def test_scan_is_upserted(self, db) -> None:
        await certificate_service.track_scan("NX24GENABC123", "10.0.0.1", "pytest", None)

        query, update = db.qr_scans.update_one.await_args.args
        assert query == {"unique_id": "NX24GENABC123"}
        assert update["$inc"] == {"access_count": 1}
        assert update["$push"]["access_logs"]["ip"] == "10.0.0.1"
        assert db.qr_scans.update_one.await_args.kwargs == {"upsert": True}

    async def test_verify_student_builds_record(self, db, cursor_of) -> None:
        db.users.find_one.return_value = {
            "user_id": "S1",
            "name": "Ravi Kumar",
            "unique_id": "NX24GENABC123",
            "cgpa": 8.4,
            "certificates": [],
        }
        db.submissions.find.return_value = cursor_of([{
            "submission_id": "SUB_1",
            "assignment_id": "ASG_1",
            "total_score": 8,
            "status": "EVALUATED",
            "created_at": datetime(2024, 3, 1),
        }])
        db.assignments.find.return_value = cursor_of([
            {"assignment_id": "ASG_1", "title": "Loops", "total_marks": 10, "classroom_id": "CLS_1"},
        ])
        db.classrooms.find.return_value = cursor_of([{"classroom_id": "CLS_1", "name": "CS-A"}])

        result = await certificate_service.verify_student("NX24GENABC123", "10.0.0.1")

        assert result["student"]["name"] == "Ravi Kumar"
        assert result["student"]["stats"]["average_score"] == 80.0
        assert result["student"]["stats"]["total_certificates"] == 1
        assert result["assignments"][0]["classroom_name"] == "CS-A"
        assert result["certificates"][0]["certificate_id"] == "sub_SUB_1"
        assert result["verification"]["method"] == "QR_CODE"
        assert result["verification"]["is_authentic"] is True
        db.qr_scans.update_one.assert_awaited_once()

    async def test_unknown_student_is_404(self, db) -> None:
        with pytest.raises(HTTPException) as exc:
            await certificate_service.verify_student("NOPE")

        assert exc.value.status_code == 404
        db.qr_scans.update_one.assert_not_awaited()

    async def test_private_certificate_is_hidden(self, db) -> None:
        db.users.find_one.return_value = {
            "name": "Ravi Kumar",
            "certificates": [{"certificate_id": "NX-CERT-2024-000001", "is_public": False}],
        }

        with pytest.raises(HTTPException) as exc:
            await certificate_service.get_certificate("NX-CERT-2024-000001")
        assert exc.value.status_code == 404
