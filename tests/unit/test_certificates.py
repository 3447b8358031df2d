"""Unit tests for certificate identifiers, verification views and rendering."""

import re
from datetime import datetime

from app.certificates.certificate_models import (
    assignment_stats,
    certificate_verification_url,
    collect_certificates,
    course_stats,
    format_enrollment,
    format_submission,
    generate_certificate_id,
)
from app.certificates.certificate_render import (
    certificate_path,
    grade_line,
    render_course_certificate,
    write_course_certificate,
)
from app.config import FRONTEND_URL
from app.qr_codes import make_qr_data_url


def submission_view(percentage: float, submission_id: str = "SUB_1", day: int = 1) -> dict:
    return {
        "submission_id": submission_id,
        "assignment_id": "ASG_1",
        "assignment_title": "Loops",
        "obtained_marks": percentage / 10,
        "total_marks": 10,
        "percentage": percentage,
        "status": "EVALUATED",
        "submitted_at": datetime(2024, 3, day),
    }


def enrollment_view(**overrides) -> dict:
    view = {
        "enrollment_id": "ENR_1",
        "course_id": "CRS_1",
        "course_title": "Data Structures",
        "credits": 4,
        "status": "completed",
        "grade": "A",
        "percentage": 88,
        "completion_date": datetime(2024, 5, 1),
        "certificate_issued": True,
        "certificate_id": "NX-CERT-2024-ABC123",
        "certificate_url": "/uploads/certificates/NX-CERT-2024-ABC123.pdf",
    }
    view.update(overrides)
    return view


class TestIdentifiers:
    def test_certificate_id_format(self) -> None:
        certificate_id = generate_certificate_id(datetime(2024, 6, 1))
        assert re.fullmatch(r"NX-CERT-2024-[0-9A-F]{6}", certificate_id)

    def test_verification_url(self) -> None:
        assert certificate_verification_url("NX-CERT-2024-ABC123") == f"{FRONTEND_URL}/verify/cert/NX-CERT-2024-ABC123"


class TestVerificationView:
    def test_format_submission_defaults(self) -> None:
        view = format_submission(
            {"submission_id": "SUB_1", "assignment_id": "ASG_X", "total_score": 4, "status": "SUBMITTED"},
            None,
            None,
        )

        assert view["assignment_title"] == "Unknown Assignment"
        assert view["classroom_name"] == "Unknown Class"
        assert view["percentage"] == 0.0

    def test_assignment_stats(self) -> None:
        stats = assignment_stats([submission_view(80), {**submission_view(40), "status": "SUBMITTED"}])

        assert stats["total_assignments"] == 2
        assert stats["evaluated_count"] == 1
        assert stats["submitted_count"] == 1
        assert stats["average_score"] == 60.0
        assert stats["total_possible_marks"] == 20
        assert assignment_stats([])["average_score"] == 0

    def test_course_stats_and_enrollment_view(self) -> None:
        view = format_enrollment(
            {"enrollment_id": "ENR_1", "course_id": "CRS_1", "status": "in_progress", "progress": {"overall_progress": 40}},
            {"title": "Algebra", "code": "MATUGAL1234", "credits": 3},
        )

        assert view["course_title"] == "Algebra"
        assert view["progress"] == 40
        assert view["certificate_issued"] is False
        assert course_stats([view, {**view, "status": "completed"}]) == {
            "total_enrolled": 2, "completed": 1, "in_progress": 1, "dropped": 0,
        }


class TestCollectCertificates:
    def test_merges_stored_achievements_and_courses_newest_first(self) -> None:
        stored = [
            {"certificate_id": "NX-CERT-2024-000001", "type": "ACHIEVEMENT", "title": "Hackathon",
             "issue_date": datetime(2024, 4, 1), "is_public": True},
            {"certificate_id": "NX-CERT-2024-000002", "type": "ACHIEVEMENT", "title": "Private",
             "issue_date": datetime(2024, 4, 2), "is_public": False},
        ]
        submissions = [submission_view(70, "SUB_1", day=2), submission_view(69.9, "SUB_2", day=3)]

        certificates = collect_certificates(stored, submissions, [enrollment_view()])

        assert [c["certificate_id"] for c in certificates] == [
            "NX-CERT-2024-ABC123", "NX-CERT-2024-000001", "sub_SUB_1",
        ]
        achievement = certificates[-1]
        assert achievement["title"] == "Achievement: Loops"
        assert achievement["description"] == "Scored 7.0/10 (70%)"
        assert certificates[0]["description"] == "Completed Data Structures with A"

    def test_course_without_certificate_id_and_grade(self) -> None:
        certificates = collect_certificates([], [], [
            enrollment_view(certificate_id=None, grade=None),
            enrollment_view(enrollment_id="ENR_2", status="in_progress"),
        ])

        assert len(certificates) == 1
        assert certificates[0]["certificate_id"] == "course_ENR_1"
        assert certificates[0]["description"] == "Completed Data Structures with Pass"


class TestRendering:
    def test_grade_line(self) -> None:
        assert grade_line("A", 85) == "Grade: A  |  Score: 85%"
        assert grade_line(None, 0) == "Score: 0%"
        assert grade_line(None, None) == ""

    def test_render_returns_pdf_bytes(self) -> None:
        pdf = render_course_certificate(
            student_name="Ravi Kumar",
            course_name="Data Structures",
            certificate_id="NX-CERT-2024-ABC123",
            grade="A",
            percentage=88,
            duration="2 semesters",
        )

        assert pdf.startswith(b"%PDF")

    def test_write_course_certificate(self, tmp_path) -> None:
        url, filepath = write_course_certificate(
            "NX-CERT-2024-ABC123",
            directory=str(tmp_path),
            student_name="Ravi Kumar",
            course_name="Data Structures",
        )

        assert url == "/uploads/certificates/NX-CERT-2024-ABC123.pdf"
        assert filepath == certificate_path("NX-CERT-2024-ABC123", str(tmp_path))
        with open(filepath, "rb") as f:
            assert f.read(4) == b"%PDF"

    def test_qr_data_url(self) -> None:
        assert make_qr_data_url("https://example.com/verify/NX24GENABC123").startswith("data:image/png;base64,")
