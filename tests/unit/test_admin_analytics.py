"""Unit tests for admin analytics helpers."""

from datetime import datetime

from app.admin.admin_models import last_n_months, performance_grade, recommendations
from app.admin.admin_service import submission_metrics
from app.admin.people_service import attendance_trend, rank_students, safe_filename


class TestPlatformHealth:
    def test_performance_grade_bands(self) -> None:
        assert performance_grade(95) == "A+"
        assert performance_grade(80) == "A"
        assert performance_grade(70) == "B"
        assert performance_grade(60) == "C"
        assert performance_grade(50) == "D"
        assert performance_grade(49.9) == "F"

    def test_recommendations(self) -> None:
        assert recommendations(90, 90, 90, 0) == []

        tips = recommendations(50, 50, 40, 12)

        assert len(tips) == 4
        assert tips[-1] == "12 students haven't submitted any assignments"

    def test_last_n_months_crosses_year_boundary(self) -> None:
        assert last_n_months(datetime(2024, 2, 15), 4) == [
            (2023, 11), (2023, 12), (2024, 1), (2024, 2),
        ]


class TestSubmissionMetrics:
    def test_metrics_use_percentages_per_assignment(self) -> None:
        submissions = [
            {"assignment_id": "A1", "student_id": "S1", "total_score": 9, "submitted_on_time": True},
            {"assignment_id": "A2", "student_id": "S1", "total_score": 10, "submitted_on_time": False},
            {"assignment_id": "A1", "student_id": "S2", "total_score": 3},
        ]
        marks = {"A1": 10, "A2": 20}

        metrics = submission_metrics(submissions, marks, total_students=4)

        assert metrics["total_submissions"] == 3
        assert metrics["highest_percentage"] == 90.0
        assert metrics["lowest_percentage"] == 30.0
        assert metrics["average_percentage"] == 56.67
        assert metrics["on_time_submissions"] == 2
        assert metrics["late_submissions"] == 1
        assert metrics["submission_rate"] == 50.0
        assert metrics["score_distribution"] == {"excellent": 1, "good": 0, "average": 1, "poor": 1}

    def test_empty_metrics(self) -> None:
        metrics = submission_metrics([], {}, total_students=0)

        assert metrics["average_percentage"] == 0
        assert metrics["submission_rate"] == 0.0


class TestPeopleHelpers:
    def test_attendance_trend_marks_missing_days(self) -> None:
        today = datetime(2024, 3, 10, 15, 0)
        records = [
            {
                "date": datetime(2024, 3, 10),
                "status": "PRESENT",
                "total_work_hours": 8.5,
                "actual_check_in": {"start_time": "09:02"},
            },
            {"date": datetime(2024, 3, 8), "status": "LATE"},
        ]

        trend = attendance_trend(records, today, days=3)

        assert [t["date"] for t in trend] == ["2024-03-10", "2024-03-09", "2024-03-08"]
        assert [t["status"] for t in trend] == ["PRESENT", "NO_RECORD", "LATE"]
        assert trend[0]["work_hours"] == 8.5
        assert trend[0]["check_in_time"] == "09:02"
        assert trend[1]["work_hours"] == 0

    def test_rank_students(self) -> None:
        rows = [{"name": n, "average_percentage": p} for n, p in [("a", 50), ("b", 90), ("c", 70), ("d", 10)]]

        ranked = rank_students(rows, top=2)

        assert [r["name"] for r in ranked["top"]] == ["b", "c"]
        assert [r["name"] for r in ranked["bottom"]] == ["d", "a"]
        assert rank_students([]) == {"top": [], "bottom": []}

    def test_safe_filename(self) -> None:
        assert safe_filename("../../etc/passwd") == "passwd"
        assert safe_filename("offer letter (final).pdf") == "offer_letter_final_.pdf"
        assert safe_filename("") == "document"
