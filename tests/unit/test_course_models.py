"""Unit tests for course codes, derived views and enrollment bookkeeping."""

import re
from datetime import datetime

import pytest
from pydantic import ValidationError

from app.courses.course_models import (
    enrollment_stat_changes,
    enrollment_status,
    format_duration,
    generate_course_code,
    generate_short_code,
    push_version,
    slugify,
    with_course_views,
)
from app.courses.course_schemas import CourseCreate, EnrollStudentsRequest
from app.public.public_service import build_search_query


class TestCodes:
    def test_course_code_layout(self) -> None:
        assert re.fullmatch(r"COMUGDA\d{4}", generate_course_code("Computer Science", "undergraduate", "Data Structures"))
        assert re.fullmatch(r"MATPGAL\d{4}", generate_course_code("Mathematics", "postgraduate", "Algebra II"))
        assert re.fullmatch(r"PHYPHDQU\d{4}", generate_course_code("Physics", "doctorate", "Quantum"))
        # Digits and spaces in the title are skipped
        assert re.fullmatch(r"CHEDIPDM\d{4}", generate_course_code("Chemistry", "diploma", "3D Modelling"))

    def test_short_code(self) -> None:
        assert generate_short_code("Computer Science", "undergraduate", 4) == "CO104"
        assert generate_short_code("Mathematics", "postgraduate", 12) == "MA212"
        assert generate_short_code("Physics", "certificate", 2) == "PH302"

    def test_slugify(self) -> None:
        assert slugify("  Data Science & AI ") == "data-science-ai"


class TestDerivedViews:
    def test_format_duration(self) -> None:
        assert format_duration({"value": 2.0, "unit": "semesters"}) == "2 semesters"
        assert format_duration({"value": 1.5, "unit": "years"}) == "1.5 years"
        assert format_duration(None) is None

    def test_enrollment_status(self) -> None:
        assert enrollment_status({"max_students": None}) == "unlimited"
        assert enrollment_status({"max_students": 40, "enrollment_stats": {"current_enrolled": 10}}) == {
            "enrolled": 10, "max": 40, "percentage": 25.0, "seats_left": 30,
        }

    def test_with_course_views(self) -> None:
        course = with_course_views({"code": "COMUGDA1234", "title": "Data Structures", "duration": {"value": 1, "unit": "years"}})

        assert course["formatted_code"] == "COMUGDA1234 - Data Structures"
        assert course["duration_formatted"] == "1 years"
        assert course["enrollment_status"] == "unlimited"


class TestVersioning:
    def test_push_version_keeps_last_five(self) -> None:
        now = datetime(2024, 1, 1)
        course = {
            "_id": "mongo",
            "course_id": "CRS_1",
            "title": "Old",
            "version": 7,
            "previous_versions": [{"version": v} for v in range(1, 7)],
        }

        version, history = push_version(course, "USR_ADMIN", now)

        assert version == 8
        assert len(history) == 5
        assert [h["version"] for h in history] == [3, 4, 5, 6, 7]
        assert history[-1]["data"] == {"course_id": "CRS_1", "title": "Old", "version": 7}
        assert history[-1]["updated_by"] == "USR_ADMIN"
        assert history[-1]["updated_at"] == now

    def test_first_update_starts_history(self) -> None:
        version, history = push_version({"course_id": "CRS_1"}, None)
        assert version == 2
        assert history[0]["version"] == 1


class TestEnrollmentStatChanges:
    @pytest.mark.parametrize(
        "old, new, expected",
        [
            ("enrolled", "enrolled", {}),
            ("enrolled", "in_progress", {}),
            ("enrolled", "completed", {
                "enrollment_stats.completed_count": 1,
                "enrollment_stats.current_enrolled": -1,
            }),
            ("in_progress", "dropped", {
                "enrollment_stats.dropped_count": 1,
                "enrollment_stats.current_enrolled": -1,
            }),
            ("enrolled", "failed", {"enrollment_stats.current_enrolled": -1}),
            ("completed", "in_progress", {
                "enrollment_stats.completed_count": -1,
                "enrollment_stats.current_enrolled": 1,
            }),
            ("dropped", "completed", {
                "enrollment_stats.completed_count": 1,
                "enrollment_stats.dropped_count": -1,
            }),
        ],
    )
    def test_transitions(self, old: str, new: str, expected: dict) -> None:
        assert enrollment_stat_changes(old, new) == expected


class TestSchemas:
    def test_unknown_department_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CourseCreate(
                title="Data Structures",
                description="Core course",
                department="Astrology",
                level="undergraduate",
                credits=4,
                duration={"value": 2, "unit": "semesters"},
            )

    def test_course_defaults(self) -> None:
        course = CourseCreate(
            title="Data Structures",
            description="Core course",
            department="Computer Science",
            level="undergraduate",
            credits=4,
            duration={"value": 2},
        )

        assert course.status.value == "draft"
        assert course.fee.currency == "INR"
        assert course.duration.unit.value == "semesters"

    def test_enroll_requires_students(self) -> None:
        with pytest.raises(ValidationError):
            EnrollStudentsRequest(student_ids=[])


class TestPublicSearch:
    def test_query_escapes_regex_and_bounds_price(self) -> None:
        query = build_search_query(q="C++", department="Computer Science", min_price=0, max_price=5000)

        assert query["status"] == "published"
        assert query["$or"][0] == {"title": {"$regex": r"C\+\+", "$options": "i"}}
        assert query["department"] == "Computer Science"
        assert query["fee.amount"] == {"$gte": 0, "$lte": 5000}

    def test_empty_query_only_filters_published(self) -> None:
        assert build_search_query() == {"status": "published"}
