"""Unit tests for assignment grading rules.

Covers question validation, MCQ auto-grading and the teacher evaluation merge.
"""

import pytest
from fastapi import HTTPException

from app.teachers.grading import (
    evaluation_summary,
    grade_on_submit,
    is_mcq_answer_correct,
    merge_evaluation,
    normalize_questions,
    percentage_of,
    score_distribution,
)


def mcq(question_id: str = "Q1", marks: float = 2, correct: int = 1) -> dict:
    return {
        "question_id": question_id,
        "question_text": "Pick one",
        "type": "MCQ",
        "marks": marks,
        "options": [{"text": "A"}, {"text": "B"}, {"text": "C"}],
        "correct_answer_index": correct,
    }


def text_question(question_id: str = "Q2", marks: float = 5) -> dict:
    return {
        "question_id": question_id,
        "question_text": "Explain",
        "type": "TEXT",
        "marks": marks,
    }


class TestNormalizeQuestions:
    """Tests for question validation before storage."""

    def test_cleans_mcq_options_and_sets_order(self) -> None:
        questions = [
            {"type": "MCQ", "marks": 3, "options": ["  yes ", "", {"text": "no"}], "correct_answer_index": 1},
            {"type": "TEXT", "marks": 7, "options": ["ignored"]},
        ]

        cleaned = normalize_questions(questions, 10)

        assert cleaned[0]["options"] == [{"text": "yes"}, {"text": "no"}]
        assert cleaned[0]["order"] == 1
        assert cleaned[1]["options"] == []
        assert cleaned[1]["correct_answer_index"] is None
        assert cleaned[1]["order"] == 2

    def test_rejects_empty_list(self) -> None:
        with pytest.raises(HTTPException) as exc:
            normalize_questions([], 10)
        assert exc.value.status_code == 400

    def test_rejects_mcq_with_single_option(self) -> None:
        questions = [{"type": "MCQ", "marks": 5, "options": ["only", " "], "correct_answer_index": 0}]

        with pytest.raises(HTTPException) as exc:
            normalize_questions(questions, 5)
        assert "at least 2 options" in exc.value.detail

    def test_rejects_out_of_range_correct_index(self) -> None:
        questions = [{"type": "MCQ", "marks": 5, "options": ["a", "b"], "correct_answer_index": 2}]

        with pytest.raises(HTTPException) as exc:
            normalize_questions(questions, 5)
        assert "invalid correct answer index" in exc.value.detail

    def test_rejects_non_positive_marks(self) -> None:
        with pytest.raises(HTTPException):
            normalize_questions([{"type": "TEXT", "marks": 0}], 0)

    def test_rejects_code_test_cases_above_question_marks(self) -> None:
        questions = [{"type": "CODE", "marks": 4, "test_cases": [{"marks": 3}, {"marks": 2}]}]

        with pytest.raises(HTTPException) as exc:
            normalize_questions(questions, 4)
        assert "test case marks" in exc.value.detail

    def test_rejects_marks_not_matching_total(self) -> None:
        with pytest.raises(HTTPException) as exc:
            normalize_questions([{"type": "TEXT", "marks": 4}], 5)
        assert exc.value.detail == "Total marks must equal sum of question marks"


class TestAutoGrading:
    """Tests for MCQ grading on submit."""

    def test_mcq_accepts_index_or_option_text(self) -> None:
        question = mcq(correct=1)

        assert is_mcq_answer_correct(question, "1") is True
        assert is_mcq_answer_correct(question, "B") is True
        assert is_mcq_answer_correct(question, "0") is False
        assert is_mcq_answer_correct(question, "A") is False
        assert is_mcq_answer_correct(question, None) is False

    def test_grade_on_submit_scores_only_mcq(self) -> None:
        questions = [mcq("Q1", marks=2, correct=0), text_question("Q2", marks=5)]
        answers = [
            {"question_id": "Q1", "answer": "A"},
            {"question_id": "Q2", "answer": "Because"},
            {"question_id": "UNKNOWN", "answer": "x"},
        ]

        graded, total = grade_on_submit(questions, answers)

        assert total == 2
        assert len(graded) == 2
        assert graded[0]["is_correct"] is True
        assert graded[0]["awarded_marks"] == 2
        assert graded[1]["is_correct"] is None
        assert graded[1]["awarded_marks"] == 0


class TestMergeEvaluation:
    """Tests for applying a teacher's evaluation."""

    def test_total_is_sum_of_all_answers(self) -> None:
        questions = [mcq("Q1", marks=2, correct=0), text_question("Q2", marks=5)]
        stored = [
            {"question_id": "Q1", "answer": "A", "awarded_marks": 2, "is_correct": True},
            {"question_id": "Q2", "answer": "text", "awarded_marks": 0, "is_correct": None},
        ]
        updates = [{"question_id": "Q2", "awarded_marks": 4, "teacher_comment": "Good"}]

        merged, total, results = merge_evaluation(questions, stored, updates, 7)

        assert total == 6
        assert merged[0]["awarded_marks"] == 2
        assert merged[1]["awarded_marks"] == 4
        assert merged[1]["teacher_comment"] == "Good"
        assert [r["question_id"] for r in results] == ["Q2"]

    def test_mcq_override_is_full_or_zero(self) -> None:
        questions = [mcq("Q1", marks=2, correct=0)]
        stored = [{"question_id": "Q1", "answer": "A", "awarded_marks": 2, "is_correct": True}]

        merged, total, _ = merge_evaluation(questions, stored, [{"question_id": "Q1", "is_correct": False}], 2)

        assert merged[0]["awarded_marks"] == 0
        assert total == 0

    def test_rejects_marks_above_question_marks(self) -> None:
        questions = [text_question("Q2", marks=5)]
        stored = [{"question_id": "Q2", "answer": "text", "awarded_marks": 0}]

        with pytest.raises(HTTPException) as exc:
            merge_evaluation(questions, stored, [{"question_id": "Q2", "awarded_marks": 6}], 5)
        assert exc.value.status_code == 400

    def test_summary_counts_correct_and_incorrect(self) -> None:
        results = [{"is_correct": True}, {"is_correct": False}, {"is_correct": None}]

        summary = evaluation_summary(6, 8, results)

        assert summary["percentage"] == 75.0
        assert summary["correct_count"] == 1
        assert summary["incorrect_count"] == 1


class TestScoreBands:
    def test_distribution_boundaries(self) -> None:
        assert score_distribution([80, 79.9, 60, 40, 39.9]) == {
            "excellent": 1,
            "good": 2,
            "average": 1,
            "poor": 1,
        }

    def test_percentage_of_zero_total(self) -> None:
        assert percentage_of(5, 0) == 0.0
        assert percentage_of(1, 3) == 33.33
