"""
Assignment grading rules
Question validation, MCQ auto-grading on submit and the teacher evaluation merge
"""

from typing import List, Dict, Optional, Tuple
from fastapi import HTTPException
from app.teachers.teacher_models import QuestionType

# ==================== QUESTION VALIDATION ====================

def normalize_questions(questions: List[dict], total_marks: float) -> List[dict]:
    """
    Validate and clean a question list before it is stored

    - MCQ options are reduced to non-empty strings, at least two must remain
    - the correct answer index must point at a remaining option
    - CODE test case marks may not exceed the question marks
    - question marks must add up to total_marks

    Raises:
        400: Any rule above is violated
    """
    if not questions:
        raise HTTPException(status_code=400, detail="At least one question is required")

    cleaned = []
    marks_sum = 0.0

    for index, q in enumerate(questions, start=1):
        q = dict(q)
        marks = q.get("marks")

        if not isinstance(marks, (int, float)) or isinstance(marks, bool) or marks <= 0:
            raise HTTPException(status_code=400, detail=f"Question {index}: marks must be a positive number")

        q_type = q.get("type")
        q_type = q_type.value if isinstance(q_type, QuestionType) else q_type

        if q_type == QuestionType.MCQ.value:
            options = []
            for opt in q.get("options") or []:
                text = opt.get("text") if isinstance(opt, dict) else opt
                if isinstance(text, str) and text.strip():
                    options.append({"text": text.strip()})

            if len(options) < 2:
                raise HTTPException(status_code=400, detail=f"Question {index}: MCQ must have at least 2 options")

            correct = q.get("correct_answer_index")
            if not isinstance(correct, int) or correct < 0 or correct >= len(options):
                raise HTTPException(status_code=400, detail=f"Question {index}: invalid correct answer index")

            q["options"] = options
            q["test_cases"] = []

        elif q_type == QuestionType.CODE.value:
            test_cases = q.get("test_cases") or []
            tc_marks = sum((tc.get("marks") or 0) for tc in test_cases)
            if tc_marks > marks:
                raise HTTPException(
                    status_code=400,
                    detail=f"Question {index}: test case marks exceed question marks"
                )
            q["options"] = []
            q["correct_answer_index"] = None

        else:
            q["options"] = []
            q["correct_answer_index"] = None
            q["test_cases"] = []

        q["type"] = q_type
        q["order"] = index
        marks_sum += marks
        cleaned.append(q)

    if abs(marks_sum - float(total_marks)) > 1e-9:
        raise HTTPException(status_code=400, detail="Total marks must equal sum of question marks")

    return cleaned

# ==================== AUTO-GRADING ====================

def is_mcq_answer_correct(question: dict, answer: Optional[str]) -> bool:
    """An MCQ answer may be the option index or the option text"""
    if answer is None:
        return False

    correct_index = question.get("correct_answer_index")
    options = question.get("options") or []

    try:
        return int(str(answer).strip()) == correct_index
    except ValueError:
        pass

    if correct_index is None or correct_index >= len(options):
        return False

    return str(answer).strip() == options[correct_index].get("text")


def grade_on_submit(questions: List[dict], answers: List[dict]) -> Tuple[List[dict], float]:
    """
    Build stored answers for a fresh submission

    MCQ answers are graded immediately; TEXT and CODE wait for the teacher.
    Unknown question ids are ignored.
    """
    by_id = {q["question_id"]: q for q in questions}
    graded = []
    total = 0.0

    for a in answers:
        question = by_id.get(a.get("question_id"))
        if not question:
            continue

        entry = {
            "question_id": question["question_id"],
            "answer": a.get("answer"),
            "awarded_marks": 0,
            "teacher_comment": None,
            "is_correct": None,
        }

        if question["type"] == QuestionType.MCQ.value:
            correct = is_mcq_answer_correct(question, a.get("answer"))
            entry["is_correct"] = correct
            if correct:
                entry["awarded_marks"] = question["marks"]
                total += question["marks"]

        graded.append(entry)

    return graded, total

# ==================== TEACHER EVALUATION ====================

def merge_evaluation(
    questions: List[dict],
    stored_answers: List[dict],
    updates: List[dict],
    total_marks: float
) -> Tuple[List[dict], float, List[dict]]:
    """
    Apply a teacher's evaluation to the stored answers

    MCQ: is_correct from the teacher wins, otherwise the answer is re-checked;
    awarded marks are always full or zero. TEXT/CODE: the teacher's marks must
    lie within [0, question marks]. Answers the teacher did not touch keep
    their current marks.

    Returns:
        (answers, total_score, results for the answers that were evaluated)

    Raises:
        400: Marks out of range or total above the assignment's marks
    """
    by_id = {q["question_id"]: q for q in questions}
    update_by_id = {u["question_id"]: u for u in updates}

    merged = []
    results = []

    for existing in stored_answers:
        existing = dict(existing)
        question = by_id.get(existing["question_id"])
        update = update_by_id.get(existing["question_id"])

        if not update or not question:
            merged.append(existing)
            continue

        is_correct = update.get("is_correct")

        if question["type"] == QuestionType.MCQ.value:
            if is_correct is None:
                is_correct = is_mcq_answer_correct(question, existing.get("answer"))
            awarded = question["marks"] if is_correct else 0
        else:
            awarded = float(update.get("awarded_marks") or 0)
            if awarded < 0 or awarded > question["marks"]:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid marks for question: {question['question_text']}"
                )

        existing["awarded_marks"] = awarded
        existing["teacher_comment"] = update.get("teacher_comment") or ""
        existing["is_correct"] = is_correct
        merged.append(existing)

        results.append({
            "question_id": question["question_id"],
            "question_text": question["question_text"],
            "type": question["type"],
            "student_answer": existing.get("answer"),
            "awarded_marks": awarded,
            "max_marks": question["marks"],
            "is_correct": is_correct,
        })

    total = sum(a.get("awarded_marks") or 0 for a in merged)

    if total > total_marks:
        raise HTTPException(status_code=400, detail="Total score exceeds assignment marks")

    return merged, total, results


def evaluation_summary(total_score: float, total_marks: float, results: List[dict]) -> dict:
    return {
        "total_score": total_score,
        "max_score": total_marks,
        "percentage": round(total_score / total_marks * 100, 2) if total_marks else 0,
        "results": results,
        "correct_count": len([r for r in results if r["is_correct"] is True]),
        "incorrect_count": len([r for r in results if r["is_correct"] is False]),
    }

# ==================== SCORE BANDS ====================

def score_distribution(scores: List[float]) -> Dict[str, int]:
    """excellent >= 80, good 60-79, average 40-59, poor < 40"""
    distribution = {"excellent": 0, "good": 0, "average": 0, "poor": 0}
    for s in scores:
        if s >= 80:
            distribution["excellent"] += 1
        elif s >= 60:
            distribution["good"] += 1
        elif s >= 40:
            distribution["average"] += 1
        else:
            distribution["poor"] += 1
    return distribution


def percentage_of(score: float, total: float) -> float:
    return round(score / total * 100, 2) if total else 0.0
