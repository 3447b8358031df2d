from datetime import datetime
from typing import List
import logging
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError
from app.database import db, generate_id
from app.students.student_permissions import StudentContext, check_can_submit
from app.teachers.teacher_models import (
    Submission, SubmissionStatus, StudentAssignmentStatus, QuestionType
)
from app.teachers.grading import grade_on_submit, percentage_of
from app.teachers.teacher_service import get_assignment_questions
from app.classrooms.classroom_models import ClassroomStatus
from app.common_audit import log_audit

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

async def _joined_classrooms(student: StudentContext) -> List[dict]:
    cursor = db.classrooms.find({"students": student.user_id}, {"_id": 0})
    return await cursor.to_list(length=None)

async def _published_assignments(classroom_ids: List[str]) -> List[dict]:
    cursor = db.assignments.find(
        {"classroom_id": {"$in": classroom_ids}, "is_published": True},
        {"_id": 0}
    ).sort("deadline", 1)
    return await cursor.to_list(length=None)

async def _my_submissions(student: StudentContext) -> dict:
    cursor = db.submissions.find({"student_id": student.user_id}, {"_id": 0})
    return {s["assignment_id"]: s for s in await cursor.to_list(length=None)}

def assignment_status(assignment: dict, submission: dict = None, now: datetime = None) -> str:
    """PENDING, SUBMITTED, EVALUATED or MISSED for one student"""
    if submission:
        if submission.get("status") == SubmissionStatus.EVALUATED.value:
            return StudentAssignmentStatus.EVALUATED.value
        return StudentAssignmentStatus.SUBMITTED.value

    now = now or datetime.utcnow()
    deadline = assignment.get("deadline")
    if deadline and now > deadline:
        return StudentAssignmentStatus.MISSED.value
    return StudentAssignmentStatus.PENDING.value

def strip_answer_key(question: dict) -> dict:
    """Remove what a student must not see before submitting"""
    q = dict(question)
    q.pop("correct_answer_index", None)
    if q.get("type") == QuestionType.CODE.value:
        q["test_cases"] = [tc for tc in q.get("test_cases", []) if not tc.get("is_hidden")]
    return q

# ==================== DASHBOARD ====================

async def get_dashboard(student: StudentContext) -> dict:
    classrooms = await _joined_classrooms(student)
    assignments = await _published_assignments([c["classroom_id"] for c in classrooms])
    submissions = await _my_submissions(student)

    evaluated = []
    performance = []
    for a in assignments:
        sub = submissions.get(a["assignment_id"])
        if sub and sub["status"] == SubmissionStatus.EVALUATED.value:
            pct = percentage_of(sub.get("total_score", 0), a["total_marks"])
            evaluated.append(pct)
            performance.append({
                "assignment_id": a["assignment_id"],
                "title": a["title"],
                "score": sub.get("total_score", 0),
                "total_marks": a["total_marks"],
                "percentage": pct,
            })

    return {
        "total_classrooms": len(classrooms),
        "total_assignments": len(assignments),
        "completed_assignments": len([a for a in assignments if a["assignment_id"] in submissions]),
        "average_score": round(sum(evaluated) / len(evaluated), 2) if evaluated else 0,
        "assignment_performance": performance,
    }

# ==================== ASSIGNMENTS ====================

async def get_my_assignments(student: StudentContext) -> List[dict]:
    classrooms = await _joined_classrooms(student)
    names = {c["classroom_id"]: c["name"] for c in classrooms}
    assignments = await _published_assignments(list(names))
    submissions = await _my_submissions(student)
    now = datetime.utcnow()

    result = []
    for a in assignments:
        sub = submissions.get(a["assignment_id"])
        result.append({
            "assignment_id": a["assignment_id"],
            "title": a["title"],
            "description": a.get("description"),
            "classroom_id": a["classroom_id"],
            "classroom_name": names.get(a["classroom_id"]),
            "total_marks": a["total_marks"],
            "start_time": a.get("start_time"),
            "deadline": a.get("deadline"),
            "status": assignment_status(a, sub, now),
            "total_score": sub.get("total_score") if sub else None,
        })

    return result

async def get_assignment_detail(assignment: dict, student: StudentContext) -> dict:
    assignment = dict(assignment)
    assignment.pop("_id", None)
    questions = await get_assignment_questions(assignment["assignment_id"])
    submission = await db.submissions.find_one(
        {"assignment_id": assignment["assignment_id"], "student_id": student.user_id},
        {"_id": 0}
    )

    can_submit, reason = check_can_submit(assignment)

    assignment["questions"] = [strip_answer_key(q) for q in questions]
    assignment["status"] = assignment_status(assignment, submission)
    assignment["can_submit"] = can_submit and submission is None
    assignment["submit_blocked_reason"] = reason
    assignment["submission"] = submission

    return assignment

async def submit_assignment(assignment: dict, student: StudentContext, answers: List[dict]) -> dict:
    """
    Store a submission; MCQ answers are graded right away

    Raises:
        400: Not open for submission or already submitted
    """
    can_submit, reason = check_can_submit(assignment)
    if not can_submit:
        raise HTTPException(status_code=400, detail=reason)

    existing = await db.submissions.find_one({
        "assignment_id": assignment["assignment_id"],
        "student_id": student.user_id
    })
    if existing:
        raise HTTPException(status_code=400, detail="You have already submitted this assignment")

    questions = await get_assignment_questions(assignment["assignment_id"])
    graded, total = grade_on_submit(questions, answers)

    submission = Submission(
        submission_id=generate_id("SUB"),
        assignment_id=assignment["assignment_id"],
        classroom_id=assignment["classroom_id"],
        student_id=student.user_id,
        answers=graded,
        total_score=total,
    )

    try:
        await db.submissions.insert_one(submission.dict())
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="You have already submitted this assignment")

    await log_audit(student, "submit_assignment", "submission", submission.submission_id, {
        "assignment_id": assignment["assignment_id"],
        "auto_score": total
    })
    logger.info("Student %s submitted %s", student.user_id, assignment["assignment_id"])

    return {
        "message": "Assignment submitted successfully",
        "submission_id": submission.submission_id,
        "total_score": total,
        "status": submission.status,
    }

# ==================== SUBMISSIONS ====================

async def get_my_submission_list(student: StudentContext) -> List[dict]:
    cursor = db.submissions.find({"student_id": student.user_id}, {"_id": 0}).sort("created_at", -1)
    submissions = await cursor.to_list(length=None)

    titles = {}
    for s in submissions:
        aid = s["assignment_id"]
        if aid not in titles:
            a = await db.assignments.find_one({"assignment_id": aid}, {"_id": 0, "title": 1, "total_marks": 1})
            titles[aid] = a or {}
        s["assignment_title"] = titles[aid].get("title")
        s["total_marks"] = titles[aid].get("total_marks")
        s["percentage"] = percentage_of(s.get("total_score", 0), titles[aid].get("total_marks", 0))

    return submissions

async def get_my_submission_detail(submission: dict) -> dict:
    submission = dict(submission)
    submission.pop("_id", None)
    assignment = await db.assignments.find_one({"assignment_id": submission["assignment_id"]}, {"_id": 0})
    questions = {q["question_id"]: q for q in await get_assignment_questions(submission["assignment_id"])}
    evaluated = submission.get("status") == SubmissionStatus.EVALUATED.value

    for ans in submission.get("answers", []):
        question = questions.get(ans["question_id"])
        # answer key stays hidden until the teacher has evaluated
        ans["question"] = question if evaluated or not question else strip_answer_key(question)

    submission["assignment_title"] = assignment.get("title") if assignment else None
    submission["total_marks"] = assignment.get("total_marks") if assignment else None
    return submission

# ==================== CLASSROOMS ====================

async def get_available_classrooms(student: StudentContext) -> List[dict]:
    cursor = db.classrooms.find(
        {"status": ClassroomStatus.ACTIVE.value, "students": {"$ne": student.user_id}},
        {"_id": 0, "students": 0}
    ).sort("created_at", -1)
    return await cursor.to_list(length=None)

async def join_classroom(student: StudentContext, code: str) -> dict:
    classroom = await db.classrooms.find_one({"invite_code": code.upper()})

    if not classroom:
        raise HTTPException(status_code=404, detail="Invalid classroom code")

    if classroom.get("status") != ClassroomStatus.ACTIVE.value:
        raise HTTPException(status_code=400, detail="Classroom is not accepting students")

    if student.user_id in classroom.get("students", []):
        raise HTTPException(status_code=400, detail="Already joined")

    await db.classrooms.update_one(
        {"classroom_id": classroom["classroom_id"]},
        {"$addToSet": {"students": student.user_id}, "$set": {"updated_at": datetime.utcnow()}}
    )
    await log_audit(student, "join_classroom", "classroom", classroom["classroom_id"])

    return {
        "message": "Joined classroom successfully",
        "classroom_id": classroom["classroom_id"],
        "name": classroom["name"],
    }

async def get_joined_classrooms(student: StudentContext) -> List[dict]:
    classrooms = await _joined_classrooms(student)
    teacher_ids = list({c.get("teacher_id") for c in classrooms if c.get("teacher_id")})
    teachers = {}
    if teacher_ids:
        cursor = db.users.find({"user_id": {"$in": teacher_ids}}, {"_id": 0, "user_id": 1, "name": 1})
        teachers = {t["user_id"]: t["name"] for t in await cursor.to_list(length=None)}

    for c in classrooms:
        c["teacher_name"] = teachers.get(c.get("teacher_id"))
        c["student_count"] = len(c.pop("students", []))

    return classrooms

async def get_classroom_detail(classroom: dict, student: StudentContext) -> dict:
    classroom = dict(classroom)
    classroom.pop("_id", None)
    classroom["student_count"] = len(classroom.pop("students", []))

    teacher = await db.users.find_one({"user_id": classroom.get("teacher_id")}, {"_id": 0, "name": 1, "email": 1})
    classroom["teacher"] = teacher

    assignments = await _published_assignments([classroom["classroom_id"]])
    submissions = await _my_submissions(student)

    classroom["assignments"] = []
    for a in assignments:
        sub = submissions.get(a["assignment_id"])
        classroom["assignments"].append({
            "assignment_id": a["assignment_id"],
            "title": a["title"],
            "total_marks": a["total_marks"],
            "deadline": a.get("deadline"),
            "submission_status": sub["status"] if sub else StudentAssignmentStatus.NOT_SUBMITTED.value,
            "total_score": sub.get("total_score") if sub else None,
        })

    return classroom
