from datetime import datetime, timedelta
from typing import List, Optional
import logging
from fastapi import HTTPException
from app.database import db, generate_id
from app.teachers.teacher_permissions import TeacherContext
from app.teachers.teacher_models import (
    Assignment, Question, SubmissionStatus
)
from app.teachers.grading import (
    normalize_questions, merge_evaluation, evaluation_summary,
    score_distribution, percentage_of
)
from app.classrooms.classroom_models import ClassroomStatus
from app.common_audit import log_audit

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

async def _user_names(user_ids: List[str]) -> dict:
    if not user_ids:
        return {}
    cursor = db.users.find(
        {"user_id": {"$in": list(set(user_ids))}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "avatar": 1}
    )
    users = await cursor.to_list(length=None)
    return {u["user_id"]: u for u in users}

async def _store_questions(assignment_id: str, questions: List[dict]):
    docs = [
        Question(question_id=generate_id("QST"), assignment_id=assignment_id, **q).dict()
        for q in questions
    ]
    if docs:
        await db.questions.insert_many(docs)

async def get_assignment_questions(assignment_id: str) -> List[dict]:
    cursor = db.questions.find({"assignment_id": assignment_id}, {"_id": 0}).sort("order", 1)
    return await cursor.to_list(length=None)

def _submission_percentages(submissions: List[dict], marks_by_assignment: dict) -> List[float]:
    return [
        percentage_of(s.get("total_score", 0), marks_by_assignment.get(s["assignment_id"], 0))
        for s in submissions
    ]

# ==================== DASHBOARD ====================

async def get_dashboard(teacher: TeacherContext) -> dict:
    """Headline numbers for the teacher's home screen"""
    classrooms = await db.classrooms.find(
        {"teacher_id": teacher.user_id},
        {"_id": 0, "classroom_id": 1, "name": 1, "students": 1}
    ).to_list(length=None)
    classroom_ids = [c["classroom_id"] for c in classrooms]

    assignments = await db.assignments.find(
        {"created_by": teacher.user_id, "classroom_id": {"$in": classroom_ids}},
        {"_id": 0, "assignment_id": 1, "title": 1, "total_marks": 1, "created_at": 1}
    ).to_list(length=None)
    assignment_ids = [a["assignment_id"] for a in assignments]
    marks_by_assignment = {a["assignment_id"]: a["total_marks"] for a in assignments}

    question_count = await db.questions.count_documents({"assignment_id": {"$in": assignment_ids}})

    unique_students = set()
    for c in classrooms:
        unique_students.update(c.get("students", []))

    submissions = await db.submissions.find(
        {"assignment_id": {"$in": assignment_ids}},
        {"_id": 0}
    ).to_list(length=None)

    evaluated = [s for s in submissions if s["status"] == SubmissionStatus.EVALUATED.value]
    pending = [s for s in submissions if s["status"] == SubmissionStatus.SUBMITTED.value]
    evaluated_pct = _submission_percentages(evaluated, marks_by_assignment)

    expected = len(assignments) * len(unique_students)
    since = datetime.utcnow() - timedelta(days=30)

    recent = sorted(submissions, key=lambda s: s["created_at"], reverse=True)[:5]
    names = await _user_names([s["student_id"] for s in recent])
    titles = {a["assignment_id"]: a["title"] for a in assignments}

    return {
        "stats": {
            "total_classrooms": len(classrooms),
            "total_assignments": len(assignments),
            "total_questions": question_count,
            "total_students": len(unique_students),
            "total_submissions": len(submissions),
            "pending_evaluations": len(pending),
            "evaluated_count": len(evaluated),
            "average_score": round(sum(evaluated_pct) / len(evaluated_pct), 2) if evaluated_pct else 0,
            "completion_rate": round(len(submissions) / expected * 100, 2) if expected else 0,
            "submissions_last_30_days": len([s for s in submissions if s["created_at"] >= since]),
        },
        "score_distribution": score_distribution(evaluated_pct),
        "recent_submissions": [
            {
                "submission_id": s["submission_id"],
                "assignment_title": titles.get(s["assignment_id"]),
                "student_name": names.get(s["student_id"], {}).get("name"),
                "status": s["status"],
                "total_score": s.get("total_score", 0),
                "created_at": s["created_at"],
            }
            for s in recent
        ],
        "classrooms": [
            {
                "classroom_id": c["classroom_id"],
                "name": c["name"],
                "student_count": len(c.get("students", [])),
            }
            for c in classrooms
        ],
    }

async def get_teacher_analytics(teacher: TeacherContext) -> dict:
    """Per-assignment and per-classroom performance across all the teacher's work"""
    pipeline = [
        {"$match": {"created_by": teacher.user_id}},
        {"$lookup": {
            "from": "submissions",
            "localField": "assignment_id",
            "foreignField": "assignment_id",
            "as": "subs"
        }},
        {"$project": {
            "_id": 0,
            "assignment_id": 1,
            "title": 1,
            "classroom_id": 1,
            "total_marks": 1,
            "is_published": 1,
            "submission_count": {"$size": "$subs"},
            "evaluated_count": {
                "$size": {"$filter": {
                    "input": "$subs",
                    "cond": {"$eq": ["$$this.status", SubmissionStatus.EVALUATED.value]}
                }}
            },
            "average_score": {"$ifNull": [{"$avg": "$subs.total_score"}, 0]},
            "highest_score": {"$ifNull": [{"$max": "$subs.total_score"}, 0]},
            "lowest_score": {"$ifNull": [{"$min": "$subs.total_score"}, 0]},
        }},
        {"$sort": {"title": 1}}
    ]
    assignments = await db.assignments.aggregate(pipeline).to_list(None)

    by_classroom = {}
    for a in assignments:
        a["average_score"] = round(a["average_score"], 2)
        a["average_percentage"] = percentage_of(a["average_score"], a["total_marks"])
        entry = by_classroom.setdefault(a["classroom_id"], {
            "classroom_id": a["classroom_id"],
            "assignment_count": 0,
            "submission_count": 0,
            "percentages": []
        })
        entry["assignment_count"] += 1
        entry["submission_count"] += a["submission_count"]
        if a["submission_count"]:
            entry["percentages"].append(a["average_percentage"])

    classrooms = []
    for entry in by_classroom.values():
        pcts = entry.pop("percentages")
        entry["average_percentage"] = round(sum(pcts) / len(pcts), 2) if pcts else 0
        classrooms.append(entry)

    return {"assignments": assignments, "classrooms": classrooms}

# ==================== CLASSROOMS ====================

async def get_teacher_classrooms(teacher: TeacherContext) -> List[dict]:
    cursor = db.classrooms.find(
        {"teacher_id": teacher.user_id},
        {"_id": 0}
    ).sort("created_at", -1)
    classrooms = await cursor.to_list(length=None)

    for cls in classrooms:
        cls["student_count"] = len(cls.get("students", []))
        cls["assignment_count"] = await db.assignments.count_documents({
            "classroom_id": cls["classroom_id"]
        })

    return classrooms

async def get_classroom_students(classroom: dict) -> List[dict]:
    """Get all students in a classroom"""
    cursor = db.users.find(
        {"user_id": {"$in": classroom.get("students", [])}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "avatar": 1,
         "unique_id": 1, "enrollment_number": 1}
    ).sort("name", 1)
    return await cursor.to_list(length=None)

async def get_classroom_analytics(classroom: dict) -> dict:
    classroom_id = classroom["classroom_id"]
    students = await get_classroom_students(classroom)

    assignments = await db.assignments.find(
        {"classroom_id": classroom_id}, {"_id": 0}
    ).to_list(length=None)
    marks_by_assignment = {a["assignment_id"]: a["total_marks"] for a in assignments}

    submissions = await db.submissions.find(
        {"assignment_id": {"$in": list(marks_by_assignment)}}, {"_id": 0}
    ).to_list(length=None)

    total_students = len(students)
    possible = len(assignments) * total_students
    percentages = _submission_percentages(submissions, marks_by_assignment)

    assignment_analytics = []
    for a in assignments:
        subs = [s for s in submissions if s["assignment_id"] == a["assignment_id"]]
        avg = sum(s.get("total_score", 0) for s in subs) / len(subs) if subs else 0
        assignment_analytics.append({
            "assignment_id": a["assignment_id"],
            "assignment": a["title"],
            "submissions": len(subs),
            "average_score": round(avg, 2),
            "average_percentage": percentage_of(avg, a["total_marks"]),
        })

    student_performance = []
    for st in students:
        subs = [s for s in submissions if s["student_id"] == st["user_id"]]
        pcts = _submission_percentages(subs, marks_by_assignment)
        student_performance.append({
            "student_id": st["user_id"],
            "name": st.get("name"),
            "submissions": len(subs),
            "average_percentage": round(sum(pcts) / len(pcts), 2) if pcts else 0,
        })
    student_performance.sort(key=lambda x: x["average_percentage"], reverse=True)

    return {
        "classroom": {"classroom_id": classroom_id, "name": classroom.get("name")},
        "overview": {
            "total_students": total_students,
            "total_assignments": len(assignments),
            "total_submissions": len(submissions),
            "average_score": round(sum(percentages) / len(percentages), 2) if percentages else 0,
            "submission_rate": round(len(submissions) / possible * 100, 2) if possible else 0.0,
        },
        "assignment_analytics": assignment_analytics,
        "score_distribution": score_distribution(percentages),
        "student_performance": student_performance,
    }

# ==================== ASSIGNMENT MANAGEMENT ====================

async def create_assignment(teacher: TeacherContext, classroom: dict, data: dict) -> dict:
    if classroom.get("status") != ClassroomStatus.ACTIVE.value:
        raise HTTPException(status_code=400, detail="Cannot create assignments in an inactive classroom")

    questions = normalize_questions(data.pop("questions", []), data["total_marks"])

    assignment = Assignment(
        assignment_id=generate_id("ASG"),
        created_by=teacher.user_id,
        **data
    )

    await db.assignments.insert_one(assignment.dict())
    await _store_questions(assignment.assignment_id, questions)
    await log_audit(teacher, "create_assignment", "assignment", assignment.assignment_id, {
        "classroom_id": assignment.classroom_id,
        "question_count": len(questions)
    })

    return await get_assignment_detail(assignment.assignment_id)

async def get_teacher_assignments(teacher: TeacherContext, classroom_id: Optional[str] = None) -> List[dict]:
    query = {"created_by": teacher.user_id}
    if classroom_id:
        query["classroom_id"] = classroom_id

    assignments = await db.assignments.find(query, {"_id": 0}).sort("created_at", -1).to_list(length=None)

    class_names = {}
    for a in assignments:
        cid = a["classroom_id"]
        if cid not in class_names:
            cls = await db.classrooms.find_one({"classroom_id": cid}, {"_id": 0, "name": 1})
            class_names[cid] = cls.get("name") if cls else None
        a["classroom_name"] = class_names[cid]
        a["question_count"] = await db.questions.count_documents({"assignment_id": a["assignment_id"]})
        a["submission_count"] = await db.submissions.count_documents({"assignment_id": a["assignment_id"]})

    return assignments

async def get_assignment_detail(assignment_id: str) -> dict:
    assignment = await db.assignments.find_one({"assignment_id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")

    questions = await get_assignment_questions(assignment_id)
    assignment["questions"] = questions
    assignment["question_count"] = len(questions)
    assignment["submission_count"] = await db.submissions.count_documents({"assignment_id": assignment_id})

    return assignment

async def update_assignment(assignment: dict, teacher: TeacherContext, data: dict) -> dict:
    assignment_id = assignment["assignment_id"]
    questions = data.pop("questions", None)
    total_marks = data.get("total_marks", assignment["total_marks"])

    if questions is not None:
        cleaned = normalize_questions(questions, total_marks)
    elif "total_marks" in data:
        existing = await get_assignment_questions(assignment_id)
        normalize_questions(existing, total_marks)
        cleaned = None
    else:
        cleaned = None

    update_data = {k: v for k, v in data.items() if v is not None}
    update_data["updated_at"] = datetime.utcnow()

    await db.assignments.update_one(
        {"assignment_id": assignment_id},
        {"$set": update_data}
    )

    if cleaned is not None:
        await db.questions.delete_many({"assignment_id": assignment_id})
        await _store_questions(assignment_id, cleaned)

    await log_audit(teacher, "update_assignment", "assignment", assignment_id, {
        "fields": sorted(update_data),
        "questions_replaced": cleaned is not None
    })

    return await get_assignment_detail(assignment_id)

async def publish_assignment(assignment: dict, teacher: TeacherContext) -> dict:
    if assignment.get("is_published"):
        raise HTTPException(status_code=400, detail="Already published")

    now = datetime.utcnow()
    await db.assignments.update_one(
        {"assignment_id": assignment["assignment_id"]},
        {"$set": {"is_published": True, "published_at": now, "updated_at": now}}
    )

    await log_audit(teacher, "publish_assignment", "assignment", assignment["assignment_id"])

    return await get_assignment_detail(assignment["assignment_id"])

async def delete_assignment(assignment: dict, teacher: TeacherContext):
    """Delete assignment with its questions and submissions"""
    assignment_id = assignment["assignment_id"]

    subs = await db.submissions.delete_many({"assignment_id": assignment_id})
    await db.questions.delete_many({"assignment_id": assignment_id})
    await db.assignments.delete_one({"assignment_id": assignment_id})

    await log_audit(teacher, "delete_assignment", "assignment", assignment_id, {
        "submissions_deleted": subs.deleted_count
    })

# ==================== SUBMISSIONS ====================

async def _decorate_submissions(submissions: List[dict]) -> List[dict]:
    names = await _user_names([s["student_id"] for s in submissions])
    titles = {}
    for s in submissions:
        student = names.get(s["student_id"], {})
        s["student_name"] = student.get("name")
        s["student_email"] = student.get("email")
        aid = s["assignment_id"]
        if aid not in titles:
            a = await db.assignments.find_one({"assignment_id": aid}, {"_id": 0, "title": 1})
            titles[aid] = a.get("title") if a else None
        s["assignment_title"] = titles[aid]
    return submissions

async def get_assignment_submissions(assignment_id: str) -> List[dict]:
    cursor = db.submissions.find({"assignment_id": assignment_id}, {"_id": 0}).sort("created_at", 1)
    return await _decorate_submissions(await cursor.to_list(length=None))

async def get_all_submissions(teacher: TeacherContext, status: Optional[str] = None) -> List[dict]:
    assignment_ids = await db.assignments.distinct("assignment_id", {"created_by": teacher.user_id})
    query = {"assignment_id": {"$in": assignment_ids}}
    if status:
        query["status"] = status

    cursor = db.submissions.find(query, {"_id": 0}).sort("created_at", 1)
    return await _decorate_submissions(await cursor.to_list(length=None))

async def get_submission_detail(submission: dict) -> dict:
    submission = dict(submission)
    submission.pop("_id", None)
    questions = {q["question_id"]: q for q in await get_assignment_questions(submission["assignment_id"])}

    for ans in submission.get("answers", []):
        ans["question"] = questions.get(ans["question_id"])

    decorated = await _decorate_submissions([submission])
    return decorated[0]

async def evaluate_submission(
    submission: dict,
    assignment: dict,
    teacher: TeacherContext,
    answers: List[dict],
    feedback: str = ""
) -> dict:
    if submission.get("status") == SubmissionStatus.EVALUATED.value:
        raise HTTPException(status_code=400, detail="Already evaluated")

    questions = await get_assignment_questions(assignment["assignment_id"])
    merged, total, results = merge_evaluation(
        questions,
        submission.get("answers", []),
        answers,
        assignment["total_marks"]
    )

    now = datetime.utcnow()
    result = await db.submissions.update_one(
        {"submission_id": submission["submission_id"], "status": SubmissionStatus.SUBMITTED.value},
        {"$set": {
            "answers": merged,
            "total_score": total,
            "feedback": feedback or "",
            "status": SubmissionStatus.EVALUATED.value,
            "evaluated_by": teacher.user_id,
            "evaluated_at": now,
            "updated_at": now
        }}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=400, detail="Already evaluated")

    await log_audit(teacher, "evaluate_submission", "submission", submission["submission_id"], {
        "total_score": total
    })
    logger.info(
        "Submission %s evaluated by %s: %s/%s",
        submission["submission_id"], teacher.user_id, total, assignment["total_marks"]
    )

    return {
        "message": "Submission evaluated successfully",
        "submission_id": submission["submission_id"],
        "evaluation_summary": evaluation_summary(total, assignment["total_marks"], results)
    }
