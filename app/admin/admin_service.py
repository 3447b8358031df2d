"""
Admin dashboard analytics

Scores are compared as percentages of each assignment's total marks so
assignments with different totals can be aggregated together.
"""

from datetime import datetime, timedelta
from typing import List, Optional
import logging
from app.database import db
from app.auth.auth_models import Role
from app.classrooms.classroom_models import ClassroomStatus
from app.teachers.grading import score_distribution, percentage_of
from app.admin.admin_models import performance_grade, recommendations, last_n_months

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

async def _marks_by_assignment(assignment_ids: Optional[List[str]] = None) -> dict:
    query = {"assignment_id": {"$in": assignment_ids}} if assignment_ids is not None else {}
    cursor = db.assignments.find(query, {"_id": 0, "assignment_id": 1, "total_marks": 1})
    return {a["assignment_id"]: a.get("total_marks", 0) for a in await cursor.to_list(length=None)}

async def _names(collection, key: str, ids: List[str]) -> dict:
    if not ids:
        return {}
    cursor = collection.find({key: {"$in": list(set(ids))}}, {"_id": 0, key: 1, "name": 1, "title": 1, "email": 1})
    return {d[key]: d for d in await cursor.to_list(length=None)}

def submission_metrics(submissions: List[dict], marks: dict, total_students: int) -> dict:
    percentages = [percentage_of(s.get("total_score", 0), marks.get(s["assignment_id"], 0)) for s in submissions]
    on_time = len([s for s in submissions if s.get("submitted_on_time", True)])
    submitters = len({s["student_id"] for s in submissions})

    return {
        "total_submissions": len(submissions),
        "average_percentage": round(sum(percentages) / len(percentages), 2) if percentages else 0,
        "highest_percentage": max(percentages) if percentages else 0,
        "lowest_percentage": min(percentages) if percentages else 0,
        "on_time_submissions": on_time,
        "late_submissions": len(submissions) - on_time,
        "on_time_rate": percentage_of(on_time, len(submissions)),
        "submission_rate": percentage_of(submitters, total_students),
        "students_with_submissions": submitters,
        "score_distribution": score_distribution(percentages),
    }

# ==================== STATS ====================

async def get_admin_stats(now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    start_of_month = datetime(now.year, now.month, 1)
    last_week = now - timedelta(days=7)

    total_users = await db.users.count_documents({})
    total_students = await db.users.count_documents({"role": Role.STUDENT.value})
    total_teachers = await db.users.count_documents({"role": Role.TEACHER.value})
    total_faculty_admins = await db.users.count_documents({"role": Role.FACULTY_ADMIN.value})
    total_classrooms = await db.classrooms.count_documents({})
    total_assignments = await db.assignments.count_documents({})

    classrooms = await db.classrooms.find(
        {}, {"_id": 0, "classroom_id": 1, "teacher_id": 1, "students": 1, "status": 1}
    ).to_list(length=None)
    submissions = await db.submissions.find(
        {}, {"_id": 0, "assignment_id": 1, "student_id": 1, "total_score": 1, "submitted_on_time": 1}
    ).to_list(length=None)
    marks = await _marks_by_assignment()

    metrics = submission_metrics(submissions, marks, total_students)

    enrolled = [len(c.get("students", [])) for c in classrooms]
    used = len([e for e in enrolled if e > 0])
    utilization_rate = percentage_of(used, len(classrooms))
    active_teachers = len({c.get("teacher_id") for c in classrooms if c.get("teacher_id")})

    attendance = await db.student_attendance.aggregate([
        {"$unwind": "$records"},
        {"$group": {
            "_id": None,
            "total": {"$sum": 1},
            "present": {"$sum": {"$cond": [{"$eq": ["$records.status", "PRESENT"]}, 1, 0]}},
        }},
    ]).to_list(length=1)
    attendance_rate = percentage_of(attendance[0]["present"], attendance[0]["total"]) if attendance else 0

    at_risk = total_students - metrics["students_with_submissions"]
    engagement = round((metrics["submission_rate"] + metrics["on_time_rate"] + attendance_rate) / 3, 2)

    return {
        "overview": {
            "total_users": total_users,
            "total_students": total_students,
            "total_teachers": total_teachers,
            "total_faculty_admins": total_faculty_admins,
            "total_classrooms": total_classrooms,
            "total_assignments": total_assignments,
            "active_classrooms": len([c for c in classrooms if c.get("status") == ClassroomStatus.ACTIVE.value]),
            "inactive_classrooms": len([c for c in classrooms if c.get("status") != ClassroomStatus.ACTIVE.value]),
            "published_assignments": await db.assignments.count_documents({"is_published": True}),
            "draft_assignments": await db.assignments.count_documents({"is_published": False}),
        },
        "growth": {
            "new_users_this_month": await db.users.count_documents({"created_at": {"$gte": start_of_month}}),
            "new_submissions_this_month": await db.submissions.count_documents({"created_at": {"$gte": start_of_month}}),
            "new_assignments_this_month": await db.assignments.count_documents({"created_at": {"$gte": start_of_month}}),
            "active_users_last_7_days": await db.users.count_documents({"last_active": {"$gte": last_week}}),
        },
        "performance": {k: v for k, v in metrics.items() if k != "score_distribution"},
        "score_distribution": metrics["score_distribution"],
        "utilization": {
            "classroom_utilization_rate": utilization_rate,
            "total_enrolled_students": sum(enrolled),
            "avg_class_size": round(sum(enrolled) / len(enrolled), 1) if enrolled else 0,
            "avg_assignments_per_classroom": round(total_assignments / total_classrooms, 1) if total_classrooms else 0,
        },
        "teacher_analytics": {
            "avg_classrooms_per_teacher": round(len(classrooms) / total_teachers, 1) if total_teachers else 0,
            "avg_assignments_per_teacher": round(total_assignments / total_teachers, 1) if total_teachers else 0,
            "total_active_teachers": active_teachers,
        },
        "student_analytics": {
            "avg_submissions_per_student": round(len(submissions) / total_students, 1) if total_students else 0,
            "students_with_no_submissions": at_risk,
            "avg_attendance_rate": attendance_rate,
        },
        "platform_health": {
            "engagement_score": engagement,
            "performance_grade": performance_grade(engagement),
            "recommendations": recommendations(
                metrics["submission_rate"], metrics["on_time_rate"], utilization_rate, at_risk
            ),
        },
    }

async def _monthly_counts(collection, since: datetime, by_role: bool = False) -> List[dict]:
    group_id = {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}}
    if by_role:
        group_id["role"] = "$role"
    pipeline = [
        {"$match": {"created_at": {"$gte": since}}},
        {"$group": {"_id": group_id, "count": {"$sum": 1}}},
    ]
    return await collection.aggregate(pipeline).to_list(length=None)

async def get_monthly_growth(now: Optional[datetime] = None, months: int = 6) -> List[dict]:
    """New users, classrooms, assignments and submissions per month, oldest first"""
    now = now or datetime.utcnow()
    window = last_n_months(now, months)
    since = datetime(window[0][0], window[0][1], 1)

    rows = {
        (year, month): {
            "year": year,
            "month": month,
            "students": 0,
            "teachers": 0,
            "classrooms": 0,
            "assignments": 0,
            "submissions": 0,
        }
        for year, month in window
    }

    for item in await _monthly_counts(db.users, since, by_role=True):
        row = rows.get((item["_id"]["year"], item["_id"]["month"]))
        if row is None:
            continue
        if item["_id"].get("role") == Role.STUDENT.value:
            row["students"] = item["count"]
        elif item["_id"].get("role") == Role.TEACHER.value:
            row["teachers"] = item["count"]

    for field, collection in (("classrooms", db.classrooms), ("assignments", db.assignments), ("submissions", db.submissions)):
        for item in await _monthly_counts(collection, since):
            row = rows.get((item["_id"]["year"], item["_id"]["month"]))
            if row is not None:
                row[field] = item["count"]

    return [rows[key] for key in window]

async def get_assignment_performance() -> List[dict]:
    groups = await db.submissions.aggregate([
        {"$group": {
            "_id": "$assignment_id",
            "average_score": {"$avg": "$total_score"},
            "total_submissions": {"$sum": 1},
        }},
    ]).to_list(length=None)

    full = await db.assignments.find(
        {"assignment_id": {"$in": [g["_id"] for g in groups]}},
        {"_id": 0, "assignment_id": 1, "classroom_id": 1, "total_marks": 1, "title": 1}
    ).to_list(length=None)
    by_id = {a["assignment_id"]: a for a in full}
    classrooms = await _names(db.classrooms, "classroom_id", [a["classroom_id"] for a in full])

    result = []
    for g in groups:
        assignment = by_id.get(g["_id"])
        if not assignment:
            continue
        result.append({
            "assignment_id": g["_id"],
            "title": assignment["title"],
            "classroom": (classrooms.get(assignment["classroom_id"]) or {}).get("name"),
            "total_submissions": g["total_submissions"],
            "average_score": round(g["average_score"] or 0, 2),
            "average_percentage": percentage_of(g["average_score"] or 0, assignment.get("total_marks", 0)),
        })
    return sorted(result, key=lambda r: r["average_percentage"], reverse=True)

# ==================== ASSIGNMENTS / SUBMISSIONS ====================

async def get_all_assignments(
    classroom_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    is_published: Optional[bool] = None
) -> List[dict]:
    query = {}
    if classroom_id:
        query["classroom_id"] = classroom_id
    if teacher_id:
        query["created_by"] = teacher_id
    if is_published is not None:
        query["is_published"] = is_published

    assignments = await db.assignments.find(query, {"_id": 0}).sort("created_at", -1).to_list(length=None)
    classrooms = await _names(db.classrooms, "classroom_id", [a["classroom_id"] for a in assignments])
    teachers = await _names(db.users, "user_id", [a["created_by"] for a in assignments])

    stats = await db.submissions.aggregate([
        {"$match": {"assignment_id": {"$in": [a["assignment_id"] for a in assignments]}}},
        {"$group": {"_id": "$assignment_id", "count": {"$sum": 1}, "avg": {"$avg": "$total_score"}}},
    ]).to_list(length=None)
    stats_by_id = {s["_id"]: s for s in stats}

    for a in assignments:
        s = stats_by_id.get(a["assignment_id"], {})
        a["classroom_name"] = (classrooms.get(a["classroom_id"]) or {}).get("name")
        a["teacher_name"] = (teachers.get(a["created_by"]) or {}).get("name")
        a["total_submissions"] = s.get("count", 0)
        a["average_score"] = round(s.get("avg") or 0, 2)
    return assignments

async def get_all_submissions(
    assignment_id: Optional[str] = None,
    student_id: Optional[str] = None,
    classroom_id: Optional[str] = None,
    status: Optional[str] = None
) -> List[dict]:
    query = {}
    if assignment_id:
        query["assignment_id"] = assignment_id
    if student_id:
        query["student_id"] = student_id
    if classroom_id:
        query["classroom_id"] = classroom_id
    if status:
        query["status"] = status

    submissions = await db.submissions.find(query, {"_id": 0, "answers": 0}).sort("created_at", -1).to_list(length=None)
    assignments = await _names(db.assignments, "assignment_id", [s["assignment_id"] for s in submissions])
    students = await _names(db.users, "user_id", [s["student_id"] for s in submissions])
    marks = await _marks_by_assignment([s["assignment_id"] for s in submissions])

    for s in submissions:
        s["assignment_title"] = (assignments.get(s["assignment_id"]) or {}).get("title")
        s["student_name"] = (students.get(s["student_id"]) or {}).get("name")
        s["percentage"] = percentage_of(s.get("total_score", 0), marks.get(s["assignment_id"], 0))
        s["submitted_at"] = s.get("created_at")
    return submissions
