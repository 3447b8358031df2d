import re
import logging
from typing import Optional, List
from fastapi import HTTPException
from app.database import db
from app.auth.auth_models import Role
from app.courses.course_models import CourseStatus, with_course_views
from app.courses.course_service import paginate

logger = logging.getLogger(__name__)

PUBLIC_COURSE_FIELDS = {
    "_id": 0, "course_id": 1, "title": 1, "code": 1, "short_code": 1,
    "description": 1, "department": 1, "level": 1, "credits": 1, "duration": 1,
    "thumbnail": 1, "instructors": 1, "enrollment_stats": 1, "max_students": 1,
    "fee": 1, "tags": 1, "category": 1,
}

COURSE_PACKAGES = [
    {
        "id": "basic",
        "name": "Basic",
        "price": 0,
        "duration": "Lifetime",
        "features": [
            "Access to free courses",
            "Basic community support",
            "Course materials access",
            "Discussion forums",
        ],
        "limits": {"courses": "Unlimited free courses", "certificates": False, "mentoring": False},
    },
    {
        "id": "standard",
        "name": "Standard",
        "price": 4999,
        "duration": "1 Year",
        "features": [
            "All Basic features",
            "Access to premium courses",
            "Priority support",
            "Course certificates",
            "Practice tests",
            "Project reviews",
        ],
        "limits": {"courses": "All courses", "certificates": True, "mentoring": False},
        "popular": True,
    },
    {
        "id": "premium",
        "name": "Premium",
        "price": 9999,
        "duration": "1 Year",
        "features": [
            "All Standard features",
            "1-on-1 mentoring sessions",
            "Career guidance",
            "Interview preparation",
            "Resume review",
            "Job placement assistance",
            "Networking events",
        ],
        "limits": {
            "courses": "All courses + Exclusive content",
            "certificates": True,
            "mentoring": "12 sessions/year",
        },
    },
]


async def _with_instructors(courses: List[dict]) -> List[dict]:
    ids = list({i for c in courses for i in c.get("instructors", [])})
    instructors = {}
    if ids:
        users = await db.users.find(
            {"user_id": {"$in": ids}},
            {"_id": 0, "user_id": 1, "name": 1, "avatar": 1, "designation": 1}
        ).to_list(length=None)
        instructors = {u["user_id"]: u for u in users}
    for c in courses:
        c["instructors"] = [instructors[i] for i in c.get("instructors", []) if i in instructors]
    return courses

# ==================== PEOPLE ====================

async def get_public_faculty(limit: int = 6) -> List[dict]:
    return await db.users.find(
        {"role": Role.TEACHER.value, "is_active": {"$ne": False}},
        {"_id": 0, "user_id": 1, "name": 1, "avatar": 1, "designation": 1, "department": 1}
    ).limit(limit).to_list(length=limit)

async def get_top_students(limit: int = 10) -> List[dict]:
    pipeline = [
        {"$group": {
            "_id": "$student_id",
            "average_score": {"$avg": "$total_score"},
            "highest_score": {"$max": "$total_score"},
            "total_submissions": {"$sum": 1},
        }},
        {"$sort": {"average_score": -1}},
        {"$limit": limit},
        {"$lookup": {
            "from": "users",
            "localField": "_id",
            "foreignField": "user_id",
            "as": "student",
        }},
        {"$unwind": "$student"},
        {"$project": {
            "_id": 0,
            "user_id": "$student.user_id",
            "name": "$student.name",
            "avatar": "$student.avatar",
            "average_score": {"$round": ["$average_score", 2]},
            "highest_score": 1,
            "total_submissions": 1,
        }},
    ]
    return await db.submissions.aggregate(pipeline).to_list(length=limit)

# ==================== COURSES ====================

async def list_courses(
    department: Optional[str] = None,
    level: Optional[str] = None,
    status: str = CourseStatus.PUBLISHED.value,
    page: int = 1,
    limit: int = 20
) -> dict:
    query = {"status": status}
    if department:
        query["department"] = department
    if level:
        query["level"] = level

    total = await db.courses.count_documents(query)
    courses = await db.courses.find(query, PUBLIC_COURSE_FIELDS).sort(
        "created_at", -1
    ).skip((page - 1) * limit).limit(limit).to_list(length=limit)

    courses = await _with_instructors([with_course_views(c) for c in courses])
    return {"courses": courses, "pagination": paginate(page, limit, total)}

async def get_course(identifier: str) -> dict:
    """Published course by id, code or short code, with up to four related courses"""
    course = await db.courses.find_one(
        {
            "$or": [{"course_id": identifier}, {"code": identifier}, {"short_code": identifier}],
            "status": CourseStatus.PUBLISHED.value,
        },
        {"_id": 0, "previous_versions": 0, "created_by": 0, "updated_by": 0}
    )
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    related = await db.courses.find(
        {
            "department": course["department"],
            "status": CourseStatus.PUBLISHED.value,
            "course_id": {"$ne": course["course_id"]},
        },
        PUBLIC_COURSE_FIELDS
    ).sort("enrollment_stats.total_enrolled", -1).limit(4).to_list(length=4)

    course["average_rating"] = (course.get("enrollment_stats") or {}).get("average_rating", 0)
    [course] = await _with_instructors([with_course_views(course)])

    return {
        "course": course,
        "related_courses": [with_course_views(c) for c in related],
    }

async def get_courses_by_department(department: str, level: Optional[str] = None) -> dict:
    query = {"department": department, "status": CourseStatus.PUBLISHED.value}
    if level:
        query["level"] = level

    courses = await db.courses.find(query, PUBLIC_COURSE_FIELDS).sort("code", 1).limit(20).to_list(length=20)
    courses = await _with_instructors(courses)
    return {"department": department, "count": len(courses), "courses": courses}

async def get_popular_courses(limit: int = 6) -> dict:
    courses = await db.courses.find(
        {"status": CourseStatus.PUBLISHED.value}, PUBLIC_COURSE_FIELDS
    ).sort("enrollment_stats.total_enrolled", -1).limit(limit).to_list(length=limit)
    return {"courses": await _with_instructors(courses)}

def get_course_packages() -> dict:
    return {"packages": COURSE_PACKAGES}

def build_search_query(
    q: Optional[str] = None,
    department: Optional[str] = None,
    level: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None
) -> dict:
    query = {"status": CourseStatus.PUBLISHED.value}
    if q:
        pattern = {"$regex": re.escape(q), "$options": "i"}
        query["$or"] = [
            {"title": pattern},
            {"description": pattern},
            {"code": pattern},
            {"tags": pattern},
        ]
    if department:
        query["department"] = department
    if level:
        query["level"] = level
    if min_price is not None or max_price is not None:
        query["fee.amount"] = {}
        if min_price is not None:
            query["fee.amount"]["$gte"] = min_price
        if max_price is not None:
            query["fee.amount"]["$lte"] = max_price
    return query

async def search_courses(
    q: Optional[str] = None,
    department: Optional[str] = None,
    level: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None
) -> dict:
    query = build_search_query(q, department, level, min_price, max_price)
    courses = await db.courses.find(query, PUBLIC_COURSE_FIELDS).limit(30).to_list(length=30)
    courses = await _with_instructors(courses)
    return {"count": len(courses), "courses": courses}
