import re
import math
import logging
from datetime import datetime
from typing import Optional, List
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError
from app.database import db, generate_id
from app.auth.auth_models import Role, EMPLOYEE_ROLES
from app.auth.auth_permissions import UserContext
from app.common_audit import log_audit
from app.courses.course_models import (
    Course, CourseCategory, CourseEnrollment, CourseStatus, EnrollmentStatus,
    ACTIVE_ENROLLMENT_STATUSES, generate_course_code, generate_short_code,
    slugify, push_version, enrollment_stat_changes, with_course_views
)

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

async def get_course_or_404(course_id: str) -> dict:
    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0})
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course

async def get_category_or_404(category_id: str) -> dict:
    category = await db.course_categories.find_one({"category_id": category_id}, {"_id": 0})
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category

async def validate_instructors(instructor_ids: List[str]):
    if not instructor_ids:
        return
    unique_ids = list(set(instructor_ids))
    found = await db.users.count_documents({
        "user_id": {"$in": unique_ids},
        "role": {"$in": EMPLOYEE_ROLES},
    })
    if found != len(unique_ids):
        raise HTTPException(status_code=400, detail="One or more instructors not found or invalid role")

async def _adjust_category_count(name: Optional[str], delta: int):
    if name:
        await db.course_categories.update_one({"name": name}, {"$inc": {"total_courses": delta}})

async def _user_summaries(user_ids: List[str], fields: tuple = ("name", "email", "avatar")) -> dict:
    if not user_ids:
        return {}
    projection = {"_id": 0, "user_id": 1, **{f: 1 for f in fields}}
    users = await db.users.find({"user_id": {"$in": list(set(user_ids))}}, projection).to_list(length=None)
    return {u["user_id"]: u for u in users}

def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }

# ==================== COURSE CRUD ====================

async def create_course(staff: UserContext, data: dict) -> dict:
    await validate_instructors(data.get("instructors", []))

    course = Course(
        course_id=generate_id("CRS"),
        code=data.pop("code", None) or generate_course_code(data["department"], data["level"].value, data["title"]),
        short_code=data.pop("short_code", None) or generate_short_code(data["department"], data["level"].value, data["credits"]),
        created_by=staff.user_id,
        **data
    )
    doc = course.dict()

    try:
        await db.courses.insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Course code already exists")
    doc.pop("_id", None)

    await _adjust_category_count(course.category, 1)
    await log_audit(staff, "create_course", "course", course.course_id, {"code": course.code})
    logger.info("Course created: %s (%s)", course.course_id, course.code)

    return {"message": "Course created successfully", "course": doc}

async def list_courses(
    department: Optional[str] = None,
    level: Optional[str] = None,
    status: Optional[str] = None,
    instructor: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10
) -> dict:
    query = {}
    if department:
        query["department"] = department
    if level:
        query["level"] = level
    if status:
        query["status"] = status
    if instructor:
        query["instructors"] = instructor
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"title": pattern},
            {"code": pattern},
            {"description": pattern},
            {"short_code": pattern},
        ]

    total = await db.courses.count_documents(query)
    courses = await db.courses.find(
        query, {"_id": 0, "previous_versions": 0}
    ).sort("created_at", -1).skip((page - 1) * limit).limit(limit).to_list(length=limit)

    instructors = await _user_summaries([i for c in courses for i in c.get("instructors", [])])
    for c in courses:
        c["instructor_details"] = [instructors[i] for i in c.get("instructors", []) if i in instructors]

    return {"courses": courses, "pagination": paginate(page, limit, total)}

async def get_course(course_id: str) -> dict:
    course = await get_course_or_404(course_id)
    enrollments = await db.course_enrollments.find(
        {"course_id": course_id}, {"_id": 0}
    ).sort("created_at", -1).to_list(length=None)

    students = await _user_summaries([e["student_id"] for e in enrollments])
    for e in enrollments:
        e["student"] = students.get(e["student_id"])

    instructors = await _user_summaries(course.get("instructors", []), ("name", "email", "avatar", "department"))
    course["instructor_details"] = [instructors[i] for i in course.get("instructors", []) if i in instructors]

    stats = {
        "total_enrollments": len(enrollments),
        "active_enrollments": len([e for e in enrollments if e["status"] in ACTIVE_ENROLLMENT_STATUSES]),
        "completed_enrollments": len([e for e in enrollments if e["status"] == EnrollmentStatus.COMPLETED.value]),
        "dropped_enrollments": len([e for e in enrollments if e["status"] == EnrollmentStatus.DROPPED.value]),
        "recent_enrollments": enrollments[:5],
    }

    return {"course": with_course_views(course), "stats": stats, "enrollments": enrollments}

async def update_course(staff: UserContext, course_id: str, data: dict) -> dict:
    """
    Apply an update and keep a snapshot of the previous version

    Only the last five versions are retained.
    """
    course = await get_course_or_404(course_id)

    if "instructors" in data:
        await validate_instructors(data["instructors"])

    now = datetime.utcnow()
    version, history = push_version(course, staff.user_id, now)
    updates = {
        **data,
        "version": version,
        "previous_versions": history,
        "updated_by": staff.user_id,
        "updated_at": now,
    }

    await db.courses.update_one({"course_id": course_id}, {"$set": updates})

    old_category = course.get("category")
    if "category" in data and data["category"] != old_category:
        await _adjust_category_count(old_category, -1)
        await _adjust_category_count(data["category"], 1)

    await log_audit(staff, "update_course", "course", course_id, {"fields": sorted(data.keys()), "version": version})

    updated = await db.courses.find_one({"course_id": course_id}, {"_id": 0})
    return {"message": "Course updated successfully", "course": updated}

async def delete_course(staff: UserContext, course_id: str) -> dict:
    course = await get_course_or_404(course_id)

    active = await db.course_enrollments.count_documents({
        "course_id": course_id,
        "status": {"$in": ACTIVE_ENROLLMENT_STATUSES},
    })
    if active > 0:
        raise HTTPException(status_code=400, detail="Cannot delete course with active enrollments")

    await _adjust_category_count(course.get("category"), -1)
    await db.courses.delete_one({"course_id": course_id})
    await log_audit(staff, "delete_course", "course", course_id, {"code": course.get("code")})

    return {"message": "Course deleted successfully"}

# ==================== ENROLLMENT ====================

async def enroll_students(staff: UserContext, course_id: str, student_ids: List[str]) -> dict:
    """
    Enroll several students; each failure is reported without stopping the rest
    """
    course = await get_course_or_404(course_id)

    students = await db.users.find(
        {"user_id": {"$in": student_ids}, "role": Role.STUDENT.value},
        {"_id": 0, "user_id": 1}
    ).to_list(length=None)
    found = {s["user_id"] for s in students}

    max_students = course.get("max_students")
    current = (course.get("enrollment_stats") or {}).get("current_enrolled", 0)

    enrollments, errors = [], []
    for student_id in student_ids:
        if student_id not in found:
            errors.append({"student_id": student_id, "message": "Student not found"})
            continue
        if max_students and current >= max_students:
            errors.append({"student_id": student_id, "message": "Course is full"})
            continue
        if await db.course_enrollments.find_one({"course_id": course_id, "student_id": student_id}):
            errors.append({"student_id": student_id, "message": "Already enrolled"})
            continue

        enrollment = CourseEnrollment(
            enrollment_id=generate_id("ENR"),
            course_id=course_id,
            student_id=student_id,
            enrolled_by=staff.user_id,
        )
        doc = enrollment.dict()
        try:
            await db.course_enrollments.insert_one(doc)
        except DuplicateKeyError:
            errors.append({"student_id": student_id, "message": "Already enrolled"})
            continue
        doc.pop("_id", None)

        await db.users.update_one(
            {"user_id": student_id},
            {"$push": {"enrolled_courses": {
                "course_id": course_id,
                "course_code": course["code"],
                "course_name": course["title"],
                "enrollment_date": enrollment.enrollment_date,
                "status": EnrollmentStatus.ENROLLED.value,
            }}}
        )
        enrollments.append(doc)
        current += 1

    if enrollments:
        await db.courses.update_one(
            {"course_id": course_id},
            {"$inc": {
                "enrollment_stats.total_enrolled": len(enrollments),
                "enrollment_stats.current_enrolled": len(enrollments),
            }}
        )
        await log_audit(staff, "enroll_students", "course", course_id, {"enrolled": len(enrollments)})

    return {
        "message": f"Enrolled {len(enrollments)} students",
        "enrollments": enrollments,
        "errors": errors,
    }

async def update_enrollment_status(actor: UserContext, enrollment_id: str, data: dict) -> dict:
    enrollment = await db.course_enrollments.find_one({"enrollment_id": enrollment_id}, {"_id": 0})
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")

    old_status = enrollment["status"]
    new_status = data["status"].value
    now = datetime.utcnow()

    updates = {"status": new_status, "updated_at": now}
    if data.get("grade"):
        updates["final_grade"] = data["grade"]
    if data.get("percentage") is not None:
        updates["final_percentage"] = data["percentage"]
    if data.get("progress") is not None:
        updates["progress.overall_progress"] = data["progress"]
    if new_status == EnrollmentStatus.COMPLETED.value:
        updates["completion_date"] = now
        updates["progress.overall_progress"] = 100

    await db.course_enrollments.update_one({"enrollment_id": enrollment_id}, {"$set": updates})

    student_updates = {"enrolled_courses.$.status": new_status}
    if new_status == EnrollmentStatus.COMPLETED.value:
        student_updates.update({
            "enrolled_courses.$.grade": data.get("grade"),
            "enrolled_courses.$.percentage": data.get("percentage"),
            "enrolled_courses.$.completion_date": now,
        })
    await db.users.update_one(
        {"user_id": enrollment["student_id"], "enrolled_courses.course_id": enrollment["course_id"]},
        {"$set": student_updates}
    )

    changes = enrollment_stat_changes(old_status, new_status)
    if changes:
        await db.courses.update_one({"course_id": enrollment["course_id"]}, {"$inc": changes})

    await log_audit(actor, "update_enrollment", "enrollment", enrollment_id, {"from": old_status, "to": new_status})

    enrollment.update({k: v for k, v in updates.items() if "." not in k})
    if "progress.overall_progress" in updates:
        enrollment.setdefault("progress", {})["overall_progress"] = updates["progress.overall_progress"]
    return {"message": "Enrollment updated successfully", "enrollment": enrollment}

async def list_enrollments(course_id: str, status: Optional[str] = None) -> List[dict]:
    query = {"course_id": course_id}
    if status:
        query["status"] = status

    enrollments = await db.course_enrollments.find(query, {"_id": 0}).sort("created_at", -1).to_list(length=None)
    students = await _user_summaries(
        [e["student_id"] for e in enrollments],
        ("name", "email", "avatar", "enrollment_number", "batch")
    )
    enrolled_by = await _user_summaries([e["enrolled_by"] for e in enrollments if e.get("enrolled_by")], ("name",))
    for e in enrollments:
        e["student"] = students.get(e["student_id"])
        e["enrolled_by_name"] = (enrolled_by.get(e.get("enrolled_by")) or {}).get("name")
    return enrollments

# ==================== CATEGORIES ====================

async def list_categories() -> List[dict]:
    return await db.course_categories.find({}, {"_id": 0}).sort([("order", 1), ("name", 1)]).to_list(length=None)

async def create_category(staff: UserContext, data: dict) -> dict:
    slug = data.pop("slug", None) or slugify(data["name"])
    if await db.course_categories.find_one({"$or": [{"name": data["name"]}, {"slug": slug}]}):
        raise HTTPException(status_code=400, detail="Category already exists")

    category = CourseCategory(
        category_id=generate_id("CAT"),
        slug=slug,
        created_by=staff.user_id,
        **data
    )
    doc = category.dict()
    await db.course_categories.insert_one(doc)
    doc.pop("_id", None)

    await log_audit(staff, "create_category", "category", category.category_id, {"name": category.name})
    return {"message": "Category created successfully", "category": doc}

async def update_category(staff: UserContext, category_id: str, data: dict) -> dict:
    category = await get_category_or_404(category_id)

    updates = {**data, "updated_at": datetime.utcnow()}
    if data.get("name") and data["name"] != category["name"]:
        updates["slug"] = slugify(data["name"])
        if await db.course_categories.find_one({
            "category_id": {"$ne": category_id},
            "$or": [{"name": data["name"]}, {"slug": updates["slug"]}],
        }):
            raise HTTPException(status_code=400, detail="Category already exists")
        await db.courses.update_many({"category": category["name"]}, {"$set": {"category": data["name"]}})

    await db.course_categories.update_one({"category_id": category_id}, {"$set": updates})
    await log_audit(staff, "update_category", "category", category_id, {"fields": sorted(data.keys())})

    category.update(updates)
    return {"message": "Category updated successfully", "category": category}

async def delete_category(staff: UserContext, category_id: str) -> dict:
    category = await get_category_or_404(category_id)
    if category.get("total_courses", 0) > 0:
        raise HTTPException(status_code=400, detail="Cannot delete category with existing courses")

    await db.course_categories.delete_one({"category_id": category_id})
    await log_audit(staff, "delete_category", "category", category_id, {"name": category["name"]})
    return {"message": "Category deleted successfully"}

# ==================== STATS ====================

async def get_course_stats() -> dict:
    popular = await db.courses.find(
        {"status": CourseStatus.PUBLISHED.value},
        {"_id": 0, "course_id": 1, "title": 1, "code": 1, "enrollment_stats": 1}
    ).sort("enrollment_stats.total_enrolled", -1).limit(5).to_list(length=5)

    by_department = await db.courses.aggregate([
        {"$group": {
            "_id": "$department",
            "count": {"$sum": 1},
            "total_enrollments": {"$sum": "$enrollment_stats.total_enrolled"},
        }},
        {"$sort": {"count": -1}},
    ]).to_list(length=None)

    return {
        "overview": {
            "total_courses": await db.courses.count_documents({}),
            "published_courses": await db.courses.count_documents({"status": CourseStatus.PUBLISHED.value}),
            "draft_courses": await db.courses.count_documents({"status": CourseStatus.DRAFT.value}),
            "total_enrollments": await db.course_enrollments.count_documents({}),
            "active_enrollments": await db.course_enrollments.count_documents(
                {"status": {"$in": ACTIVE_ENROLLMENT_STATUSES}}
            ),
            "completed_enrollments": await db.course_enrollments.count_documents(
                {"status": EnrollmentStatus.COMPLETED.value}
            ),
        },
        "popular_courses": popular,
        "department_stats": [
            {"department": d["_id"], "count": d["count"], "total_enrollments": d["total_enrollments"]}
            for d in by_department
        ],
    }
