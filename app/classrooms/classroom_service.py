from datetime import datetime
from typing import List
from fastapi import HTTPException
from app.database import db, generate_id
from app.auth.auth_models import Role
from app.auth.auth_permissions import UserContext
from app.classrooms.classroom_models import Classroom
from app.common_audit import log_audit

# ==================== HELPERS ====================

async def validate_teacher(teacher_id: str) -> dict:
    teacher = await db.users.find_one({"user_id": teacher_id})
    if not teacher or teacher.get("role") != Role.TEACHER.value:
        raise HTTPException(status_code=400, detail="Invalid teacher selected")
    return teacher

async def get_classroom_or_404(classroom_id: str) -> dict:
    classroom = await db.classrooms.find_one({"classroom_id": classroom_id})
    if not classroom:
        raise HTTPException(status_code=404, detail="Classroom not found")
    return classroom

async def get_classroom_with_stats(classroom_id: str) -> dict:
    """Get classroom with teacher name, student and assignment counts"""
    classroom = await get_classroom_or_404(classroom_id)

    teacher = await db.users.find_one(
        {"user_id": classroom["teacher_id"]},
        {"_id": 0, "name": 1}
    )
    assignment_count = await db.assignments.count_documents({"classroom_id": classroom_id})

    classroom["teacher_name"] = teacher.get("name") if teacher else None
    classroom["student_count"] = len(classroom.get("students", []))
    classroom["assignment_count"] = assignment_count
    classroom.pop("_id", None)

    return classroom

# ==================== CLASSROOM MANAGEMENT ====================

async def create_classroom(admin: UserContext, data: dict) -> dict:
    await validate_teacher(data["teacher_id"])

    students = list(dict.fromkeys(data.pop("students", []) or []))
    if students:
        valid = await db.users.count_documents({
            "user_id": {"$in": students},
            "role": Role.STUDENT.value
        })
        if valid != len(students):
            raise HTTPException(status_code=400, detail="One or more students are invalid")

    classroom = Classroom(
        classroom_id=generate_id("CLS"),
        students=students,
        created_by=admin.user_id,
        **data
    )

    await db.classrooms.insert_one(classroom.dict())
    await log_audit(admin, "create_classroom", "classroom", classroom.classroom_id)

    return await get_classroom_with_stats(classroom.classroom_id)

async def list_classrooms() -> List[dict]:
    cursor = db.classrooms.find({}).sort("created_at", -1)
    classrooms = await cursor.to_list(length=None)

    results = []
    for cls in classrooms:
        results.append(await get_classroom_with_stats(cls["classroom_id"]))

    return results

async def update_classroom(classroom_id: str, admin: UserContext, data: dict) -> dict:
    await get_classroom_or_404(classroom_id)

    if data.get("teacher_id"):
        await validate_teacher(data["teacher_id"])

    update_data = {k: v for k, v in data.items() if v is not None}
    update_data["updated_at"] = datetime.utcnow()

    await db.classrooms.update_one(
        {"classroom_id": classroom_id},
        {"$set": update_data}
    )

    await log_audit(admin, "update_classroom", "classroom", classroom_id, update_data)

    return await get_classroom_with_stats(classroom_id)

async def add_student(classroom_id: str, student_id: str, admin: UserContext) -> dict:
    classroom = await get_classroom_or_404(classroom_id)

    student = await db.users.find_one({"user_id": student_id})
    if not student or student.get("role") != Role.STUDENT.value:
        raise HTTPException(status_code=400, detail="Invalid student")

    if student_id in classroom.get("students", []):
        raise HTTPException(status_code=400, detail="Student already in classroom")

    await db.classrooms.update_one(
        {"classroom_id": classroom_id},
        {
            "$addToSet": {"students": student_id},
            "$set": {"updated_at": datetime.utcnow()}
        }
    )

    await log_audit(admin, "add_student", "classroom", classroom_id, {"student_id": student_id})

    return await get_classroom_with_stats(classroom_id)

async def delete_classroom(classroom_id: str, admin: UserContext):
    """Hard delete, cascading to assignments, questions, submissions and attendance"""
    await get_classroom_or_404(classroom_id)

    assignment_ids = await db.assignments.distinct("assignment_id", {"classroom_id": classroom_id})

    if assignment_ids:
        await db.submissions.delete_many({"assignment_id": {"$in": assignment_ids}})
        await db.questions.delete_many({"assignment_id": {"$in": assignment_ids}})
        await db.assignments.delete_many({"classroom_id": classroom_id})

    await db.student_attendance.delete_many({"classroom_id": classroom_id})
    await db.classrooms.delete_one({"classroom_id": classroom_id})

    await log_audit(admin, "delete_classroom", "classroom", classroom_id, {
        "assignments_deleted": len(assignment_ids)
    })
