"""
User management for the admin back office

Teachers and faculty admins are employees: they carry an employee record
with salary, leave balance and shift timings. Students carry an academic
profile instead.
"""

import os
import re
from datetime import datetime, timedelta
from typing import List, Optional
import logging
from fastapi import HTTPException, UploadFile
from app.database import db, generate_id, serialize_mongo, serialize_many
from app.config import DOCUMENT_DIR
from app.auth.auth_models import (
    User, Role, EmployeeRecord, LeaveStatus, EMPLOYEE_ROLES,
    generate_employee_unique_id, generate_employee_id, generate_student_unique_id,
    generate_enrollment_number, default_teacher_salary, default_faculty_admin_salary,
    compute_net_salary, check_profile_completeness
)
from app.auth.auth_utils import hash_password
from app.auth.auth_permissions import UserContext
from app.classrooms.classroom_models import ClassroomStatus
from app.attendance.employee_attendance_service import history_summary, with_formatted_hours
from app.teachers.grading import percentage_of, score_distribution
from app.admin.admin_models import EmployeeDocument
from app.common_audit import log_audit

logger = logging.getLogger(__name__)

USER_PROJECTION = {"_id": 0, "password_hash": 0}

# ==================== HELPERS ====================

async def _get_user_or_404(user_id: str, role: str, label: str) -> dict:
    user = await db.users.find_one({"user_id": user_id, "role": role}, USER_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return user

async def _ensure_email_free(email: str, exclude_user_id: Optional[str] = None):
    query = {"email": email}
    if exclude_user_id:
        query["user_id"] = {"$ne": exclude_user_id}
    if await db.users.find_one(query):
        raise HTTPException(status_code=400, detail="Email already exists")

async def _list_by_role(role: str) -> List[dict]:
    cursor = db.users.find({"role": role}, USER_PROJECTION).sort("created_at", -1)
    return await cursor.to_list(length=None)

async def _create_employee(admin: UserContext, role: Role, data: dict) -> dict:
    await _ensure_email_free(data["email"])

    is_teacher = role == Role.TEACHER
    salary = default_teacher_salary() if is_teacher else default_faculty_admin_salary()
    if data.get("salary"):
        overrides = {k: v for k, v in data["salary"].items() if v is not None}
        salary = salary.copy(update=overrides)
        salary.net_salary = compute_net_salary(salary.dict())

    index = await db.users.count_documents({"role": role.value})
    record = EmployeeRecord(
        employee_id=generate_employee_id(role.value, index),
        designation=data.get("designation") or ("Assistant Professor" if is_teacher else "Faculty Admin"),
        department=data.get("department") or ("General" if is_teacher else "Administration"),
        joining_date=data.get("joining_date") or datetime.utcnow(),
        salary=salary,
    )

    user = User(
        user_id=generate_id("USR"),
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        role=role,
        unique_id=generate_employee_unique_id(role.value, data["name"]),
        phone=data.get("phone"),
        department=record.department,
        designation=record.designation,
        date_of_birth=data.get("date_of_birth"),
        gender=data.get("gender"),
        address=data.get("address") or {},
        employee_record=record,
    )
    doc = user.dict()
    doc["is_profile_complete"] = check_profile_completeness(doc)

    await db.users.insert_one(doc)
    await log_audit(admin, f"create_{role.value.lower()}", "user", doc["user_id"], {"email": doc["email"]})
    logger.info("Created %s %s (%s)", role.value, doc["user_id"], record.employee_id)

    return {
        "user_id": doc["user_id"],
        "name": doc["name"],
        "email": doc["email"],
        "unique_id": doc["unique_id"],
        "employee_id": record.employee_id,
    }

async def _update_employee(admin: UserContext, user: dict, data: dict) -> dict:
    if data.get("email") and data["email"] != user["email"]:
        await _ensure_email_free(data["email"], user["user_id"])

    update = {k: data[k] for k in ("name", "email", "phone", "is_active") if data.get(k) is not None}
    for key in ("department", "designation"):
        if data.get(key):
            update[key] = data[key]
            update[f"employee_record.{key}"] = data[key]

    if data.get("salary"):
        current = (user.get("employee_record") or {}).get("salary") or {}
        salary = {**current, **{k: v for k, v in data["salary"].items() if v is not None}}
        salary["net_salary"] = compute_net_salary(salary)
        update["employee_record.salary"] = salary

    update["updated_at"] = datetime.utcnow()
    await db.users.update_one({"user_id": user["user_id"]}, {"$set": update})
    await log_audit(admin, "update_employee", "user", user["user_id"], {"fields": sorted(data)})

    return serialize_mongo(await db.users.find_one({"user_id": user["user_id"]}, USER_PROJECTION))

async def _employee_paperwork(user_id: str) -> dict:
    documents = await db.employee_documents.find({"employee_id": user_id}, {"_id": 0}).sort("uploaded_at", -1).to_list(length=None)
    payslips = await db.payslips.find({"employee_id": user_id}, {"_id": 0}).sort(
        [("year", -1), ("month_number", -1)]
    ).to_list(length=None)
    return {"documents": documents, "payslips": payslips}

def attendance_trend(records: List[dict], today: datetime, days: int = 30) -> List[dict]:
    """One entry per day for the last `days` days, NO_RECORD where nothing was marked"""
    by_day = {r["date"].date(): r for r in records if isinstance(r.get("date"), datetime)}
    trend = []
    for offset in range(days):
        day = (today - timedelta(days=offset)).date()
        record = by_day.get(day)
        trend.append({
            "date": day.isoformat(),
            "day_of_week": day.strftime("%a"),
            "status": record["status"] if record else "NO_RECORD",
            "work_hours": (record or {}).get("total_work_hours") or 0,
            "check_in_time": ((record or {}).get("actual_check_in") or {}).get("start_time"),
            "check_out_time": ((record or {}).get("actual_check_out") or {}).get("start_time"),
        })
    return trend

# ==================== TEACHERS ====================

async def get_all_teachers() -> List[dict]:
    return await _list_by_role(Role.TEACHER.value)

async def create_teacher(admin: UserContext, data: dict) -> dict:
    return await _create_employee(admin, Role.TEACHER, data)

async def update_teacher(admin: UserContext, teacher_id: str, data: dict) -> dict:
    teacher = await _get_user_or_404(teacher_id, Role.TEACHER.value, "Teacher")
    return await _update_employee(admin, teacher, data)

async def delete_teacher(admin: UserContext, teacher_id: str) -> dict:
    """
    Delete a teacher who no longer runs an active classroom

    Inactive or completed classrooms are detached from the teacher.
    """
    await _get_user_or_404(teacher_id, Role.TEACHER.value, "Teacher")

    active = await db.classrooms.count_documents({"teacher_id": teacher_id, "status": ClassroomStatus.ACTIVE.value})
    if active:
        raise HTTPException(
            status_code=400,
            detail=f"Teacher still owns {active} active classroom(s). Reassign or deactivate them first."
        )

    await db.classrooms.update_many(
        {"teacher_id": teacher_id},
        {"$set": {"teacher_id": None, "status": ClassroomStatus.INACTIVE.value, "updated_at": datetime.utcnow()}}
    )
    await db.employee_documents.delete_many({"employee_id": teacher_id})
    await db.payslips.delete_many({"employee_id": teacher_id})
    await db.users.delete_one({"user_id": teacher_id})

    await log_audit(admin, "delete_teacher", "user", teacher_id)
    return {"message": "Teacher deleted successfully"}

async def get_teacher_details(teacher_id: str, today: Optional[datetime] = None) -> dict:
    teacher = await _get_user_or_404(teacher_id, Role.TEACHER.value, "Teacher")
    today = today or datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)

    classrooms = await db.classrooms.find(
        {"teacher_id": teacher_id}, {"_id": 0, "classroom_id": 1, "name": 1, "status": 1, "students": 1}
    ).to_list(length=None)
    assignments = await db.assignments.find(
        {"created_by": teacher_id},
        {"_id": 0, "assignment_id": 1, "title": 1, "deadline": 1, "total_marks": 1, "is_published": 1}
    ).sort("created_at", -1).to_list(length=None)
    paperwork = await _employee_paperwork(teacher_id)

    records = await db.teacher_attendance.find({"employee_id": teacher_id}, {"_id": 0}).sort("date", -1).limit(30).to_list(length=30)
    summary = history_summary(records)

    return {
        "teacher": teacher,
        "stats": {
            "total_classrooms": len(classrooms),
            "total_students": sum(len(c.get("students", [])) for c in classrooms),
            "total_assignments": len(assignments),
            "total_documents": len(paperwork["documents"]),
            "total_payslips": len(paperwork["payslips"]),
            "attendance": summary,
        },
        "classrooms": classrooms,
        "assignments": assignments,
        **paperwork,
        "attendance": {
            "records": [with_formatted_hours(r) for r in records],
            "month_trend": attendance_trend(records, today),
            "summary": summary,
        },
    }

# ==================== FACULTY ADMINS ====================

async def get_all_faculty_admins() -> List[dict]:
    return await _list_by_role(Role.FACULTY_ADMIN.value)

async def create_faculty_admin(admin: UserContext, data: dict) -> dict:
    return await _create_employee(admin, Role.FACULTY_ADMIN, data)

async def update_faculty_admin(admin: UserContext, user_id: str, data: dict) -> dict:
    faculty_admin = await _get_user_or_404(user_id, Role.FACULTY_ADMIN.value, "Faculty admin")
    return await _update_employee(admin, faculty_admin, data)

async def delete_faculty_admin(admin: UserContext, user_id: str) -> dict:
    await _get_user_or_404(user_id, Role.FACULTY_ADMIN.value, "Faculty admin")

    await db.employee_documents.delete_many({"employee_id": user_id})
    await db.payslips.delete_many({"employee_id": user_id})
    await db.users.delete_one({"user_id": user_id})

    await log_audit(admin, "delete_faculty_admin", "user", user_id)
    return {"message": "Faculty admin deleted successfully"}

async def get_faculty_admin_details(user_id: str) -> dict:
    faculty_admin = await _get_user_or_404(user_id, Role.FACULTY_ADMIN.value, "Faculty admin")
    paperwork = await _employee_paperwork(user_id)
    recent_activity = await db.employee_documents.find(
        {"uploaded_by": user_id}, {"_id": 0}
    ).sort("uploaded_at", -1).limit(10).to_list(length=10)

    return {
        "faculty_admin": faculty_admin,
        "stats": {
            "total_documents": len(paperwork["documents"]),
            "total_payslips": len(paperwork["payslips"]),
            "recent_activity": recent_activity,
        },
        **paperwork,
    }

async def get_faculty_analytics() -> dict:
    faculty = await db.users.find(
        {"role": Role.FACULTY_ADMIN.value},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "employee_record": 1}
    ).to_list(length=None)

    details = []
    for f in faculty:
        paperwork = await _employee_paperwork(f["user_id"])
        record = f.get("employee_record") or {}
        details.append({
            "user_id": f["user_id"],
            "name": f["name"],
            "email": f["email"],
            "department": record.get("department"),
            "joining_date": record.get("joining_date"),
            "document_count": len(paperwork["documents"]),
            "payslip_count": len(paperwork["payslips"]),
            "total_salary": sum(p.get("net_salary", 0) for p in paperwork["payslips"]),
        })

    count = len(details)
    return {
        "total_faculty": count,
        "avg_documents": round(sum(d["document_count"] for d in details) / count, 2) if count else 0,
        "avg_payslips": round(sum(d["payslip_count"] for d in details) / count, 2) if count else 0,
        "total_payroll": sum(d["total_salary"] for d in details),
        "faculty_details": details,
    }

# ==================== EMPLOYEES ====================

async def get_all_employees() -> List[dict]:
    cursor = db.users.find(
        {"role": {"$in": EMPLOYEE_ROLES}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "role": 1, "phone": 1, "employee_record": 1}
    ).sort("created_at", -1)
    return await cursor.to_list(length=None)

# ==================== LEAVES ====================

async def get_teacher_leaves(teacher_id: str) -> dict:
    teacher = await _get_user_or_404(teacher_id, Role.TEACHER.value, "Teacher")
    return (teacher.get("employee_record") or {}).get("leaves") or {
        "total": 0, "taken": 0, "remaining": 0, "records": []
    }

async def decide_leave(admin: UserContext, teacher_id: str, leave_id: str, status: str) -> dict:
    """
    Approve or reject a pending leave; approval moves its days from remaining to taken
    """
    teacher = await _get_user_or_404(teacher_id, Role.TEACHER.value, "Teacher")
    records = ((teacher.get("employee_record") or {}).get("leaves") or {}).get("records") or []
    leave = next((r for r in records if r.get("leave_id") == leave_id), None)
    if not leave:
        raise HTTPException(status_code=404, detail="Leave record not found")
    if leave.get("status") != LeaveStatus.PENDING.value:
        raise HTTPException(status_code=400, detail=f"Leave already {leave.get('status', '').lower()}")

    update = {
        "$set": {
            "employee_record.leaves.records.$.status": status,
            "employee_record.leaves.records.$.approved_by": admin.user_id,
            "updated_at": datetime.utcnow(),
        }
    }
    if status == LeaveStatus.APPROVED.value:
        days = leave.get("days", 0)
        update["$inc"] = {
            "employee_record.leaves.taken": days,
            "employee_record.leaves.remaining": -days,
        }

    await db.users.update_one(
        {"user_id": teacher_id, "employee_record.leaves.records.leave_id": leave_id},
        update
    )
    await log_audit(admin, f"leave_{status.lower()}", "leave", leave_id, {"teacher_id": teacher_id})

    return {"message": f"Leave {status.lower()} successfully"}

# ==================== STUDENTS ====================

async def get_all_students() -> List[dict]:
    return await _list_by_role(Role.STUDENT.value)

async def create_student(admin: UserContext, data: dict) -> dict:
    await _ensure_email_free(data["email"])

    now = datetime.utcnow()
    department = data.get("department")
    password = data.pop("password")
    course_code = data.pop("course_code", None)

    user = User(
        user_id=generate_id("USR"),
        password_hash=hash_password(password),
        role=Role.STUDENT,
        unique_id=generate_student_unique_id(course_code or department),
        enrollment_number=generate_enrollment_number(department),
        **{
            **data,
            "batch": data.get("batch") or f"{now.year}-{now.year + 3}",
            "current_semester": data.get("current_semester") or "1",
        }
    )
    doc = user.dict()
    doc["is_profile_complete"] = check_profile_completeness(doc)

    await db.users.insert_one(doc)
    await log_audit(admin, "create_student", "user", doc["user_id"], {"email": doc["email"]})
    logger.info("Created student %s (%s)", doc["user_id"], doc["unique_id"])

    return {
        "message": "Student created successfully",
        "student": {
            "user_id": doc["user_id"],
            "name": doc["name"],
            "email": doc["email"],
            "unique_id": doc["unique_id"],
            "enrollment_number": doc["enrollment_number"],
        },
    }

async def update_student(admin: UserContext, student_id: str, data: dict) -> dict:
    student = await _get_user_or_404(student_id, Role.STUDENT.value, "Student")
    if data.get("email") and data["email"] != student["email"]:
        await _ensure_email_free(data["email"], student_id)

    update = {k: v for k, v in data.items() if v is not None}
    update["updated_at"] = datetime.utcnow()
    await db.users.update_one({"user_id": student_id}, {"$set": update})
    await log_audit(admin, "update_student", "user", student_id, {"fields": sorted(data)})

    return serialize_mongo(await db.users.find_one({"user_id": student_id}, USER_PROJECTION))

async def delete_student(admin: UserContext, student_id: str) -> dict:
    """Remove a student together with their classroom membership, work and enrollments"""
    await _get_user_or_404(student_id, Role.STUDENT.value, "Student")

    await db.classrooms.update_many({"students": student_id}, {"$pull": {"students": student_id}})
    await db.submissions.delete_many({"student_id": student_id})
    await db.student_attendance.update_many(
        {"records.student_id": student_id},
        {"$pull": {"records": {"student_id": student_id}}}
    )

    enrollments = await db.course_enrollments.find({"student_id": student_id}, {"_id": 0}).to_list(length=None)
    for enrollment in enrollments:
        if enrollment.get("status") in ("enrolled", "in_progress"):
            await db.courses.update_one(
                {"course_id": enrollment["course_id"]},
                {"$inc": {"enrollment_stats.current_enrolled": -1}}
            )
    await db.course_enrollments.delete_many({"student_id": student_id})
    await db.users.delete_one({"user_id": student_id})

    await log_audit(admin, "delete_student", "user", student_id, {"enrollments_removed": len(enrollments)})
    return {"message": "Student deleted successfully"}

async def get_student_details(student_id: str) -> dict:
    student = await _get_user_or_404(student_id, Role.STUDENT.value, "Student")

    classrooms = await db.classrooms.find(
        {"students": student_id}, {"_id": 0, "classroom_id": 1, "name": 1, "status": 1, "teacher_id": 1}
    ).to_list(length=None)
    submissions = await db.submissions.find({"student_id": student_id}, {"_id": 0, "answers": 0}).sort(
        "created_at", -1
    ).to_list(length=None)
    assignments = await db.assignments.find(
        {"assignment_id": {"$in": [s["assignment_id"] for s in submissions]}},
        {"_id": 0, "assignment_id": 1, "title": 1, "total_marks": 1}
    ).to_list(length=None)
    by_id = {a["assignment_id"]: a for a in assignments}

    for s in submissions:
        assignment = by_id.get(s["assignment_id"], {})
        s["assignment_title"] = assignment.get("title")
        s["percentage"] = percentage_of(s.get("total_score", 0), assignment.get("total_marks", 0))

    enrollments = await db.course_enrollments.find({"student_id": student_id}, {"_id": 0}).to_list(length=None)

    attendance_docs = await db.student_attendance.find(
        {"records.student_id": student_id}, {"_id": 0}
    ).sort("date", -1).to_list(length=None)
    entries = [
        {"classroom_id": a["classroom_id"], "date": a["date"], "status": r["status"]}
        for a in attendance_docs for r in a.get("records", []) if r["student_id"] == student_id
    ]
    present = len([e for e in entries if e["status"] == "PRESENT"])
    percentages = [s["percentage"] for s in submissions]

    return {
        "student": student,
        "classrooms": classrooms,
        "submissions": submissions,
        "enrollments": enrollments,
        "attendance": {
            "records": entries,
            "total_days": len(entries),
            "present": present,
            "absent": len(entries) - present,
            "attendance_rate": percentage_of(present, len(entries)),
        },
        "stats": {
            "total_classrooms": len(classrooms),
            "total_submissions": len(submissions),
            "average_percentage": round(sum(percentages) / len(percentages), 2) if percentages else 0,
            "total_enrollments": len(enrollments),
        },
    }

def rank_students(rows: List[dict], top: int = 3) -> dict:
    ordered = sorted(rows, key=lambda r: r["average_percentage"], reverse=True)
    return {"top": ordered[:top], "bottom": list(reversed(ordered[-top:])) if ordered else []}

async def get_student_analytics() -> dict:
    students = await db.users.find(
        {"role": Role.STUDENT.value}, {"_id": 0, "user_id": 1, "name": 1, "email": 1}
    ).to_list(length=None)
    names = {s["user_id"]: s for s in students}

    submissions = await db.submissions.find(
        {}, {"_id": 0, "assignment_id": 1, "student_id": 1, "total_score": 1}
    ).to_list(length=None)
    assignments = await db.assignments.find(
        {}, {"_id": 0, "assignment_id": 1, "total_marks": 1, "classroom_id": 1, "is_published": 1}
    ).to_list(length=None)
    marks = {a["assignment_id"]: a.get("total_marks", 0) for a in assignments}

    per_student = {}
    for s in submissions:
        if s["student_id"] not in names:
            continue
        per_student.setdefault(s["student_id"], []).append(
            percentage_of(s.get("total_score", 0), marks.get(s["assignment_id"], 0))
        )

    rows = [{
        "user_id": sid,
        "name": names[sid]["name"],
        "email": names[sid]["email"],
        "submission_count": len(p),
        "average_percentage": round(sum(p) / len(p), 2),
    } for sid, p in per_student.items()]
    ranked = rank_students(rows)

    classrooms = await db.classrooms.find({}, {"_id": 0, "classroom_id": 1, "name": 1, "students": 1}).to_list(length=None)
    published = {}
    for a in assignments:
        if a.get("is_published"):
            published.setdefault(a["classroom_id"], set()).add(a["assignment_id"])
    submitted = {(s["student_id"], s["assignment_id"]) for s in submissions}

    pending = []
    for c in classrooms:
        for sid in c.get("students", []):
            missing = [aid for aid in published.get(c["classroom_id"], ()) if (sid, aid) not in submitted]
            if missing and sid in names:
                pending.append({"user_id": sid, "name": names[sid]["name"], "classroom": c["name"], "count": len(missing)})
    pending.sort(key=lambda p: p["count"], reverse=True)

    total_students = len(students)
    averages = [r["average_percentage"] for r in rows]

    return {
        "overview": {
            "total_students": total_students,
            "students_with_submissions": len(rows),
            "students_without_submissions": total_students - len(rows),
            "submission_rate": percentage_of(len(rows), total_students),
            "overall_average_percentage": round(sum(averages) / len(averages), 2) if averages else 0,
        },
        "performers": {"top3": ranked["top"], "bottom3": ranked["bottom"]},
        "score_distribution": score_distribution(averages),
        "pending_work": {
            "students_with_pending": pending,
            "total_pending_assignments": sum(p["count"] for p in pending),
        },
        "classroom_distribution": [
            {"classroom_id": c["classroom_id"], "name": c["name"], "students": len(c.get("students", []))}
            for c in classrooms
        ],
    }

# ==================== DOCUMENTS ====================

def safe_filename(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", os.path.basename(name or "document"))
    return cleaned.strip("._") or "document"

async def upload_employee_document(
    admin: UserContext,
    employee_id: str,
    document_type: str,
    file: Optional[UploadFile],
    title: Optional[str] = None,
    description: Optional[str] = None,
    issue_date: Optional[datetime] = None
) -> dict:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    employee = await db.users.find_one({"user_id": employee_id, "role": {"$in": EMPLOYEE_ROLES}})
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")

    document_id = generate_id("DOC")
    filename = f"{document_id}_{safe_filename(file.filename)}"
    content = await file.read()

    os.makedirs(DOCUMENT_DIR, exist_ok=True)
    with open(os.path.join(DOCUMENT_DIR, filename), "wb") as f:
        f.write(content)

    document = EmployeeDocument(
        document_id=document_id,
        employee_id=employee_id,
        document_type=document_type,
        title=title or file.filename,
        description=description,
        file_url=f"/uploads/documents/{filename}",
        file_type=file.content_type,
        file_size=len(content),
        issue_date=issue_date or datetime.utcnow(),
        uploaded_by=admin.user_id,
    )
    doc = document.dict()
    await db.employee_documents.insert_one(doc)
    await log_audit(admin, "upload_document", "employee_document", document_id, {
        "employee_id": employee_id,
        "document_type": doc["document_type"],
    })

    return serialize_mongo(doc)

async def get_employee_documents(employee_id: str, document_type: Optional[str] = None) -> List[dict]:
    query = {"employee_id": employee_id}
    if document_type:
        query["document_type"] = document_type
    cursor = db.employee_documents.find(query).sort("uploaded_at", -1)
    return serialize_many(await cursor.to_list(length=None))
