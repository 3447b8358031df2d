from datetime import datetime
from typing import List, Optional
import logging
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError
from app.database import db, generate_id
from app.attendance.attendance_models import (
    StudentAttendance, StudentAttendanceEntry, StudentAttendanceStatus
)
from app.attendance.attendance_utils import midnight, rate
from app.classrooms.classroom_models import ClassroomStatus
from app.common_audit import log_audit

logger = logging.getLogger(__name__)

PRESENT = StudentAttendanceStatus.PRESENT.value


def build_entries(classroom: dict, attendance_data: List[dict]) -> List[dict]:
    """
    One entry per classroom student

    Entries for students outside the classroom are dropped and students
    missing from the input are ABSENT.
    """
    submitted = {
        e["student_id"]: getattr(e["status"], "value", e["status"])
        for e in attendance_data
    }
    return [
        StudentAttendanceEntry(
            student_id=sid,
            status=submitted.get(sid, StudentAttendanceStatus.ABSENT.value)
        ).dict()
        for sid in classroom.get("students", [])
    ]

async def mark_attendance(classroom: dict, teacher, attendance_data: List[dict]) -> dict:
    if classroom.get("status") != ClassroomStatus.ACTIVE.value:
        raise HTTPException(status_code=400, detail="Attendance can only be marked for active classrooms")

    today = midnight()
    existing = await db.student_attendance.find_one({
        "classroom_id": classroom["classroom_id"],
        "date": today
    })
    if existing:
        raise HTTPException(status_code=400, detail="Attendance already marked for today")

    record = StudentAttendance(
        attendance_id=generate_id("ATT"),
        classroom_id=classroom["classroom_id"],
        date=today,
        records=build_entries(classroom, attendance_data),
        marked_by=teacher.user_id,
    )

    try:
        await db.student_attendance.insert_one(record.dict())
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Attendance already marked for today")

    present = len([r for r in record.records if r.status == StudentAttendanceStatus.PRESENT])
    await log_audit(teacher, "mark_classroom_attendance", "classroom", classroom["classroom_id"], {
        "date": today.isoformat(),
        "present": present,
        "total": len(record.records)
    })

    return {
        "message": "Attendance marked successfully",
        "attendance_id": record.attendance_id,
        "present_count": present,
        "absent_count": len(record.records) - present,
    }

async def get_attendance_by_date(classroom: dict, day: datetime) -> Optional[dict]:
    day = midnight(day)
    record = await db.student_attendance.find_one(
        {"classroom_id": classroom["classroom_id"], "date": day},
        {"_id": 0}
    )
    if not record:
        return None

    student_ids = [r["student_id"] for r in record["records"]]
    cursor = db.users.find(
        {"user_id": {"$in": student_ids}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "avatar": 1}
    )
    students = {u["user_id"]: u for u in await cursor.to_list(length=None)}

    total = len(record["records"])
    present = len([r for r in record["records"] if r["status"] == PRESENT])

    return {
        "date": day,
        "total_students": total,
        "present_count": present,
        "absent_count": total - present,
        "attendance_rate": rate(present, total),
        "records": [
            {
                "student_id": r["student_id"],
                "name": students.get(r["student_id"], {}).get("name"),
                "email": students.get(r["student_id"], {}).get("email"),
                "avatar": students.get(r["student_id"], {}).get("avatar"),
                "status": r["status"],
            }
            for r in record["records"]
        ],
    }

async def get_attendance_history(classroom: dict) -> List[dict]:
    pipeline = [
        {"$match": {"classroom_id": classroom["classroom_id"]}},
        {"$unwind": "$records"},
        {"$group": {
            "_id": "$date",
            "present_count": {"$sum": {"$cond": [{"$eq": ["$records.status", PRESENT]}, 1, 0]}},
            "total_students": {"$sum": 1},
        }},
        {"$sort": {"_id": -1}},
    ]
    rows = await db.student_attendance.aggregate(pipeline).to_list(None)

    return [
        {
            "date": r["_id"],
            "present_count": r["present_count"],
            "absent_count": r["total_students"] - r["present_count"],
            "total_students": r["total_students"],
            "attendance_rate": rate(r["present_count"], r["total_students"]),
        }
        for r in rows
    ]

async def get_student_attendance(classroom: dict, student_id: str) -> dict:
    if student_id not in classroom.get("students", []):
        raise HTTPException(status_code=404, detail="Student not found in this classroom")

    student = await db.users.find_one({"user_id": student_id}, {"_id": 0, "user_id": 1, "name": 1, "email": 1})

    cursor = db.student_attendance.find(
        {"classroom_id": classroom["classroom_id"], "records.student_id": student_id},
        {"_id": 0, "date": 1, "records": 1}
    ).sort("date", -1)
    records = await cursor.to_list(length=None)

    attendance = []
    for rec in records:
        entry = next((r for r in rec["records"] if r["student_id"] == student_id), None)
        if entry:
            attendance.append({"date": rec["date"], "status": entry["status"]})

    present = len([a for a in attendance if a["status"] == PRESENT])

    return {
        "student": student,
        "attendance": attendance,
        "stats": {
            "total": len(attendance),
            "present": present,
            "absent": len(attendance) - present,
            "attendance_rate": rate(present, len(attendance)),
        },
    }
