import secrets
from datetime import datetime, timedelta
from typing import List, Optional
import logging
from fastapi import HTTPException
from app.database import db, generate_id
from app.config import FRONTEND_URL
from app.auth.auth_models import Role, EMPLOYEE_ROLES, LeaveRecord, LeaveStatus
from app.auth.auth_permissions import UserContext
from app.attendance.attendance_models import (
    TeacherAttendance, AttendanceSession, AttendanceMetadata, AttendanceStatus,
    AttendanceSource, VerificationMethod, CheckInMethod, GeoPoint, GeofenceZone,
    Geofence, GeofenceApplicability, AttendanceQR, QRUsage,
    RegularizationRequest, RegularizationStatus
)
from app.attendance.attendance_utils import (
    midnight, end_of_day, day_of_week, shift_from_employee, compute_lateness,
    compute_early_departure, work_hours_between, overtime_hours, format_work_hours,
    is_within_radius, scheduled_time, rate, local_now
)
from app.qr_codes import make_qr_data_url
from app.common_audit import log_audit

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

def with_formatted_hours(record: dict) -> dict:
    record.pop("_id", None)
    record["formatted_work_hours"] = format_work_hours(record.get("total_work_hours"))
    return record

def geofence_query(employee_id: str, role: str, classroom_id: Optional[str] = None) -> dict:
    """Active geofences that apply to this employee"""
    applicable = [{"applicable_to.specific_employees": employee_id}]
    if role == Role.TEACHER.value:
        applicable.append({"applicable_to.all_teachers": True})
    if role == Role.FACULTY_ADMIN.value:
        applicable.append({"applicable_to.all_faculty_admins": True})
    if classroom_id:
        applicable.append({"applicable_to.specific_classrooms": classroom_id})
    return {"is_active": True, "$or": applicable}

async def check_geofence(latitude: float, longitude: float, employee: UserContext,
                         classroom_id: Optional[str] = None) -> dict:
    """
    Find the first applicable geofence containing the point

    Returns:
        dict: is_within, geofence name, distance in meters
    """
    cursor = db.geofences.find(geofence_query(employee.user_id, employee.role, classroom_id), {"_id": 0})
    geofences = await cursor.to_list(length=None)

    for fence in geofences:
        inside, distance = is_within_radius(latitude, longitude, fence["center"], fence["radius"])
        if inside:
            return {"is_within": True, "geofence": fence["name"], "distance": round(distance, 2)}

    return {"is_within": False, "geofence": None, "distance": None}

async def _valid_qr(code: str, now: datetime) -> dict:
    qr = await db.attendance_qr.find_one({
        "code": code.strip().upper(),
        "is_active": True,
        "valid_from": {"$lte": now},
        "valid_until": {"$gte": now},
    })
    if not qr:
        raise HTTPException(status_code=400, detail="Invalid or expired QR code")
    if qr.get("current_uses", 0) >= qr.get("max_uses", 1):
        raise HTTPException(status_code=400, detail="QR code has reached maximum uses")
    return qr

# ==================== CHECK-IN / CHECK-OUT ====================

async def check_in(employee: UserContext, data: dict) -> dict:
    """
    Record today's check-in with location, optional QR and lateness

    Raises:
        400: Already checked in, invalid/expired/used-up QR code
    """
    now = local_now()
    today = midnight(now)
    shift = shift_from_employee(employee.profile)

    existing = await db.teacher_attendance.find_one({"employee_id": employee.user_id, "date": today})
    if existing and existing.get("actual_check_in"):
        raise HTTPException(status_code=400, detail="Already checked in today")

    qr = await _valid_qr(data["qr_code"], now) if data.get("qr_code") else None

    latitude, longitude = data["latitude"], data["longitude"]
    geofence = await check_geofence(latitude, longitude, employee, data.get("classroom_id"))
    point = GeoPoint.from_lat_lon(latitude, longitude)

    session = AttendanceSession(
        start_time=now,
        location=point,
        accuracy=data.get("accuracy"),
        altitude=data.get("altitude"),
        address=data.get("address") or {},
        device_info=data.get("device_info") or {},
        is_within_geofence=geofence["is_within"],
        check_in_method=CheckInMethod.QR_SCAN if qr else data.get("method", CheckInMethod.GPS),
    )

    late_minutes, is_late = compute_lateness(now, shift, today)
    status = AttendanceStatus.LATE if is_late else AttendanceStatus.PRESENT

    record = TeacherAttendance(
        record_id=existing["record_id"] if existing else generate_id("TAT"),
        employee_id=employee.user_id,
        employee_name=employee.name,
        employee_email=employee.email,
        employee_role=employee.role,
        date=today,
        day_of_week=day_of_week(today),
        status=status,
        scheduled_start_time=shift["start"],
        scheduled_end_time=shift["end"],
        actual_check_in=session,
        sessions=[session],
        late_minutes=late_minutes,
        marked_by=employee.user_id,
        metadata=AttendanceMetadata(
            source=AttendanceSource.QR_SCANNER if qr else AttendanceSource.WEB_APP,
            verification_method=VerificationMethod.QR_CODE if qr else VerificationMethod.NONE,
        ),
        geofence_zones=[
            GeofenceZone(name=geofence["geofence"], center=point, distance=geofence["distance"], entered_at=now)
        ] if geofence["is_within"] else [],
    )
    doc = record.dict()

    if existing:
        doc.pop("created_at")
        await db.teacher_attendance.update_one({"record_id": existing["record_id"]}, {"$set": doc})
    else:
        await db.teacher_attendance.insert_one(doc)

    if qr:
        usage = QRUsage(employee_id=employee.user_id, used_at=now, location=point, accuracy=data.get("accuracy"))
        await db.attendance_qr.update_one(
            {"qr_id": qr["qr_id"]},
            {"$inc": {"current_uses": 1}, "$push": {"used_by": usage.dict()}}
        )

    logger.info(
        "Check-in %s at %s status=%s late=%s within_geofence=%s",
        employee.user_id, now.isoformat(), status.value, late_minutes, geofence["is_within"]
    )

    after_start = now > scheduled_time(today, shift["start"])
    return {
        "success": True,
        "message": "Check-in successful",
        "attendance": {
            **with_formatted_hours(doc),
            "shift_info": {
                "scheduled_start": shift["start"],
                "scheduled_end": shift["end"],
                "grace_period": shift["grace_period"],
                "working_hours": shift["working_hours"],
                "late_minutes": late_minutes,
                "status": status.value,
            },
        },
        "geofence_status": geofence,
        "shift_status": {
            "on_time": late_minutes == 0,
            "late_by": late_minutes,
            "grace_period_used": after_start and not is_late,
        },
    }

async def check_out(employee: UserContext, data: dict) -> dict:
    """
    Close today's attendance: work hours, overtime and early departure

    Raises:
        404: No check-in today
        400: Already checked out
    """
    now = local_now()
    today = midnight(now)
    shift = shift_from_employee(employee.profile)

    record = await db.teacher_attendance.find_one({"employee_id": employee.user_id, "date": today})
    if not record or not record.get("actual_check_in"):
        raise HTTPException(status_code=404, detail="No check-in found for today")

    if record.get("actual_check_out"):
        raise HTTPException(status_code=400, detail="Already checked out today")

    if record.get("scheduled_end_time"):
        shift["end"] = record["scheduled_end_time"]

    session = AttendanceSession(
        start_time=now,
        location=GeoPoint.from_lat_lon(data["latitude"], data["longitude"]),
        accuracy=data.get("accuracy"),
        altitude=data.get("altitude"),
        address=data.get("address") or {},
        device_info=data.get("device_info") or {},
        check_in_method=record["actual_check_in"].get("check_in_method", CheckInMethod.GPS.value),
    ).dict()

    total = work_hours_between(record["actual_check_in"]["start_time"], now)
    early = compute_early_departure(now, shift, today)

    update = {
        "actual_check_out": session,
        "total_work_hours": total,
        "overtime": overtime_hours(total, shift["working_hours"]),
        "early_departure_minutes": early,
        "updated_at": datetime.utcnow(),
    }
    await db.teacher_attendance.update_one(
        {"record_id": record["record_id"]},
        {"$set": update, "$push": {"sessions": session}}
    )

    logger.info("Check-out %s worked=%sh early=%sm", employee.user_id, total, early)

    record.update(update)
    record.setdefault("sessions", []).append(session)
    return {
        "success": True,
        "message": "Check-out successful",
        "attendance": {
            **with_formatted_hours(record),
            "shift_info": {
                "scheduled_end": shift["end"],
                "early_departure": early,
                "total_work_hours": format_work_hours(total),
            },
        },
    }

# ==================== REGULARIZATION ====================

async def request_regularization(employee: UserContext, record_id: str, requested_status: str, reason: str) -> dict:
    record = await db.teacher_attendance.find_one({"record_id": record_id, "employee_id": employee.user_id})
    if not record:
        raise HTTPException(status_code=404, detail="Attendance record not found")

    current = record.get("regularization_request") or {}
    if current.get("status") == RegularizationStatus.PENDING.value:
        raise HTTPException(status_code=400, detail="A regularization request is already pending for this record")

    request = RegularizationRequest(
        request_id=generate_id("REG"),
        requested_status=requested_status,
        reason=reason,
    )
    await db.teacher_attendance.update_one(
        {"record_id": record_id},
        {"$set": {"regularization_request": request.dict(), "updated_at": datetime.utcnow()}}
    )
    await log_audit(employee, "request_regularization", "attendance", record_id, {
        "requested_status": request.requested_status.value
    })

    return {"message": "Regularization request submitted", "request": request.dict()}

# ==================== QR CODES ====================

async def generate_qr(creator: UserContext, data: dict) -> dict:
    now = local_now()
    code = secrets.token_hex(4).upper()
    qr_url = f"{FRONTEND_URL}/attendance/scan/{code}"

    location = None
    if data.get("latitude") is not None and data.get("longitude") is not None:
        location = GeoPoint.from_lat_lon(data["latitude"], data["longitude"])

    qr = AttendanceQR(
        qr_id=generate_id("QR"),
        code=code,
        classroom_id=data.get("classroom_id"),
        created_by=creator.user_id,
        valid_from=now,
        valid_until=now + timedelta(hours=data.get("valid_hours", 1)),
        max_uses=data.get("max_uses", 1),
        location=location,
        geofence_radius=data.get("geofence_radius", 100),
        qr_url=qr_url,
        qr_image=make_qr_data_url(qr_url),
    )
    await db.attendance_qr.insert_one(qr.dict())
    await log_audit(creator, "generate_attendance_qr", "attendance_qr", qr.qr_id, {
        "max_uses": qr.max_uses,
        "valid_until": qr.valid_until.isoformat()
    })

    return {
        "message": "QR code generated successfully",
        "qr_id": qr.qr_id,
        "qr_code": code,
        "qr_code_url": qr_url,
        "qr_image": qr.qr_image,
        "valid_until": qr.valid_until,
    }

# ==================== VIEWS ====================

async def get_today(employee: UserContext) -> dict:
    record = await db.teacher_attendance.find_one({"employee_id": employee.user_id, "date": midnight()})
    if not record:
        raise HTTPException(status_code=404, detail="No attendance record for today")
    return with_formatted_hours(record)

def history_summary(records: List[dict]) -> dict:
    by_status = {s.value: 0 for s in AttendanceStatus}
    for r in records:
        by_status[r["status"]] = by_status.get(r["status"], 0) + 1
    total_hours = round(sum(r.get("total_work_hours") or 0 for r in records), 2)
    attended = by_status["PRESENT"] + by_status["LATE"]
    return {
        "total_days": len(records),
        "by_status": by_status,
        "total_work_hours": total_hours,
        "average_work_hours": round(total_hours / len(records), 2) if records else 0,
        "total_late_minutes": sum(r.get("late_minutes") or 0 for r in records),
        "attendance_rate": rate(attended, len(records)),
    }

async def get_history(
    employee_id: Optional[str],
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: Optional[str] = None
) -> dict:
    """Attendance records newest first; employee_id None means everyone"""
    query = {}
    if employee_id:
        query["employee_id"] = employee_id
    if status:
        query["status"] = status
    if start_date or end_date:
        query["date"] = {}
        if start_date:
            query["date"]["$gte"] = midnight(start_date)
        if end_date:
            query["date"]["$lte"] = end_of_day(end_date)

    cursor = db.teacher_attendance.find(query, {"_id": 0}).sort("date", -1)
    records = [with_formatted_hours(r) for r in await cursor.to_list(length=None)]

    return {"records": records, "summary": history_summary(records)}

def _live_entry(record: dict, now: datetime) -> dict:
    check_in = record["actual_check_in"]
    return {
        "employee_id": record["employee_id"],
        "employee_name": record.get("employee_name"),
        "employee_email": record.get("employee_email"),
        "check_in_time": check_in["start_time"],
        "last_location": check_in.get("location"),
        "last_address": (check_in.get("address") or {}).get("formatted_address"),
        "is_within_geofence": check_in.get("is_within_geofence", False),
        "session_duration": max(int((now - check_in["start_time"]).total_seconds() // 60), 0),
    }

async def get_live_location(employee_id: str) -> dict:
    now = local_now()
    record = await db.teacher_attendance.find_one({
        "employee_id": employee_id,
        "date": midnight(now),
        "actual_check_in": {"$ne": None},
        "actual_check_out": None,
    })
    if not record:
        raise HTTPException(status_code=404, detail="Employee is not checked in or already checked out")
    return _live_entry(record, now)

async def get_live_employees() -> List[dict]:
    now = local_now()
    cursor = db.teacher_attendance.find({
        "date": midnight(now),
        "actual_check_in": {"$ne": None},
        "actual_check_out": None,
    })
    return [_live_entry(r, now) for r in await cursor.to_list(length=None)]

# ==================== GEOFENCES ====================

async def create_geofence(admin: UserContext, data: dict) -> dict:
    fence = Geofence(
        geofence_id=generate_id("GEO"),
        name=data["name"],
        description=data.get("description"),
        center=GeoPoint.from_lat_lon(data["latitude"], data["longitude"]),
        radius=data.get("radius", 100),
        address=data.get("address") or {},
        applicable_to=data.get("applicable_to") or GeofenceApplicability(),
        created_by=admin.user_id,
    )
    doc = fence.dict()
    await db.geofences.insert_one(doc)
    doc.pop("_id", None)
    await log_audit(admin, "create_geofence", "geofence", fence.geofence_id, {"radius": fence.radius})

    return {"message": "Geofence created successfully", "geofence": doc}

async def list_geofences(active_only: bool = False) -> List[dict]:
    query = {"is_active": True} if active_only else {}
    cursor = db.geofences.find(query, {"_id": 0}).sort("created_at", -1)
    return await cursor.to_list(length=None)

# ==================== ANALYTICS ====================

def employee_analytics_row(row: dict) -> dict:
    total = row["total_days"]
    geo = row["geo_tagged_entries"]
    return {
        "employee_id": row["_id"]["employee_id"],
        "employee_name": row["_id"].get("employee_name"),
        "total_days": total,
        "present_days": row["present_days"],
        "late_days": row["late_days"],
        "absent_days": row["absent_days"],
        "attendance_rate": rate(row["present_days"], total),
        "average_work_hours": round(row.get("average_work_hours") or 0, 2),
        "total_work_hours": round(row.get("total_work_hours") or 0, 2),
        "geo_tagged_percentage": rate(geo, total),
        "geofence_compliance": rate(row["within_geofence_count"], geo),
    }

async def get_analytics(start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> dict:
    match = {}
    if start_date or end_date:
        match["date"] = {}
        if start_date:
            match["date"]["$gte"] = midnight(start_date)
        if end_date:
            match["date"]["$lte"] = end_of_day(end_date)

    def count_status(status: str) -> dict:
        return {"$sum": {"$cond": [{"$eq": ["$status", status]}, 1, 0]}}

    pipeline = [
        {"$match": match},
        {"$group": {
            "_id": {"employee_id": "$employee_id", "employee_name": "$employee_name"},
            "total_days": {"$sum": 1},
            "present_days": count_status(AttendanceStatus.PRESENT.value),
            "late_days": count_status(AttendanceStatus.LATE.value),
            "absent_days": count_status(AttendanceStatus.ABSENT.value),
            "average_work_hours": {"$avg": "$total_work_hours"},
            "total_work_hours": {"$sum": "$total_work_hours"},
            "geo_tagged_entries": {
                "$sum": {"$cond": [{"$ifNull": ["$actual_check_in.location", False]}, 1, 0]}
            },
            "within_geofence_count": {
                "$sum": {"$cond": [{"$eq": ["$actual_check_in.is_within_geofence", True]}, 1, 0]}
            },
        }},
    ]
    rows = await db.teacher_attendance.aggregate(pipeline).to_list(None)

    employees = sorted(
        (employee_analytics_row(r) for r in rows),
        key=lambda e: e["attendance_rate"],
        reverse=True
    )

    total_records = sum(e["total_days"] for e in employees)
    total_hours = round(sum(e["total_work_hours"] for e in employees), 2)

    return {
        "employee_analytics": employees,
        "overall": {
            "total_records": total_records,
            "total_employees": len(employees),
            "average_attendance_rate": round(
                sum(e["attendance_rate"] for e in employees) / len(employees), 2
            ) if employees else 0,
            "total_work_hours": total_hours,
            "average_work_hours": round(total_hours / total_records, 2) if total_records else 0,
            "geo_tagged_total": sum(r["geo_tagged_entries"] for r in rows),
        },
    }

# ==================== LEAVES ====================

async def apply_leave(employee: UserContext, data: dict) -> dict:
    """
    Employee leave application; stays PENDING until an admin decides

    Raises:
        400: Date range reversed or not enough leave left
    """
    from_date = midnight(data["from_date"])
    to_date = midnight(data["to_date"])
    if to_date < from_date:
        raise HTTPException(status_code=400, detail="to_date must not be before from_date")

    days = (to_date - from_date).days + 1
    leaves = ((employee.profile.get("employee_record") or {}).get("leaves")) or {}
    if days > leaves.get("remaining", 0):
        raise HTTPException(status_code=400, detail="Insufficient leave balance")

    leave = LeaveRecord(
        leave_id=generate_id("LEV"),
        type=data.get("type") or "CASUAL",
        from_date=from_date,
        to_date=to_date,
        days=days,
        reason=data.get("reason"),
        status=LeaveStatus.PENDING,
    )
    await db.users.update_one(
        {"user_id": employee.user_id, "role": {"$in": EMPLOYEE_ROLES}},
        {"$push": {"employee_record.leaves.records": leave.dict()},
         "$set": {"updated_at": datetime.utcnow()}}
    )
    await log_audit(employee, "apply_leave", "leave", leave.leave_id, {"days": days})

    return {"message": "Leave application submitted", "leave": leave.dict()}
