from datetime import datetime, timedelta
from typing import List, Optional
import logging
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError
from app.database import db, generate_id
from app.config import ATTENDANCE_DELETE_WINDOW_DAYS
from app.auth.auth_models import EMPLOYEE_ROLES
from app.auth.auth_permissions import UserContext
from app.attendance.attendance_models import (
    TeacherAttendance, AttendanceSession, AttendanceMetadata, AttendanceStatus,
    AttendanceSource, VerificationMethod, GeoPoint, RegularizationStatus
)
from app.attendance.attendance_utils import (
    midnight, day_range, end_of_day, month_range, day_of_week, shift_from_employee,
    compute_lateness, compute_early_departure, work_hours_between, scheduled_time,
    status_color, rate, local_now
)
from app.attendance.employee_attendance_service import with_formatted_hours, history_summary
from app.common_audit import log_audit

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

async def get_employee_or_404(employee_id: str) -> dict:
    employee = await db.users.find_one({"user_id": employee_id, "role": {"$in": EMPLOYEE_ROLES}})
    if not employee:
        raise HTTPException(status_code=404, detail="Teacher or Faculty Admin not found")
    return employee

async def get_record_or_404(record_id: str) -> dict:
    record = await db.teacher_attendance.find_one({"record_id": record_id})
    if not record:
        raise HTTPException(status_code=404, detail="Attendance record not found")
    return record

def _date_filter(start_date=None, end_date=None) -> dict:
    if not (start_date or end_date):
        return {}
    date_query = {}
    if start_date:
        date_query["$gte"] = midnight(start_date)
    if end_date:
        date_query["$lte"] = end_of_day(end_date)
    return {"date": date_query}

def _base_record(employee: dict, day: datetime, status: AttendanceStatus, admin: UserContext,
                 source: AttendanceSource, notes: str = "") -> TeacherAttendance:
    shift = shift_from_employee(employee)
    now = datetime.utcnow()
    return TeacherAttendance(
        record_id=generate_id("TAT"),
        employee_id=employee["user_id"],
        employee_name=employee["name"],
        employee_email=employee["email"],
        employee_role=employee["role"],
        date=day,
        day_of_week=day_of_week(day),
        status=status,
        scheduled_start_time=shift["start"],
        scheduled_end_time=shift["end"],
        marked_by=admin.user_id if admin else employee["user_id"],
        notes=notes,
        metadata=AttendanceMetadata(
            source=source,
            verification_method=VerificationMethod.NONE,
            verified_by=admin.user_id if admin else None,
            verified_at=now if admin else None,
        ),
    )

# ==================== MARK / UPDATE / DELETE ====================

def apply_manual_times(record: TeacherAttendance, shift: dict, data: dict, explicit_status: bool):
    """
    Fill a manual check-in from admin supplied times

    Work hours come from the times unless work_hours is given; late and early
    minutes come from the shift unless given explicitly.
    """
    day = record.date
    check_in_time = data.get("check_in_time")
    check_out_time = data.get("check_out_time")
    notes = data.get("notes")

    session = AttendanceSession(
        start_time=check_in_time or scheduled_time(day, shift["start"]),
        end_time=check_out_time,
        location=GeoPoint(**data["location"]) if data.get("location") else GeoPoint(coordinates=[0, 0]),
        address=data.get("address") or {
            "formatted_address": "Admin Marked",
            "city": "Not Specified",
            "state": "Not Specified",
            "country": "India",
        },
        check_in_method=data.get("check_in_method") or "manual",
        is_within_geofence=True,
        notes=notes or "Marked by admin",
    )
    record.actual_check_in = session
    record.sessions = [session]

    if check_out_time:
        record.actual_check_out = session.copy(update={"start_time": check_out_time})

    if data.get("work_hours") is not None:
        record.total_work_hours = data["work_hours"]
    elif check_in_time and check_out_time:
        record.total_work_hours = work_hours_between(check_in_time, check_out_time)

    if data.get("late_minutes") is not None:
        record.late_minutes = data["late_minutes"]
    elif check_in_time:
        late, is_late = compute_lateness(check_in_time, shift, day)
        record.late_minutes = late
        if is_late and not explicit_status:
            record.status = AttendanceStatus.LATE

    if data.get("early_departure_minutes") is not None:
        record.early_departure_minutes = data["early_departure_minutes"]
    elif check_out_time:
        record.early_departure_minutes = compute_early_departure(check_out_time, shift, day)

async def mark_attendance(admin: UserContext, data: dict) -> dict:
    """
    Mark attendance for any employee on any date

    Raises:
        404: Unknown employee
        400: A record already exists for that date
    """
    employee = await get_employee_or_404(data["employee_id"])
    day = midnight(data["date"])
    start, end = day_range(day)

    existing = await db.teacher_attendance.find_one({
        "employee_id": employee["user_id"],
        "date": {"$gte": start, "$lt": end}
    })
    if existing:
        raise HTTPException(
            status_code=400,
            detail="Attendance already marked for this date. Use update API instead."
        )

    is_leave = data.get("is_leave") or data.get("status") == AttendanceStatus.ON_LEAVE
    status = data.get("status") or (AttendanceStatus.ON_LEAVE if is_leave else AttendanceStatus.PRESENT)

    record = _base_record(employee, day, status, admin, AttendanceSource.MANUAL_ENTRY, data.get("notes") or "")

    if is_leave:
        record.status = AttendanceStatus.ON_LEAVE
        record.leave_id = generate_id("LEV")
        record.total_work_hours = 0
    else:
        apply_manual_times(record, shift_from_employee(employee), data, explicit_status=bool(data.get("status")))

    doc = record.dict()
    try:
        await db.teacher_attendance.insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(
            status_code=400,
            detail="Attendance already marked for this date. Use update API instead."
        )
    await log_audit(admin, "mark_attendance", "attendance", record.record_id, {
        "employee_id": employee["user_id"],
        "date": day.isoformat(),
        "status": record.status.value
    })

    return {"success": True, "message": "Attendance marked successfully", "attendance": with_formatted_hours(doc)}

async def update_attendance(admin: UserContext, record_id: str, data: dict) -> dict:
    record = await get_record_or_404(record_id)
    now = datetime.utcnow()
    updates = {}

    check_in = dict(record.get("actual_check_in") or {})
    check_out = dict(record.get("actual_check_out") or {})

    if data.get("check_in_time"):
        check_in["start_time"] = data["check_in_time"]
        check_in.setdefault("check_in_method", "manual")
        if data.get("notes"):
            check_in["notes"] = data["notes"]
    if data.get("check_out_time"):
        check_out["start_time"] = data["check_out_time"]
    if check_in and data.get("location"):
        check_in["location"] = data["location"]
    if check_in and data.get("address"):
        check_in["address"] = data["address"]

    if check_in:
        updates["actual_check_in"] = check_in
    if check_out:
        updates["actual_check_out"] = check_out

    for field in ("status", "notes", "total_work_hours", "late_minutes", "early_departure_minutes"):
        if data.get(field) is not None:
            value = data[field]
            updates[field] = getattr(value, "value", value)

    if check_in.get("start_time") and check_out.get("start_time"):
        updates["total_work_hours"] = work_hours_between(check_in["start_time"], check_out["start_time"])

    updates.update({
        "marked_by": admin.user_id,
        "marked_at": now,
        "updated_at": now,
        "metadata.last_updated_by": admin.user_id,
        "metadata.last_updated_at": now,
        "metadata.update_reason": data.get("reason") or "Admin correction",
    })

    await db.teacher_attendance.update_one({"record_id": record_id}, {"$set": updates})
    await log_audit(admin, "update_attendance", "attendance", record_id, {
        "fields": sorted(k for k in updates if not k.startswith("metadata."))
    })

    updated = await db.teacher_attendance.find_one({"record_id": record_id}, {"_id": 0})
    return {"success": True, "message": "Attendance updated successfully", "attendance": with_formatted_hours(updated)}

async def get_attendance(record_id: str) -> dict:
    record = await get_record_or_404(record_id)
    employee = await db.users.find_one(
        {"user_id": record["employee_id"]},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "employee_record.shift_timings": 1,
         "employee_record.department": 1, "employee_record.designation": 1}
    )
    record = with_formatted_hours(record)
    record["employee"] = employee
    return record

async def delete_attendance(admin: UserContext, record_id: str) -> dict:
    record = await get_record_or_404(record_id)

    cutoff = local_now() - timedelta(days=ATTENDANCE_DELETE_WINDOW_DAYS)
    if record["date"] < cutoff:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete attendance older than {ATTENDANCE_DELETE_WINDOW_DAYS} days. "
                   "Please mark as correction instead."
        )

    await db.teacher_attendance.delete_one({"record_id": record_id})
    await log_audit(admin, "delete_attendance", "attendance", record_id, {
        "employee_id": record["employee_id"],
        "date": record["date"].isoformat()
    })

    return {"success": True, "message": "Attendance record deleted successfully"}

async def bulk_mark_attendance(admin: UserContext, data: dict) -> dict:
    """
    Mark many employees for one date

    Never fails as a whole: every employee lands in successful, skipped or failed.
    """
    day = midnight(data["date"])
    start, end = day_range(day)
    status = AttendanceStatus(data.get("status") or AttendanceStatus.PRESENT)
    employee_ids = list(dict.fromkeys(data["employee_ids"]))

    cursor = db.users.find({"user_id": {"$in": employee_ids}, "role": {"$in": EMPLOYEE_ROLES}})
    employees = {e["user_id"]: e for e in await cursor.to_list(length=None)}

    existing_ids = set(await db.teacher_attendance.distinct(
        "employee_id",
        {"employee_id": {"$in": employee_ids}, "date": {"$gte": start, "$lt": end}}
    ))

    results = {"successful": [], "skipped": [], "failed": []}

    for employee_id in employee_ids:
        employee = employees.get(employee_id)
        if not employee:
            results["failed"].append({"employee_id": employee_id, "reason": "Employee not found or invalid role"})
            continue

        if employee_id in existing_ids:
            results["skipped"].append({
                "employee_id": employee_id,
                "name": employee["name"],
                "reason": "Attendance already exists"
            })
            continue

        try:
            record = _base_record(
                employee, day, status, admin, AttendanceSource.BULK_ENTRY,
                data.get("reason") or f"Bulk marked as {status.value}"
            )
            if status not in (AttendanceStatus.HOLIDAY, AttendanceStatus.ON_LEAVE):
                record.total_work_hours = shift_from_employee(employee)["working_hours"]
            await db.teacher_attendance.insert_one(record.dict())
            results["successful"].append({
                "employee_id": employee_id,
                "name": employee["name"],
                "record_id": record.record_id
            })
        except Exception as e:
            logger.error("Bulk attendance failed for %s: %s", employee_id, e, exc_info=True)
            results["failed"].append({"employee_id": employee_id, "reason": str(e)})

    await log_audit(admin, "bulk_mark_attendance", "attendance", day.date().isoformat(), {
        "status": status.value,
        "successful": len(results["successful"]),
        "skipped": len(results["skipped"]),
        "failed": len(results["failed"])
    })

    return {
        "success": True,
        "message": (
            f"Bulk attendance marked: {len(results['successful'])} successful, "
            f"{len(results['skipped'])} skipped, {len(results['failed'])} failed"
        ),
        "results": results,
    }

# ==================== REGULARIZATION ====================

async def get_pending_regularizations(
    page: int = 1,
    limit: int = 20,
    employee_id: Optional[str] = None,
    from_date=None,
    to_date=None
) -> dict:
    query = {
        "regularization_request.requested": True,
        "regularization_request.status": RegularizationStatus.PENDING.value,
        **_date_filter(from_date, to_date),
    }
    if employee_id:
        query["employee_id"] = employee_id

    cursor = (
        db.teacher_attendance.find(query, {"_id": 0})
        .sort("regularization_request.requested_at", -1)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    records = await cursor.to_list(length=limit)
    total = await db.teacher_attendance.count_documents(query)

    return {
        "regularizations": [with_formatted_hours(r) for r in records],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }

async def decide_regularization(admin: UserContext, request_id: str, action: str, reason: Optional[str] = None) -> dict:
    record = await db.teacher_attendance.find_one({"regularization_request.request_id": request_id})
    if not record:
        raise HTTPException(status_code=404, detail="Regularization request not found")

    request = record["regularization_request"]
    if request.get("status") != RegularizationStatus.PENDING.value:
        raise HTTPException(status_code=400, detail=f"Request already {request.get('status', '').lower()}")

    now = datetime.utcnow()
    updates = {
        "regularization_request.status": action,
        "regularization_request.approved_by": admin.user_id,
        "regularization_request.approved_at": now,
        "updated_at": now,
    }
    if reason:
        updates["regularization_request.admin_remarks"] = reason

    if action == RegularizationStatus.APPROVED.value:
        updates["status"] = request["requested_status"]
        updates["notes"] = f"{record.get('notes') or ''} [Regularized: {request['reason']}]".strip()
        check_in = (record.get("actual_check_in") or {}).get("start_time")
        check_out = (record.get("actual_check_out") or {}).get("start_time")
        if check_in and check_out:
            updates["total_work_hours"] = work_hours_between(check_in, check_out)

    await db.teacher_attendance.update_one({"record_id": record["record_id"]}, {"$set": updates})
    await log_audit(admin, "decide_regularization", "attendance", record["record_id"], {
        "request_id": request_id,
        "action": action
    })

    updated = await db.teacher_attendance.find_one({"record_id": record["record_id"]}, {"_id": 0})
    return {
        "success": True,
        "message": f"Regularization request {action.lower()} successfully",
        "attendance": with_formatted_hours(updated),
    }

# ==================== CALENDAR / STATS ====================

async def get_calendar(month: Optional[int], year: Optional[int], employee_id: Optional[str] = None) -> dict:
    if not month or not year:
        raise HTTPException(status_code=400, detail="Month and year are required")
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")

    start, end = month_range(year, month)
    query = {"date": {"$gte": start, "$lt": end}}
    if employee_id and employee_id != "all":
        query["employee_id"] = employee_id

    cursor = db.teacher_attendance.find(query, {"_id": 0}).sort("date", 1)
    records = await cursor.to_list(length=None)

    days = {}
    for r in records:
        key = r["date"].date().isoformat()
        days.setdefault(key, []).append({
            "record_id": r["record_id"],
            "title": f"{r['employee_name']} - {r['status']}",
            "employee_id": r["employee_id"],
            "employee_name": r["employee_name"],
            "status": r["status"],
            "color": status_color(r["status"]),
            "check_in": (r.get("actual_check_in") or {}).get("start_time"),
            "check_out": (r.get("actual_check_out") or {}).get("start_time"),
            "work_hours": r.get("total_work_hours", 0),
            "notes": r.get("notes"),
        })

    def count(status: str) -> int:
        return len([r for r in records if r["status"] == status])

    return {
        "success": True,
        "month": month,
        "year": year,
        "days": [{"date": d, "records": entries} for d, entries in sorted(days.items())],
        "summary": {
            "total": len(records),
            "present": count("PRESENT"),
            "absent": count("ABSENT"),
            "late": count("LATE"),
            "leave": count("ON_LEAVE"),
            "half_day": count("HALF_DAY"),
        },
    }

async def get_stats(from_date=None, to_date=None, department: Optional[str] = None,
                    employee_id: Optional[str] = None) -> dict:
    match = _date_filter(from_date, to_date)
    if employee_id:
        match["employee_id"] = employee_id

    lookup = [
        {"$match": match},
        {"$lookup": {
            "from": "users",
            "localField": "employee_id",
            "foreignField": "user_id",
            "as": "employee"
        }},
        {"$unwind": "$employee"},
    ]
    if department:
        lookup.append({"$match": {"employee.employee_record.department": department}})

    def count_status(status: str) -> dict:
        return {"$sum": {"$cond": [{"$eq": ["$status", status]}, 1, 0]}}

    by_status = await db.teacher_attendance.aggregate(lookup + [
        {"$group": {
            "_id": "$status",
            "count": {"$sum": 1},
            "employees": {"$addToSet": "$employee_id"},
            "total_work_hours": {"$sum": "$total_work_hours"},
            "avg_late_minutes": {"$avg": "$late_minutes"},
        }},
        {"$sort": {"_id": 1}},
    ]).to_list(None)

    by_department = await db.teacher_attendance.aggregate(lookup + [
        {"$group": {
            "_id": "$employee.employee_record.department",
            "employees": {"$addToSet": "$employee_id"},
            "present": count_status("PRESENT"),
            "absent": count_status("ABSENT"),
            "late": count_status("LATE"),
            "leave": count_status("ON_LEAVE"),
        }},
        {"$sort": {"_id": 1}},
    ]).to_list(None)

    return {
        "success": True,
        "summary": [
            {
                "status": s["_id"],
                "count": s["count"],
                "unique_employees": len(s["employees"]),
                "total_work_hours": round(s.get("total_work_hours") or 0, 2),
                "avg_late_minutes": round(s.get("avg_late_minutes") or 0, 2),
            }
            for s in by_status
        ],
        "by_department": [
            {
                "department": d["_id"] or "Unassigned",
                "total_employees": len(d["employees"]),
                "present": d["present"],
                "absent": d["absent"],
                "late": d["late"],
                "leave": d["leave"],
                "attendance_rate": rate(d["present"], d["present"] + d["absent"] + d["late"]),
            }
            for d in by_department
        ],
    }

async def check_existing(date_value, employee_ids: Optional[str]) -> dict:
    if not date_value or not employee_ids:
        raise HTTPException(status_code=400, detail="Date and employeeIds are required")

    start, end = day_range(midnight(date_value))
    ids = [i.strip() for i in employee_ids.split(",") if i.strip()]
    existing = await db.teacher_attendance.distinct(
        "employee_id",
        {"employee_id": {"$in": ids}, "date": {"$gte": start, "$lt": end}}
    )
    return {"success": True, "existing_employee_ids": existing}

# ==================== REPORTS ====================

async def get_teacher_attendance_report(start_date=None, end_date=None, employee_id: Optional[str] = None,
                                        status: Optional[str] = None) -> List[dict]:
    query = _date_filter(start_date, end_date)
    if employee_id:
        query["employee_id"] = employee_id
    if status:
        query["status"] = status

    cursor = db.teacher_attendance.find(query, {"_id": 0, "sessions": 0}).sort("date", -1)
    records = await cursor.to_list(length=None)

    shifts = {}
    ids = list({r["employee_id"] for r in records})
    if ids:
        users = await db.users.find(
            {"user_id": {"$in": ids}}, {"_id": 0, "user_id": 1, "employee_record.shift_timings": 1}
        ).to_list(length=None)
        shifts = {u["user_id"]: shift_from_employee(u) for u in users}

    for r in records:
        with_formatted_hours(r)
        r["shift_timings"] = shifts.get(r["employee_id"])
    return records

async def get_summary(start_date=None, end_date=None) -> dict:
    match = _date_filter(start_date, end_date)
    cursor = db.teacher_attendance.find(
        match, {"_id": 0, "employee_id": 1, "employee_name": 1, "status": 1, "total_work_hours": 1, "late_minutes": 1}
    )
    records = await cursor.to_list(length=None)

    summary = history_summary(records)

    per_employee = {}
    for r in records:
        entry = per_employee.setdefault(r["employee_id"], {
            "employee_id": r["employee_id"],
            "employee_name": r.get("employee_name"),
            "records": [],
        })
        entry["records"].append(r)

    employees = []
    for entry in per_employee.values():
        stats = history_summary(entry.pop("records"))
        employees.append({**entry, **stats})
    employees.sort(key=lambda e: e["attendance_rate"], reverse=True)

    return {"overall": summary, "employees": employees}

async def get_today_status() -> dict:
    start, end = day_range(midnight())
    cursor = db.teacher_attendance.find(
        {"date": {"$gte": start, "$lt": end}},
        {"_id": 0, "employee_id": 1, "employee_name": 1, "status": 1,
         "actual_check_in.start_time": 1, "late_minutes": 1}
    )
    records = await cursor.to_list(length=None)

    cursor = db.users.find(
        {"role": {"$in": EMPLOYEE_ROLES}, "is_active": {"$ne": False}},
        {"_id": 0, "user_id": 1, "name": 1, "email": 1, "role": 1}
    )
    employees = await cursor.to_list(length=None)

    marked = {r["employee_id"] for r in records}
    counts = {s.value: 0 for s in AttendanceStatus}
    for r in records:
        counts[r["status"]] = counts.get(r["status"], 0) + 1

    attended = (AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value)
    return {
        "date": start,
        "counts": counts,
        "total_marked": len(records),
        "total_employees": len(employees),
        "not_marked_count": len([e for e in employees if e["user_id"] not in marked]),
        "present": [r for r in records if r["status"] in attended],
        "absent": [r for r in records if r["status"] == AttendanceStatus.ABSENT.value],
        "not_marked": [e for e in employees if e["user_id"] not in marked],
    }

async def get_employee_attendance(employee_id: str, month: Optional[int] = None, year: Optional[int] = None) -> dict:
    employee = await get_employee_or_404(employee_id)
    query = {"employee_id": employee_id}
    if month and year:
        start, end = month_range(year, month)
        query["date"] = {"$gte": start, "$lt": end}

    cursor = db.teacher_attendance.find(query, {"_id": 0}).sort("date", -1)
    records = [with_formatted_hours(r) for r in await cursor.to_list(length=None)]

    return {
        "employee": {
            "user_id": employee["user_id"],
            "name": employee["name"],
            "email": employee["email"],
            "role": employee["role"],
            "shift_timings": shift_from_employee(employee),
        },
        "records": records,
        "stats": history_summary(records),
    }

# ==================== HOLIDAYS ====================

async def mark_holiday_for_all(day: datetime, notes: str, admin: Optional[UserContext] = None,
                               status: AttendanceStatus = AttendanceStatus.HOLIDAY) -> int:
    """
    Insert a record with the given status for every employee without one on that day

    Existing records are never overwritten. Returns the number of records created.
    """
    day = midnight(day)
    start, end = day_range(day)

    cursor = db.users.find({"role": {"$in": EMPLOYEE_ROLES}, "is_active": {"$ne": False}})
    employees = await cursor.to_list(length=None)
    already = set(await db.teacher_attendance.distinct(
        "employee_id", {"date": {"$gte": start, "$lt": end}}
    ))

    marked = 0
    for employee in employees:
        if employee["user_id"] in already:
            continue
        record = _base_record(employee, day, status, admin, AttendanceSource.SYSTEM, notes)
        try:
            await db.teacher_attendance.insert_one(record.dict())
        except DuplicateKeyError:
            # marked by a check-in or an admin since the distinct() above
            logger.info("Skipping %s on %s, already marked", employee["user_id"], day.date().isoformat())
            continue
        marked += 1

    return marked

async def mark_holiday(admin: UserContext, day, holiday_name: str) -> dict:
    day = midnight(day)
    count = await mark_holiday_for_all(day, holiday_name or "National Holiday", admin)
    await log_audit(admin, "mark_holiday", "attendance", day.date().isoformat(), {
        "holiday_name": holiday_name,
        "count": count
    })
    return {
        "message": f"Marked {count} employees as HOLIDAY for {day.strftime('%a %b %d %Y')}",
        "count": count,
    }
