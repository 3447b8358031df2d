from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from app.auth.auth_permissions import UserContext, get_current_admin
from app.attendance.attendance_models import AttendanceStatus
from app.attendance.attendance_schemas import (
    AdminMarkAttendance, AdminUpdateAttendance, BulkMarkAttendance,
    RegularizationDecision, HolidayRequest
)
from app.attendance import admin_attendance_service as service

router = APIRouter(prefix="/admin", tags=["Admin Attendance"])

# ==================== RECORDS ====================

@router.post("/attendance/mark", status_code=201)
async def mark_attendance(
    data: AdminMarkAttendance,
    admin: UserContext = Depends(get_current_admin)
):
    """
    Mark attendance for a teacher or faculty admin on any date

    Leaves are stored as ON_LEAVE with zero hours; otherwise a manual
    check-in is created from the given times or the shift start.
    """
    return await service.mark_attendance(admin, data.dict())

@router.post("/attendance/bulk", status_code=201)
async def bulk_mark_attendance(
    data: BulkMarkAttendance,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.bulk_mark_attendance(admin, data.dict())

@router.get("/attendance/check-existing")
async def check_existing(
    day: Optional[date] = Query(None, alias="date"),
    employee_ids: Optional[str] = Query(None, alias="employeeIds"),
    admin: UserContext = Depends(get_current_admin)
):
    return await service.check_existing(day, employee_ids)

@router.get("/attendance/regularizations")
async def get_pending_regularizations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    employee_id: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_pending_regularizations(page, limit, employee_id, from_date, to_date)

@router.put("/attendance/regularizations/{request_id}")
async def decide_regularization(
    request_id: str,
    data: RegularizationDecision,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.decide_regularization(admin, request_id, data.action.value, data.reason)

@router.get("/attendance/calendar")
async def get_calendar(
    month: Optional[int] = None,
    year: Optional[int] = None,
    employee_id: Optional[str] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_calendar(month, year, employee_id)

@router.get("/attendance/stats")
async def get_stats(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    department: Optional[str] = None,
    employee_id: Optional[str] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_stats(from_date, to_date, department, employee_id)

@router.get("/attendance/summary")
async def get_summary(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_summary(start_date, end_date)

@router.get("/attendance/today")
async def get_today_status(admin: UserContext = Depends(get_current_admin)):
    return await service.get_today_status()

@router.get("/attendance/employee/{employee_id}")
async def get_employee_attendance(
    employee_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_employee_attendance(employee_id, month, year)

@router.post("/attendance/holiday", status_code=201)
async def mark_holiday(
    data: HolidayRequest,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.mark_holiday(admin, data.date, data.holiday_name)

@router.get("/attendance/{record_id}")
async def get_attendance(
    record_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_attendance(record_id)

@router.put("/attendance/{record_id}")
async def update_attendance(
    record_id: str,
    data: AdminUpdateAttendance,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.update_attendance(admin, record_id, data.dict(exclude_none=True))

@router.delete("/attendance/{record_id}")
async def delete_attendance(
    record_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.delete_attendance(admin, record_id)

# ==================== REPORTS ====================

@router.get("/teacher-attendance")
async def get_teacher_attendance_report(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    employee_id: Optional[str] = None,
    status: Optional[AttendanceStatus] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.get_teacher_attendance_report(
        start_date, end_date, employee_id, status.value if status else None
    )
