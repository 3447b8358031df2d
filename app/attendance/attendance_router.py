from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from app.auth.auth_permissions import (
    UserContext,
    get_current_admin,
    get_current_staff,
    get_current_employee,
    get_attendance_history_reader
)
from app.auth.auth_schemas import LeaveApplication
from app.teachers.teacher_permissions import (
    get_current_teacher,
    verify_classroom_ownership,
    TeacherContext
)
from app.attendance.attendance_models import AttendanceStatus
from app.attendance.attendance_schemas import (
    MarkClassroomAttendance, CheckInRequest, CheckOutRequest,
    RegularizationCreate, GenerateQRRequest, GeofenceCreate
)
from app.attendance import classroom_attendance_service as classroom_service
from app.attendance import employee_attendance_service as service

router = APIRouter(prefix="/teacher", tags=["Attendance"])

# ==================== CLASSROOM ATTENDANCE ====================

@router.post("/classrooms/{classroom_id}/attendance")
async def mark_classroom_attendance(
    classroom_id: str,
    data: MarkClassroomAttendance,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    """
    Mark today's attendance once; students not listed are ABSENT
    """
    classroom = await verify_classroom_ownership(classroom_id, teacher)
    return await classroom_service.mark_attendance(
        classroom, teacher, [e.dict() for e in data.attendance_data]
    )

@router.get("/classrooms/{classroom_id}/attendance")
async def get_classroom_attendance(
    classroom_id: str,
    day: date = Query(..., alias="date"),
    teacher: TeacherContext = Depends(get_current_teacher)
):
    classroom = await verify_classroom_ownership(classroom_id, teacher)
    return await classroom_service.get_attendance_by_date(classroom, day)

@router.get("/classrooms/{classroom_id}/attendance/history")
async def get_classroom_attendance_history(
    classroom_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    classroom = await verify_classroom_ownership(classroom_id, teacher)
    return await classroom_service.get_attendance_history(classroom)

@router.get("/classrooms/{classroom_id}/students/{student_id}/attendance")
async def get_student_attendance(
    classroom_id: str,
    student_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    classroom = await verify_classroom_ownership(classroom_id, teacher)
    return await classroom_service.get_student_attendance(classroom, student_id)

# ==================== CHECK-IN / CHECK-OUT ====================

@router.post("/attendance/checkin", status_code=201)
async def check_in(
    data: CheckInRequest,
    employee: UserContext = Depends(get_current_employee)
):
    """
    Geofenced check-in with optional QR code

    - LATE when the check-in is more than the grace period after shift start
    - QR codes must be active, within validity and have uses left
    """
    return await service.check_in(employee, data.dict())

@router.post("/attendance/checkout")
async def check_out(
    data: CheckOutRequest,
    employee: UserContext = Depends(get_current_employee)
):
    return await service.check_out(employee, data.dict())

@router.post("/attendance/regularization", status_code=201)
async def request_regularization(
    data: RegularizationCreate,
    employee: UserContext = Depends(get_current_employee)
):
    return await service.request_regularization(
        employee, data.record_id, data.requested_status.value, data.reason
    )

@router.post("/attendance/generate-qr", status_code=201)
async def generate_qr(
    data: GenerateQRRequest,
    employee: UserContext = Depends(get_current_employee)
):
    return await service.generate_qr(employee, data.dict())

# ==================== VIEWS ====================

@router.get("/attendance/today")
async def get_today(employee: UserContext = Depends(get_current_employee)):
    return await service.get_today(employee)

@router.get("/attendance/history")
async def get_history(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
    employee_id: Optional[str] = None,
    user: UserContext = Depends(get_attendance_history_reader)
):
    """
    Own history; admins see everyone unless employee_id is given
    """
    if user.is_admin:
        target = employee_id
    else:
        target = user.user_id
    return await service.get_history(target, start_date, end_date, status.value if status else None)

@router.get("/attendance/history/{employee_id}")
async def get_employee_history(
    employee_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.get_history(employee_id, start_date, end_date, status.value if status else None)

@router.get("/attendance/live")
async def get_live_employees(staff: UserContext = Depends(get_current_staff)):
    return await service.get_live_employees()

@router.get("/attendance/live/{employee_id}")
async def get_live_location(
    employee_id: str,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.get_live_location(employee_id)

@router.get("/attendance/analytics")
async def get_analytics(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.get_analytics(start_date, end_date)

# ==================== GEOFENCES ====================

@router.post("/attendance/geofence", status_code=201)
async def create_geofence(
    data: GeofenceCreate,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.create_geofence(admin, data.dict())

@router.get("/attendance/geofences")
async def list_geofences(
    active_only: bool = False,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.list_geofences(active_only)

# ==================== LEAVES ====================

@router.post("/leaves", status_code=201)
async def apply_leave(
    data: LeaveApplication,
    employee: UserContext = Depends(get_current_employee)
):
    return await service.apply_leave(employee, data.dict())
