from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime, date
from app.attendance.attendance_models import (
    AttendanceStatus, StudentAttendanceStatus, CheckInMethod,
    RegularizationStatus, GeofenceApplicability
)


def to_local_naive(v: Optional[datetime]) -> Optional[datetime]:
    # attendance times are compared against local shift times
    if v is not None and v.tzinfo is not None:
        return v.astimezone().replace(tzinfo=None)
    return v

# ==================== CLASSROOM ATTENDANCE ====================

class StudentAttendanceInput(BaseModel):
    student_id: str
    status: StudentAttendanceStatus = StudentAttendanceStatus.ABSENT

class MarkClassroomAttendance(BaseModel):
    attendance_data: List[StudentAttendanceInput] = []

# ==================== CHECK-IN / CHECK-OUT ====================

class CheckInRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    address: dict = {}
    device_info: dict = {}
    method: CheckInMethod = CheckInMethod.GPS
    classroom_id: Optional[str] = None
    qr_code: Optional[str] = None

class CheckOutRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    address: dict = {}
    device_info: dict = {}

class RegularizationCreate(BaseModel):
    record_id: str
    requested_status: AttendanceStatus
    reason: str = Field(..., min_length=3, max_length=500)

class GenerateQRRequest(BaseModel):
    classroom_id: Optional[str] = None
    valid_hours: float = Field(1, gt=0, le=24)
    max_uses: int = Field(1, ge=1)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    geofence_radius: float = Field(100, gt=0)

class GeofenceCreate(BaseModel):
    name: str = Field(..., min_length=2)
    description: Optional[str] = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius: float = Field(100, gt=0)
    address: dict = {}
    applicable_to: Optional[GeofenceApplicability] = None

# ==================== ADMIN MANAGEMENT ====================

class AdminMarkAttendance(BaseModel):
    employee_id: str
    date: date
    status: Optional[AttendanceStatus] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None
    is_leave: bool = False
    leave_type: Optional[str] = None
    leave_reason: Optional[str] = None
    work_hours: Optional[float] = Field(None, ge=0)
    late_minutes: Optional[int] = Field(None, ge=0)
    early_departure_minutes: Optional[int] = Field(None, ge=0)
    check_in_method: CheckInMethod = CheckInMethod.MANUAL
    location: Optional[dict] = None
    address: Optional[dict] = None

    _local_times = validator("check_in_time", "check_out_time", allow_reuse=True)(to_local_naive)

    @validator("check_out_time")
    def check_out_after_check_in(cls, v, values):
        start = values.get("check_in_time")
        if v and start and v <= start:
            raise ValueError("check_out_time must be after check_in_time")
        return v

class AdminUpdateAttendance(BaseModel):
    status: Optional[AttendanceStatus] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None
    total_work_hours: Optional[float] = Field(None, ge=0)
    late_minutes: Optional[int] = Field(None, ge=0)
    early_departure_minutes: Optional[int] = Field(None, ge=0)
    location: Optional[dict] = None
    address: Optional[dict] = None
    reason: Optional[str] = None

    _local_times = validator("check_in_time", "check_out_time", allow_reuse=True)(to_local_naive)

class BulkMarkAttendance(BaseModel):
    employee_ids: List[str] = Field(..., min_items=1)
    date: date
    status: AttendanceStatus = AttendanceStatus.PRESENT
    reason: Optional[str] = None

class RegularizationDecision(BaseModel):
    action: RegularizationStatus
    reason: Optional[str] = None

    @validator("action")
    def not_pending(cls, v):
        if v == RegularizationStatus.PENDING:
            raise ValueError("action must be APPROVED or REJECTED")
        return v

class HolidayRequest(BaseModel):
    date: date
    holiday_name: str = Field("National Holiday", min_length=1)
