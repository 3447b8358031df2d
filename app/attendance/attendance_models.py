from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field
from enum import Enum
from app.attendance.attendance_utils import local_now

# ==================== ENUMS ====================

class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    HALF_DAY = "HALF_DAY"
    ON_LEAVE = "ON_LEAVE"
    WORK_FROM_HOME = "WORK_FROM_HOME"
    ON_DUTY = "ON_DUTY"
    HOLIDAY = "HOLIDAY"

class StudentAttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"

class CheckInMethod(str, Enum):
    QR_SCAN = "qr_scan"
    GPS = "gps"
    MANUAL = "manual"
    BIOMETRIC = "biometric"
    FACE_RECOGNITION = "face_recognition"
    RFID = "rfid"

class AttendanceSource(str, Enum):
    QR_SCANNER = "qr_scanner"
    MOBILE_APP = "mobile_app"
    WEB_APP = "web_app"
    MANUAL_ENTRY = "manual_entry"
    BULK_ENTRY = "bulk_entry"
    SYSTEM = "system"

class VerificationMethod(str, Enum):
    NONE = "none"
    PHOTO = "photo"
    FACE_RECOGNITION = "face_recognition"
    FINGERPRINT = "fingerprint"
    QR_CODE = "qr_code"

class RegularizationStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

# ==================== SHARED ====================

class GeoPoint(BaseModel):
    """GeoJSON point, coordinates are [longitude, latitude]"""
    type: str = "Point"
    coordinates: List[float]

    @classmethod
    def from_lat_lon(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=[longitude, latitude])

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

class AttendanceSession(BaseModel):
    start_time: datetime
    end_time: Optional[datetime] = None
    location: Optional[GeoPoint] = None
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    address: dict = {}
    device_info: dict = {}
    is_within_geofence: bool = False
    check_in_method: CheckInMethod = CheckInMethod.GPS
    notes: Optional[str] = None

class GeofenceZone(BaseModel):
    name: str
    center: GeoPoint
    distance: float  # meters from the geofence centre at check-in
    entered_at: datetime = Field(default_factory=local_now)

class AttendanceMetadata(BaseModel):
    source: AttendanceSource = AttendanceSource.WEB_APP
    verification_method: VerificationMethod = VerificationMethod.NONE
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    last_updated_by: Optional[str] = None
    last_updated_at: Optional[datetime] = None
    update_reason: Optional[str] = None

class RegularizationRequest(BaseModel):
    request_id: str  # REG_XXXXXX
    requested: bool = True
    requested_status: AttendanceStatus
    reason: str
    status: RegularizationStatus = RegularizationStatus.PENDING
    requested_at: datetime = Field(default_factory=datetime.utcnow)
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    admin_remarks: Optional[str] = None

# ==================== EMPLOYEE ATTENDANCE ====================

class TeacherAttendance(BaseModel):
    record_id: str  # TAT_XXXXXX
    employee_id: str
    employee_name: str
    employee_email: str
    employee_role: str
    date: datetime  # local midnight
    day_of_week: str
    status: AttendanceStatus = AttendanceStatus.PRESENT
    scheduled_start_time: Optional[str] = None  # "09:00"
    scheduled_end_time: Optional[str] = None
    actual_check_in: Optional[AttendanceSession] = None
    actual_check_out: Optional[AttendanceSession] = None
    sessions: List[AttendanceSession] = []
    total_work_hours: float = 0
    overtime: float = 0
    late_minutes: int = 0
    early_departure_minutes: int = 0
    geofence_zones: List[GeofenceZone] = []
    leave_id: Optional[str] = None
    marked_by: Optional[str] = None
    marked_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: AttendanceMetadata = Field(default_factory=AttendanceMetadata)
    regularization_request: Optional[RegularizationRequest] = None
    notes: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class GeofenceApplicability(BaseModel):
    all_teachers: bool = True
    all_faculty_admins: bool = True
    specific_employees: List[str] = []
    specific_classrooms: List[str] = []

class Geofence(BaseModel):
    geofence_id: str  # GEO_XXXXXX
    name: str
    description: Optional[str] = None
    center: GeoPoint
    radius: float = 100  # meters
    address: dict = {}
    applicable_to: GeofenceApplicability = Field(default_factory=GeofenceApplicability)
    is_active: bool = True
    created_by: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

class QRUsage(BaseModel):
    employee_id: str
    used_at: datetime = Field(default_factory=local_now)
    location: Optional[GeoPoint] = None
    accuracy: Optional[float] = None

class AttendanceQR(BaseModel):
    qr_id: str  # QR_XXXXXX
    code: str  # 8 upper hex chars
    classroom_id: Optional[str] = None
    created_by: str
    valid_from: datetime
    valid_until: datetime
    max_uses: int = 1
    current_uses: int = 0
    used_by: List[QRUsage] = []
    location: Optional[GeoPoint] = None
    geofence_radius: float = 100
    is_active: bool = True
    qr_url: str
    qr_image: Optional[str] = None  # data:image/png;base64,...
    created_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== STUDENT ATTENDANCE ====================

class StudentAttendanceEntry(BaseModel):
    student_id: str
    status: StudentAttendanceStatus = StudentAttendanceStatus.ABSENT

class StudentAttendance(BaseModel):
    attendance_id: str  # ATT_XXXXXX
    classroom_id: str
    date: datetime  # local midnight
    records: List[StudentAttendanceEntry] = []
    marked_by: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
