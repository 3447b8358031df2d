import secrets
import random
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum
from app.config import (
    DEFAULT_SHIFT_START, DEFAULT_SHIFT_END,
    DEFAULT_GRACE_PERIOD_MINUTES, DEFAULT_WORKING_HOURS
)

# ==================== ENUMS ====================

class Role(str, Enum):
    ADMIN = "ADMIN"
    FACULTY_ADMIN = "FACULTY_ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"

class LeaveStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class LeaveType(str, Enum):
    CASUAL = "CASUAL"
    SICK = "SICK"
    EARNED = "EARNED"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    UNPAID = "UNPAID"
    OTHER = "OTHER"

EMPLOYEE_ROLES = [Role.TEACHER.value, Role.FACULTY_ADMIN.value]

# ==================== EMPLOYEE RECORD ====================

class BankAccount(BaseModel):
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    ifsc_code: Optional[str] = None
    account_holder_name: Optional[str] = None

class SalaryStructure(BaseModel):
    basic: float = 0
    hra: float = 0
    da: float = 0
    ta: float = 0
    pf: float = 0
    tax: float = 0
    net_salary: float = 0
    bank_account: BankAccount = Field(default_factory=BankAccount)

class LeaveRecord(BaseModel):
    leave_id: str
    type: LeaveType = LeaveType.CASUAL
    from_date: datetime
    to_date: datetime
    days: int
    reason: Optional[str] = None
    status: LeaveStatus = LeaveStatus.PENDING
    approved_by: Optional[str] = None
    applied_at: datetime = Field(default_factory=datetime.utcnow)

class LeaveBalance(BaseModel):
    total: int = 30
    taken: int = 0
    remaining: int = 30
    records: List[LeaveRecord] = []

class ShiftTimings(BaseModel):
    start: str = DEFAULT_SHIFT_START
    end: str = DEFAULT_SHIFT_END
    grace_period: int = DEFAULT_GRACE_PERIOD_MINUTES
    working_hours: float = DEFAULT_WORKING_HOURS

class EmployeeRecord(BaseModel):
    employee_id: str
    designation: str = "Assistant Professor"
    department: str = "General"
    joining_date: datetime = Field(default_factory=datetime.utcnow)
    contract_type: str = "PERMANENT"
    salary: SalaryStructure = Field(default_factory=SalaryStructure)
    leaves: LeaveBalance = Field(default_factory=LeaveBalance)
    shift_timings: ShiftTimings = Field(default_factory=ShiftTimings)

# ==================== USER ====================

class User(BaseModel):
    user_id: str  # USR_XXXXXX
    name: str
    email: str
    password_hash: str
    role: Role
    unique_id: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    education: List[Dict[str, Any]] = []
    experience: List[Dict[str, Any]] = []
    skills: List[Dict[str, Any]] = []
    address: Dict[str, Any] = {}
    social_links: Dict[str, Any] = {}

    # Student academic profile
    enrollment_number: Optional[str] = None
    batch: Optional[str] = None
    current_semester: Optional[str] = None
    cgpa: float = 0
    backlogs: int = 0
    enrolled_courses: List[Dict[str, Any]] = []
    certificates: List[Dict[str, Any]] = []
    placement_status: str = "Not Applied"
    is_placement_eligible: bool = False

    employee_record: Optional[EmployeeRecord] = None

    is_profile_complete: bool = False
    is_active: bool = True
    last_active: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== IDENTIFIER GENERATION ====================

def _year_suffix() -> str:
    return str(datetime.utcnow().year)[-2:]

def generate_student_unique_id(course_code: Optional[str] = None) -> str:
    """NX + yy + first three letters of the course (or GEN) + 6 hex chars"""
    course_prefix = course_code[:3].upper() if course_code else "GEN"
    return f"NX{_year_suffix()}{course_prefix}{secrets.token_hex(3).upper()}"

def generate_employee_unique_id(role: str, name: str) -> str:
    prefix = "TCH" if role == Role.TEACHER.value else "FAC"
    initials = "".join(part[0] for part in name.split() if part).upper()
    return f"{prefix}{_year_suffix()}{initials}{secrets.token_hex(3).upper()}"

def generate_admin_unique_id() -> str:
    return f"ADM{_year_suffix()}{secrets.token_hex(4).upper()}"

def generate_unique_id(role: str, name: str) -> str:
    if role == Role.STUDENT.value:
        return generate_student_unique_id()
    if role in EMPLOYEE_ROLES:
        return generate_employee_unique_id(role, name)
    return generate_admin_unique_id()

def generate_employee_id(role: str, index: int) -> str:
    prefix = "TCH" if role == Role.TEACHER.value else "FAC"
    return f"{prefix}{_year_suffix()}{str(index + 1).zfill(4)}"

def generate_enrollment_number(department: Optional[str] = None) -> str:
    dept_code = (department or "GEN")[:3].upper()
    return f"ENR-{datetime.utcnow().year}-{dept_code}-{random.randint(1000, 9999)}"

def default_teacher_salary() -> SalaryStructure:
    salary = SalaryStructure(basic=40000, hra=16000, da=6000, ta=2000, pf=4800, tax=6400)
    salary.net_salary = compute_net_salary(salary.dict())
    return salary

def default_faculty_admin_salary() -> SalaryStructure:
    salary = SalaryStructure(basic=50000, hra=20000, da=7500, ta=3000, pf=6000, tax=8000)
    salary.net_salary = compute_net_salary(salary.dict())
    return salary

def compute_net_salary(salary: dict) -> float:
    earnings = sum(salary.get(k) or 0 for k in ("basic", "hra", "da", "ta"))
    deductions = sum(salary.get(k) or 0 for k in ("pf", "tax"))
    return earnings - deductions

def check_profile_completeness(user: dict) -> bool:
    role = user.get("role")
    has_basics = bool(user.get("name") and user.get("email") and user.get("phone"))

    if role == Role.STUDENT.value:
        return has_basics and bool(user.get("education")) and bool(user.get("skills"))

    if role == Role.TEACHER.value:
        return (
            has_basics
            and bool(user.get("department"))
            and bool(user.get("designation"))
            and bool(user.get("education"))
        )

    return True
