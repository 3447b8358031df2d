from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime


def normalize_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().lower()
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v

# ==================== EMPLOYEES ====================

class SalaryInput(BaseModel):
    basic: Optional[float] = Field(None, ge=0)
    hra: Optional[float] = Field(None, ge=0)
    da: Optional[float] = Field(None, ge=0)
    ta: Optional[float] = Field(None, ge=0)
    pf: Optional[float] = Field(None, ge=0)
    tax: Optional[float] = Field(None, ge=0)

class EmployeeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    joining_date: Optional[datetime] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    address: Dict[str, Any] = {}
    salary: Optional[SalaryInput] = None

    _email = validator("email", allow_reuse=True)(normalize_email)

class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    salary: Optional[SalaryInput] = None
    is_active: Optional[bool] = None

    _email = validator("email", allow_reuse=True)(normalize_email)

# ==================== STUDENTS ====================

class StudentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    department: Optional[str] = None
    batch: Optional[str] = None
    current_semester: Optional[str] = None
    cgpa: float = Field(0, ge=0, le=10)
    backlogs: int = Field(0, ge=0)
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    address: Dict[str, Any] = {}
    education: List[Dict[str, Any]] = []
    skills: List[Dict[str, Any]] = []
    social_links: Dict[str, Any] = {}
    course_code: Optional[str] = None

    _email = validator("email", allow_reuse=True)(normalize_email)

class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    batch: Optional[str] = None
    current_semester: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    backlogs: Optional[int] = Field(None, ge=0)
    placement_status: Optional[str] = None
    is_placement_eligible: Optional[bool] = None
    is_active: Optional[bool] = None

    _email = validator("email", allow_reuse=True)(normalize_email)
