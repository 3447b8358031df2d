from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from app.auth.auth_models import LeaveType, LeaveStatus

# ==================== REQUEST SCHEMAS ====================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str
    password: str = Field(..., min_length=6)
    role: Optional[str] = "STUDENT"
    phone: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    department: Optional[str] = None
    batch: Optional[str] = None
    current_semester: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    education: List[Dict[str, Any]] = []
    experience: List[Dict[str, Any]] = []
    skills: List[Dict[str, Any]] = []
    address: Dict[str, Any] = {}
    social_links: Dict[str, Any] = {}
    course_code: Optional[str] = None

    @validator("email")
    def normalize_email(cls, v):
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v

class LoginRequest(BaseModel):
    email: str
    password: str

    @validator("email")
    def normalize_email(cls, v):
        return v.strip().lower()

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = None
    avatar: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    batch: Optional[str] = None
    current_semester: Optional[str] = None
    education: Optional[List[Dict[str, Any]]] = None
    experience: Optional[List[Dict[str, Any]]] = None
    skills: Optional[List[Dict[str, Any]]] = None
    address: Optional[Dict[str, Any]] = None
    social_links: Optional[Dict[str, Any]] = None

class LeaveApplication(BaseModel):
    type: LeaveType = LeaveType.CASUAL
    from_date: date
    to_date: date
    reason: Optional[str] = Field(None, max_length=500)

    @validator("to_date")
    def range_in_order(cls, v, values):
        start = values.get("from_date")
        if start and v < start:
            raise ValueError("to_date must not be before from_date")
        return v

class LeaveDecision(BaseModel):
    status: LeaveStatus

    @validator("status")
    def decided(cls, v):
        if v == LeaveStatus.PENDING:
            raise ValueError("status must be APPROVED or REJECTED")
        return v

# ==================== RESPONSE SCHEMAS ====================

class UserSummary(BaseModel):
    user_id: str
    name: str
    email: str
    role: str
    unique_id: Optional[str] = None
    avatar: Optional[str] = None

class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserSummary
