from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from app.courses.course_models import (
    DEPARTMENTS, CourseLevel, CourseStatus, EnrollmentStatus, Duration, Fee
)


def check_department(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in DEPARTMENTS:
        raise ValueError(f"Department must be one of: {', '.join(DEPARTMENTS)}")
    return v

# ==================== COURSES ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    description: str = Field(..., min_length=1)
    long_description: Optional[str] = None
    department: str
    level: CourseLevel
    credits: int = Field(..., ge=1)
    duration: Duration
    code: Optional[str] = None
    short_code: Optional[str] = None
    syllabus: Dict[str, Any] = {}
    prerequisites: Dict[str, Any] = {}
    modules: List[Dict[str, Any]] = []
    instructors: List[str] = []
    head_instructor: Optional[str] = None
    delivery_mode: List[str] = ["offline"]
    fee: Fee = Fee()
    schedule: Dict[str, Any] = {}
    max_students: Optional[int] = Field(None, ge=1)
    min_students: Optional[int] = Field(None, ge=0)
    status: CourseStatus = CourseStatus.DRAFT
    category: Optional[str] = None
    tags: List[str] = []
    learning_outcomes: List[str] = []
    skills_gained: List[str] = []
    thumbnail: Optional[str] = None

    _department = validator("department", allow_reuse=True)(check_department)

class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = None
    long_description: Optional[str] = None
    department: Optional[str] = None
    level: Optional[CourseLevel] = None
    credits: Optional[int] = Field(None, ge=1)
    duration: Optional[Duration] = None
    syllabus: Optional[Dict[str, Any]] = None
    prerequisites: Optional[Dict[str, Any]] = None
    modules: Optional[List[Dict[str, Any]]] = None
    instructors: Optional[List[str]] = None
    head_instructor: Optional[str] = None
    delivery_mode: Optional[List[str]] = None
    fee: Optional[Fee] = None
    schedule: Optional[Dict[str, Any]] = None
    max_students: Optional[int] = Field(None, ge=1)
    min_students: Optional[int] = Field(None, ge=0)
    status: Optional[CourseStatus] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    learning_outcomes: Optional[List[str]] = None
    skills_gained: Optional[List[str]] = None
    thumbnail: Optional[str] = None

    _department = validator("department", allow_reuse=True)(check_department)

# ==================== ENROLLMENTS ====================

class EnrollStudentsRequest(BaseModel):
    student_ids: List[str] = Field(..., min_items=1)

class EnrollmentStatusUpdate(BaseModel):
    status: EnrollmentStatus
    grade: Optional[str] = None
    percentage: Optional[float] = Field(None, ge=0, le=100)
    progress: Optional[float] = Field(None, ge=0, le=100)

# ==================== CATEGORIES ====================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    parent_category: Optional[str] = None
    order: int = 0

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = None
    parent_category: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None
