import re
import random
from datetime import datetime
from typing import List, Optional, Dict, Any, Union
from pydantic import BaseModel, Field
from enum import Enum

# ==================== ENUMS ====================

DEPARTMENTS = [
    "Computer Science", "Information Technology", "Mathematics", "Physics",
    "Chemistry", "Biology", "Electronics", "Electrical", "Mechanical",
    "Civil", "Commerce", "Economics", "English", "Hindi", "Business Administration",
]

class CourseLevel(str, Enum):
    UNDERGRADUATE = "undergraduate"
    POSTGRADUATE = "postgraduate"
    DOCTORATE = "doctorate"
    DIPLOMA = "diploma"
    CERTIFICATE = "certificate"

class DurationUnit(str, Enum):
    WEEKS = "weeks"
    MONTHS = "months"
    SEMESTERS = "semesters"
    YEARS = "years"

class FeeType(str, Enum):
    ONE_TIME = "one_time"
    PER_SEMESTER = "per_semester"
    PER_MONTH = "per_month"
    PER_YEAR = "per_year"

class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"

class EnrollmentStatus(str, Enum):
    ENROLLED = "enrolled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DROPPED = "dropped"
    FAILED = "failed"

ACTIVE_ENROLLMENT_STATUSES = [EnrollmentStatus.ENROLLED.value, EnrollmentStatus.IN_PROGRESS.value]

MAX_PREVIOUS_VERSIONS = 5

# ==================== COURSE ====================

class Duration(BaseModel):
    value: float
    unit: DurationUnit = DurationUnit.SEMESTERS

class Fee(BaseModel):
    amount: float = 0
    currency: str = "INR"
    payment_type: FeeType = FeeType.ONE_TIME

class EnrollmentStats(BaseModel):
    total_enrolled: int = 0
    current_enrolled: int = 0
    completed_count: int = 0
    dropped_count: int = 0
    average_rating: float = 0
    total_reviews: int = 0

class Course(BaseModel):
    course_id: str  # CRS_XXXXXX
    title: str
    code: str
    short_code: Optional[str] = None
    description: str
    long_description: Optional[str] = None
    department: str
    level: CourseLevel
    credits: int
    duration: Duration
    syllabus: Dict[str, Any] = {}
    prerequisites: Dict[str, Any] = {}
    modules: List[Dict[str, Any]] = []
    instructors: List[str] = []
    head_instructor: Optional[str] = None
    delivery_mode: List[str] = ["offline"]
    fee: Fee = Field(default_factory=Fee)
    schedule: Dict[str, Any] = {}
    enrollment_stats: EnrollmentStats = Field(default_factory=EnrollmentStats)
    max_students: Optional[int] = None
    min_students: Optional[int] = None
    status: CourseStatus = CourseStatus.DRAFT
    category: Optional[str] = None
    tags: List[str] = []
    learning_outcomes: List[str] = []
    skills_gained: List[str] = []
    thumbnail: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    version: int = 1
    previous_versions: List[Dict[str, Any]] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class CourseCategory(BaseModel):
    category_id: str  # CAT_XXXXXX
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    parent_category: Optional[str] = None
    total_courses: int = 0
    is_active: bool = True
    order: int = 0
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class EnrollmentProgress(BaseModel):
    overall_progress: float = 0
    last_accessed: Optional[datetime] = None

class CourseEnrollment(BaseModel):
    enrollment_id: str  # ENR_XXXXXX
    course_id: str
    student_id: str
    enrollment_date: datetime = Field(default_factory=datetime.utcnow)
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    progress: EnrollmentProgress = Field(default_factory=EnrollmentProgress)
    final_grade: Optional[str] = None
    final_percentage: Optional[float] = None
    completion_date: Optional[datetime] = None
    certificate_issued: bool = False
    certificate_id: Optional[str] = None
    certificate_url: Optional[str] = None
    enrolled_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== CODES ====================

LEVEL_PREFIXES = {
    CourseLevel.POSTGRADUATE.value: "PG",
    CourseLevel.DOCTORATE.value: "PHD",
    CourseLevel.DIPLOMA.value: "DIP",
}

def generate_course_code(department: str, level: str, title: str) -> str:
    """Department prefix + level prefix + two title letters + four random digits, e.g. COMUGDA4821"""
    dept_prefix = department[:3].upper()
    level_prefix = LEVEL_PREFIXES.get(level, "UG")
    name_prefix = re.sub(r"[^a-zA-Z]", "", title)[:2].upper()
    return f"{dept_prefix}{level_prefix}{name_prefix}{random.randint(1000, 9999)}"

def generate_short_code(department: str, level: str, credits: int) -> str:
    """e.g. CO104 for a 4 credit undergraduate Computer Science course"""
    if level == CourseLevel.UNDERGRADUATE.value:
        level_num = "1"
    elif level == CourseLevel.POSTGRADUATE.value:
        level_num = "2"
    else:
        level_num = "3"
    return f"{department[:2].upper()}{level_num}{str(credits).zfill(2)}"

def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")

# ==================== DERIVED VIEWS ====================

def format_duration(duration: Optional[dict]) -> Optional[str]:
    if not duration:
        return None
    value = duration.get("value")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value} {duration.get('unit', DurationUnit.SEMESTERS.value)}"

def formatted_code(course: dict) -> str:
    return f"{course.get('code')} - {course.get('title')}"

def enrollment_status(course: dict) -> Union[str, dict]:
    max_students = course.get("max_students")
    if not max_students:
        return "unlimited"
    enrolled = (course.get("enrollment_stats") or {}).get("current_enrolled", 0)
    return {
        "enrolled": enrolled,
        "max": max_students,
        "percentage": round(enrolled / max_students * 100, 1),
        "seats_left": max_students - enrolled,
    }

def with_course_views(course: dict) -> dict:
    course["enrollment_status"] = enrollment_status(course)
    course["duration_formatted"] = format_duration(course.get("duration"))
    course["formatted_code"] = formatted_code(course)
    return course

def push_version(course: dict, updated_by: Optional[str], now: Optional[datetime] = None) -> tuple:
    """
    Snapshot the course before an update

    Returns:
        (next version number, previous versions capped at the last five)
    """
    snapshot = {k: v for k, v in course.items() if k not in ("_id", "previous_versions")}
    history = list(course.get("previous_versions") or [])
    history.append({
        "version": course.get("version", 1),
        "data": snapshot,
        "updated_at": now or datetime.utcnow(),
        "updated_by": updated_by,
    })
    return course.get("version", 1) + 1, history[-MAX_PREVIOUS_VERSIONS:]

def enrollment_stat_changes(old_status: str, new_status: str) -> Dict[str, int]:
    """$inc for enrollment_stats when an enrollment moves between statuses"""
    if old_status == new_status:
        return {}
    changes = {}
    was_active = old_status in ACTIVE_ENROLLMENT_STATUSES
    if new_status == EnrollmentStatus.COMPLETED.value:
        changes["enrollment_stats.completed_count"] = 1
    elif new_status == EnrollmentStatus.DROPPED.value:
        changes["enrollment_stats.dropped_count"] = 1
    if was_active and new_status not in ACTIVE_ENROLLMENT_STATUSES:
        changes["enrollment_stats.current_enrolled"] = -1
    elif not was_active and new_status in ACTIVE_ENROLLMENT_STATUSES:
        changes["enrollment_stats.current_enrolled"] = 1
    if old_status == EnrollmentStatus.COMPLETED.value:
        changes["enrollment_stats.completed_count"] = -1
    elif old_status == EnrollmentStatus.DROPPED.value:
        changes["enrollment_stats.dropped_count"] = -1
    return changes
