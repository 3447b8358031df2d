from typing import Optional
from fastapi import APIRouter, Depends, Query
from app.auth.auth_permissions import UserContext, get_current_staff, get_current_course_reader
from app.courses.course_models import CourseLevel, CourseStatus, EnrollmentStatus
from app.courses.course_schemas import (
    CourseCreate, CourseUpdate, EnrollStudentsRequest, EnrollmentStatusUpdate,
    CategoryCreate, CategoryUpdate
)
from app.courses import course_service as service

router = APIRouter(prefix="/courses", tags=["Courses"])

# ==================== STATS ====================

@router.get("/stats")
async def get_course_stats(staff: UserContext = Depends(get_current_staff)):
    return await service.get_course_stats()

# ==================== CATEGORIES ====================

@router.get("/categories")
async def list_categories(reader: UserContext = Depends(get_current_course_reader)):
    return await service.list_categories()

@router.post("/categories", status_code=201)
async def create_category(
    data: CategoryCreate,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.create_category(staff, data.dict())

@router.put("/categories/{category_id}")
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.update_category(staff, category_id, data.dict(exclude_none=True))

@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.delete_category(staff, category_id)

# ==================== ENROLLMENTS ====================

@router.put("/enrollments/{enrollment_id}")
async def update_enrollment_status(
    enrollment_id: str,
    data: EnrollmentStatusUpdate,
    reader: UserContext = Depends(get_current_course_reader)
):
    """
    Move an enrollment to a new status and keep course stats in step
    """
    return await service.update_enrollment_status(reader, enrollment_id, data.dict())

@router.get("/{course_id}/enrollments")
async def list_enrollments(
    course_id: str,
    status: Optional[EnrollmentStatus] = None,
    reader: UserContext = Depends(get_current_course_reader)
):
    return await service.list_enrollments(course_id, status.value if status else None)

@router.post("/{course_id}/enroll")
async def enroll_students(
    course_id: str,
    data: EnrollStudentsRequest,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.enroll_students(staff, course_id, data.student_ids)

# ==================== COURSE CRUD ====================

@router.post("", status_code=201)
async def create_course(
    data: CourseCreate,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.create_course(staff, data.dict())

@router.get("")
async def list_courses(
    department: Optional[str] = None,
    level: Optional[CourseLevel] = None,
    status: Optional[CourseStatus] = None,
    instructor: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    reader: UserContext = Depends(get_current_course_reader)
):
    return await service.list_courses(
        department,
        level.value if level else None,
        status.value if status else None,
        instructor,
        search,
        page,
        limit
    )

@router.get("/{course_id}")
async def get_course(
    course_id: str,
    reader: UserContext = Depends(get_current_course_reader)
):
    return await service.get_course(course_id)

@router.put("/{course_id}")
async def update_course(
    course_id: str,
    data: CourseUpdate,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.update_course(staff, course_id, data.dict(exclude_none=True))

@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    staff: UserContext = Depends(get_current_staff)
):
    return await service.delete_course(staff, course_id)
