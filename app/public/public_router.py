from typing import Optional
from fastapi import APIRouter, Query
from app.courses.course_models import CourseLevel, CourseStatus
from app.public import public_service as service

router = APIRouter(prefix="/public", tags=["Public"])

# ==================== FACULTY & STUDENTS ====================

@router.get("/faculty")
async def get_public_faculty():
    return await service.get_public_faculty()

@router.get("/top-students")
async def get_top_students():
    return await service.get_top_students()

# ==================== COURSES ====================

@router.get("/courses")
async def list_courses(
    department: Optional[str] = None,
    level: Optional[CourseLevel] = None,
    status: CourseStatus = CourseStatus.PUBLISHED,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100)
):
    return await service.list_courses(
        department, level.value if level else None, status.value, page, limit
    )

@router.get("/courses/popular")
async def get_popular_courses(limit: int = Query(6, ge=1, le=50)):
    return await service.get_popular_courses(limit)

@router.get("/courses/packages")
async def get_course_packages():
    return service.get_course_packages()

@router.get("/courses/search")
async def search_courses(
    q: Optional[str] = None,
    department: Optional[str] = None,
    level: Optional[CourseLevel] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0)
):
    return await service.search_courses(
        q, department, level.value if level else None, min_price, max_price
    )

@router.get("/courses/department/{department}")
async def get_courses_by_department(department: str, level: Optional[CourseLevel] = None):
    return await service.get_courses_by_department(department, level.value if level else None)

@router.get("/courses/{course_id}")
async def get_course(course_id: str):
    """
    Published course by id, code or short code
    """
    return await service.get_course(course_id)
