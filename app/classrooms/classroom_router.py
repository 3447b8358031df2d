from fastapi import APIRouter, Depends
from typing import List
from app.auth.auth_permissions import UserContext, get_current_admin
from app.classrooms.classroom_schemas import (
    ClassroomCreate, ClassroomUpdate, ClassroomResponse, AddStudentRequest
)
from app.classrooms import classroom_service as service


router = APIRouter(prefix="/classrooms", tags=["Classroom Management"])


@router.post("", response_model=ClassroomResponse, status_code=201)
async def create_classroom(
    data: ClassroomCreate,
    admin: UserContext = Depends(get_current_admin)
):
    """
    Create a classroom and assign a teacher
    """
    return await service.create_classroom(admin, data.dict())


@router.get("", response_model=List[ClassroomResponse])
async def list_classrooms(admin: UserContext = Depends(get_current_admin)):
    return await service.list_classrooms()


@router.put("/{classroom_id}/add-student", response_model=ClassroomResponse)
async def add_student(
    classroom_id: str,
    data: AddStudentRequest,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.add_student(classroom_id, data.student_id, admin)


@router.put("/{classroom_id}", response_model=ClassroomResponse)
async def update_classroom(
    classroom_id: str,
    data: ClassroomUpdate,
    admin: UserContext = Depends(get_current_admin)
):
    return await service.update_classroom(classroom_id, admin, data.dict(exclude_none=True))


@router.delete("/{classroom_id}")
async def delete_classroom(
    classroom_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    """
    Delete a classroom with its assignments, submissions and attendance
    """
    await service.delete_classroom(classroom_id, admin)
    return {"message": "Classroom deleted successfully"}
