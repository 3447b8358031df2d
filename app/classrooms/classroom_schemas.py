from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.classrooms.classroom_models import ClassroomStatus


class ClassroomCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    teacher_id: str
    students: List[str] = []

class ClassroomUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    teacher_id: Optional[str] = None
    status: Optional[ClassroomStatus] = None

class AddStudentRequest(BaseModel):
    student_id: str

class ClassroomResponse(BaseModel):
    classroom_id: str
    name: str
    description: Optional[str] = None
    teacher_id: str
    teacher_name: Optional[str] = None
    students: List[str] = []
    student_count: int = 0
    assignment_count: int = 0
    invite_code: str
    status: ClassroomStatus
    created_at: datetime
    updated_at: datetime
