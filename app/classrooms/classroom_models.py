import secrets
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field
from enum import Enum


class ClassroomStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"


def generate_invite_code() -> str:
    """Six upper-case hex characters"""
    return secrets.token_hex(3).upper()


class Classroom(BaseModel):
    classroom_id: str  # CLS_XXXXXX
    name: str
    description: Optional[str] = None
    teacher_id: str  # USR_ of a TEACHER
    students: List[str] = []
    invite_code: str = Field(default_factory=generate_invite_code)
    status: ClassroomStatus = ClassroomStatus.ACTIVE
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
