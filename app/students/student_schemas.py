from pydantic import BaseModel, Field, validator
from typing import Optional, List


class AnswerInput(BaseModel):
    question_id: str
    answer: Optional[str] = None

    @validator("answer", pre=True)
    def coerce_answer(cls, v):
        # MCQ answers arrive as option indexes
        if v is None:
            return v
        return str(v)

class SubmitAssignmentRequest(BaseModel):
    answers: List[AnswerInput] = Field(..., min_items=1)

class JoinClassroomRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=12)

    @validator("code")
    def normalize_code(cls, v):
        return v.strip().upper()
