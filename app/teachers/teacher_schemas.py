from pydantic import BaseModel, Field, validator
from typing import Optional, List, Union
from datetime import datetime
from app.teachers.teacher_models import QuestionType, Difficulty, SubmissionStatus

# ==================== REQUEST SCHEMAS ====================

class TestCaseInput(BaseModel):
    input: str = ""
    expected_output: str = ""
    marks: float = Field(0, ge=0)
    is_hidden: bool = False

class QuestionInput(BaseModel):
    type: QuestionType
    question_text: str = Field(..., min_length=1)
    options: List[Union[str, dict]] = []
    correct_answer_index: Optional[int] = None
    marks: float
    difficulty: Difficulty = Difficulty.MEDIUM
    test_cases: List[TestCaseInput] = []

class AssignmentCreate(BaseModel):
    classroom_id: str
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = None
    total_marks: float = Field(..., gt=0)
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    questions: List[QuestionInput]

    @validator("deadline")
    def deadline_after_start(cls, v, values):
        start = values.get("start_time")
        if v and start and v <= start:
            raise ValueError("deadline must be after start_time")
        return v

class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    total_marks: Optional[float] = Field(None, gt=0)
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    questions: Optional[List[QuestionInput]] = None

class AnswerEvaluation(BaseModel):
    question_id: str
    awarded_marks: Optional[float] = None
    teacher_comment: Optional[str] = None
    is_correct: Optional[bool] = None

class SubmissionEvaluation(BaseModel):
    answers: List[AnswerEvaluation] = []
    feedback: Optional[str] = ""

# ==================== RESPONSE SCHEMAS ====================

class QuestionResponse(BaseModel):
    question_id: str
    type: QuestionType
    question_text: str
    options: List[dict] = []
    correct_answer_index: Optional[int] = None
    marks: float
    difficulty: Difficulty
    test_cases: List[dict] = []
    order: int = 0

class AssignmentResponse(BaseModel):
    assignment_id: str
    classroom_id: str
    classroom_name: Optional[str] = None
    created_by: str
    title: str
    description: Optional[str] = None
    total_marks: float
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    is_published: bool
    question_count: int = 0
    submission_count: int = 0
    questions: Optional[List[QuestionResponse]] = None
    created_at: datetime
    updated_at: datetime

class SubmissionResponse(BaseModel):
    submission_id: str
    assignment_id: str
    assignment_title: Optional[str] = None
    student_id: str
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    answers: List[dict] = []
    total_score: float
    feedback: Optional[str] = None
    status: SubmissionStatus
    submitted_on_time: bool = True
    created_at: datetime
    evaluated_at: Optional[datetime] = None
