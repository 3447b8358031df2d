from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field
from enum import Enum

# ==================== ENUMS ====================

class QuestionType(str, Enum):
    MCQ = "MCQ"
    TEXT = "TEXT"
    CODE = "CODE"

class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class SubmissionStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    EVALUATED = "EVALUATED"

# Derived, never stored
class StudentAssignmentStatus(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    EVALUATED = "EVALUATED"
    MISSED = "MISSED"
    NOT_SUBMITTED = "NOT_SUBMITTED"

# ==================== DATABASE MODELS ====================

class Assignment(BaseModel):
    assignment_id: str  # ASG_XXXXXX
    classroom_id: str
    created_by: str  # teacher user_id
    title: str
    description: Optional[str] = None
    total_marks: float
    start_time: Optional[datetime] = None
    deadline: Optional[datetime] = None
    is_published: bool = False
    published_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class MCQOption(BaseModel):
    text: str

class TestCase(BaseModel):
    input: str = ""
    expected_output: str = ""
    marks: float = 0
    is_hidden: bool = False

class Question(BaseModel):
    question_id: str  # QST_XXXXXX
    assignment_id: str
    type: QuestionType
    question_text: str
    options: List[MCQOption] = []
    correct_answer_index: Optional[int] = None
    marks: float
    difficulty: Difficulty = Difficulty.MEDIUM
    test_cases: List[TestCase] = []
    order: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Answer(BaseModel):
    question_id: str
    answer: Optional[str] = None
    awarded_marks: float = 0
    teacher_comment: Optional[str] = None
    is_correct: Optional[bool] = None

class Submission(BaseModel):
    submission_id: str  # SUB_XXXXXX
    assignment_id: str
    classroom_id: str
    student_id: str
    answers: List[Answer] = []
    total_score: float = 0
    feedback: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    submitted_on_time: bool = True
    evaluated_by: Optional[str] = None
    evaluated_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
