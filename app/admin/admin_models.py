from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from enum import Enum


class DocumentType(str, Enum):
    OFFER_LETTER = "OFFER_LETTER"
    APPOINTMENT_LETTER = "APPOINTMENT_LETTER"
    EXPERIENCE_LETTER = "EXPERIENCE_LETTER"
    RELIEVING_LETTER = "RELIEVING_LETTER"
    PAYSLIP = "PAYSLIP"
    PAN_CARD = "PAN_CARD"
    AADHAR_CARD = "AADHAR_CARD"
    QUALIFICATION_CERTIFICATE = "QUALIFICATION_CERTIFICATE"
    TRAINING_CERTIFICATE = "TRAINING_CERTIFICATE"
    ACHIEVEMENT_CERTIFICATE = "ACHIEVEMENT_CERTIFICATE"
    CONTRACT = "CONTRACT"


class EmployeeDocument(BaseModel):
    document_id: str  # DOC_XXXXXX
    employee_id: str
    document_type: DocumentType
    title: Optional[str] = None
    description: Optional[str] = None
    file_url: str
    file_type: Optional[str] = None
    file_size: int = 0
    issue_date: datetime = Field(default_factory=datetime.utcnow)
    expiry_date: Optional[datetime] = None
    metadata: dict = {}
    is_verified: bool = False
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    uploaded_by: str
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)


# ==================== PLATFORM HEALTH ====================

def performance_grade(score: float) -> str:
    if score >= 90:
        return "A+"
    if score >= 80:
        return "A"
    if score >= 70:
        return "B"
    if score >= 60:
        return "C"
    if score >= 50:
        return "D"
    return "F"


def recommendations(submission_rate: float, on_time_rate: float, utilization_rate: float, at_risk_students: int) -> list:
    tips = []
    if submission_rate < 70:
        tips.append("Consider sending reminders for pending assignments")
    if on_time_rate < 60:
        tips.append("Review assignment deadlines - students may need more time")
    if utilization_rate < 50:
        tips.append("Optimize classroom usage - many classrooms have few students")
    if at_risk_students > 10:
        tips.append(f"{at_risk_students} students haven't submitted any assignments")
    return tips


def last_n_months(now: datetime, n: int = 6) -> list:
    """(year, month) pairs, oldest first, ending with the month of now"""
    months = []
    year, month = now.year, now.month
    for _ in range(n):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))
