import secrets
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from enum import Enum
from app.config import FRONTEND_URL
from app.teachers.grading import percentage_of

# Assignment submissions at or above this percentage count as achievements
ACHIEVEMENT_THRESHOLD = 70


class CertificateType(str, Enum):
    ASSIGNMENT = "ASSIGNMENT"
    COURSE_COMPLETION = "COURSE_COMPLETION"
    ACHIEVEMENT = "ACHIEVEMENT"
    INTERNSHIP = "INTERNSHIP"
    PLACEMENT = "PLACEMENT"


class Certificate(BaseModel):
    """Stored inside the student's `certificates` list"""
    certificate_id: str  # NX-CERT-YYYY-XXXXXX
    type: CertificateType
    title: str
    description: Optional[str] = None
    issue_date: datetime = Field(default_factory=datetime.utcnow)
    expiry_date: Optional[datetime] = None
    url: Optional[str] = None
    qr_code: Optional[str] = None
    metadata: Dict[str, Any] = {}
    is_public: bool = True


class AccessLog(BaseModel):
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class QRScan(BaseModel):
    unique_id: str
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    access_logs: List[AccessLog] = []


def generate_certificate_id(now: Optional[datetime] = None) -> str:
    year = (now or datetime.utcnow()).year
    return f"NX-CERT-{year}-{secrets.token_hex(3).upper()}"


def certificate_verification_url(certificate_id: str) -> str:
    return f"{FRONTEND_URL}/verify/cert/{certificate_id}"


def student_verification_url(unique_id: str) -> str:
    return f"{FRONTEND_URL}/verify/{unique_id}"

# ==================== VERIFICATION VIEW ====================

def format_submission(submission: dict, assignment: Optional[dict], classroom_name: Optional[str]) -> dict:
    assignment = assignment or {}
    total_marks = assignment.get("total_marks") or 0
    obtained = submission.get("total_score") or 0
    return {
        "submission_id": submission["submission_id"],
        "assignment_id": submission["assignment_id"],
        "assignment_title": assignment.get("title") or "Unknown Assignment",
        "classroom_name": classroom_name or "Unknown Class",
        "total_marks": total_marks,
        "obtained_marks": obtained,
        "percentage": percentage_of(obtained, total_marks),
        "status": submission.get("status"),
        "submitted_at": submission.get("created_at"),
        "feedback": submission.get("feedback"),
    }


def assignment_stats(submissions: List[dict]) -> dict:
    count = len(submissions)
    return {
        "total_assignments": count,
        "submitted_count": len([s for s in submissions if s["status"] == "SUBMITTED"]),
        "evaluated_count": len([s for s in submissions if s["status"] == "EVALUATED"]),
        "average_score": round(sum(s["percentage"] for s in submissions) / count, 2) if count else 0,
        "total_obtained_marks": sum(s["obtained_marks"] for s in submissions),
        "total_possible_marks": sum(s["total_marks"] for s in submissions),
    }


def format_enrollment(enrollment: dict, course: Optional[dict]) -> dict:
    course = course or {}
    return {
        "enrollment_id": enrollment["enrollment_id"],
        "course_id": enrollment["course_id"],
        "course_title": course.get("title"),
        "course_code": course.get("code"),
        "credits": course.get("credits"),
        "level": course.get("level"),
        "department": course.get("department"),
        "enrollment_date": enrollment.get("enrollment_date"),
        "status": enrollment.get("status"),
        "progress": (enrollment.get("progress") or {}).get("overall_progress", 0),
        "grade": enrollment.get("final_grade"),
        "percentage": enrollment.get("final_percentage"),
        "completion_date": enrollment.get("completion_date"),
        "certificate_issued": enrollment.get("certificate_issued", False),
        "certificate_id": enrollment.get("certificate_id"),
        "certificate_url": enrollment.get("certificate_url"),
    }


def course_stats(enrollments: List[dict]) -> dict:
    return {
        "total_enrolled": len(enrollments),
        "completed": len([e for e in enrollments if e["status"] == "completed"]),
        "in_progress": len([e for e in enrollments if e["status"] == "in_progress"]),
        "dropped": len([e for e in enrollments if e["status"] == "dropped"]),
    }


def collect_certificates(stored: List[dict], submissions: List[dict], enrollments: List[dict]) -> List[dict]:
    """
    Public stored certificates, assignment achievements and course completions,
    newest first
    """
    certificates = [
        {
            "certificate_id": c.get("certificate_id"),
            "type": c.get("type"),
            "title": c.get("title"),
            "description": c.get("description"),
            "issue_date": c.get("issue_date"),
            "expiry_date": c.get("expiry_date"),
            "url": c.get("url"),
            "qr_code": c.get("qr_code"),
            "metadata": c.get("metadata", {}),
        }
        for c in stored if c.get("is_public")
    ]

    for s in submissions:
        if s["percentage"] < ACHIEVEMENT_THRESHOLD:
            continue
        certificates.append({
            "certificate_id": f"sub_{s['submission_id']}",
            "type": CertificateType.ASSIGNMENT.value,
            "title": f"Achievement: {s['assignment_title']}",
            "description": f"Scored {s['obtained_marks']}/{s['total_marks']} ({s['percentage']}%)",
            "issue_date": s["submitted_at"],
            "metadata": {
                "assignment_id": s["assignment_id"],
                "score": s["obtained_marks"],
                "max_score": s["total_marks"],
                "percentage": s["percentage"],
            },
        })

    for e in enrollments:
        if e["status"] != "completed" or not e["certificate_issued"]:
            continue
        certificates.append({
            "certificate_id": e.get("certificate_id") or f"course_{e['enrollment_id']}",
            "type": CertificateType.COURSE_COMPLETION.value,
            "title": f"Course Completion: {e['course_title']}",
            "description": f"Completed {e['course_title']} with {e['grade'] or 'Pass'}",
            "issue_date": e["completion_date"],
            "url": e["certificate_url"],
            "metadata": {
                "course_id": e["course_id"],
                "grade": e["grade"],
                "percentage": e["percentage"],
                "credits": e["credits"],
            },
        })

    return sorted(certificates, key=lambda c: c.get("issue_date") or datetime.min, reverse=True)
