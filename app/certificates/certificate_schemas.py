from pydantic import BaseModel, Field
from typing import Optional, List
from app.certificates.certificate_models import CertificateType


class IssueCertificatesRequest(BaseModel):
    student_ids: List[str] = Field(..., min_items=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    type: CertificateType = CertificateType.ACHIEVEMENT
    score: Optional[float] = None


class CourseCertificateRequest(BaseModel):
    instructor_name: Optional[str] = None
