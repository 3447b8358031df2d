from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from app.auth.auth_permissions import UserContext, get_current_admin, get_current_staff
from app.certificates.certificate_schemas import IssueCertificatesRequest, CourseCertificateRequest
from app.certificates import certificate_service as service

router = APIRouter(tags=["Certificates"])

# ==================== ADMIN ====================

@router.post("/admin/certificates/issue")
async def issue_certificates(
    data: IssueCertificatesRequest,
    admin: UserContext = Depends(get_current_admin)
):
    """
    Issue the same certificate to several students
    """
    return await service.issue_certificates(admin, data.dict())

@router.post("/courses/enrollments/{enrollment_id}/certificate", status_code=201)
async def issue_course_certificate(
    enrollment_id: str,
    data: CourseCertificateRequest = CourseCertificateRequest(),
    staff: UserContext = Depends(get_current_staff)
):
    """
    Generate the completion certificate PDF for a completed enrollment
    """
    return await service.issue_course_certificate(staff, enrollment_id, data.instructor_name)

# ==================== PUBLIC ====================

@router.get("/public/verify/{unique_id}")
async def verify_student(unique_id: str, request: Request):
    return await service.verify_student(
        unique_id,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )

@router.get("/public/verify/{unique_id}/quick")
async def quick_verify(unique_id: str):
    return await service.quick_verify(unique_id)

@router.get("/public/certificates/{certificate_id}")
async def get_certificate(certificate_id: str):
    return await service.get_certificate(certificate_id)

@router.get("/public/certificates/{certificate_id}/download")
async def download_certificate(certificate_id: str):
    filepath, filename = await service.get_certificate_file(certificate_id)
    return FileResponse(filepath, media_type="application/pdf", filename=filename)
