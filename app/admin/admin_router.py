from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, File, Form, UploadFile
from app.auth.auth_permissions import UserContext, get_current_admin
from app.auth.auth_schemas import LeaveDecision
from app.admin.admin_models import DocumentType
from app.admin.admin_schemas import EmployeeCreate, EmployeeUpdate, StudentCreate, StudentUpdate
from app.admin import admin_service, people_service
from app.common_audit import get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])

# ==================== DASHBOARD ====================

@router.get("/stats")
async def get_admin_stats(admin: UserContext = Depends(get_current_admin)):
    """
    Platform overview: counts, activity, submission analytics and a health grade
    """
    return await admin_service.get_admin_stats()

@router.get("/monthly-growth")
async def get_monthly_growth(admin: UserContext = Depends(get_current_admin)):
    return await admin_service.get_monthly_growth()

@router.get("/assignment-performance")
async def get_assignment_performance(admin: UserContext = Depends(get_current_admin)):
    return await admin_service.get_assignment_performance()

@router.get("/audit-logs")
async def get_audit_logs(
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    admin: UserContext = Depends(get_current_admin)
):
    return await get_audit_trail(target_type, target_id, limit)

# ==================== TEACHERS ====================

@router.get("/teachers")
async def get_all_teachers(admin: UserContext = Depends(get_current_admin)):
    return await people_service.get_all_teachers()

@router.post("/teachers", status_code=201)
async def create_teacher(
    data: EmployeeCreate,
    admin: UserContext = Depends(get_current_admin)
):
    """
    Create a teacher with default salary, 30 leave days and the default shift
    """
    return await people_service.create_teacher(admin, data.dict())

@router.put("/teachers/{teacher_id}")
async def update_teacher(
    teacher_id: str,
    data: EmployeeUpdate,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.update_teacher(admin, teacher_id, data.dict(exclude_none=True))

@router.delete("/teachers/{teacher_id}")
async def delete_teacher(
    teacher_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.delete_teacher(admin, teacher_id)

@router.get("/teachers/{teacher_id}/details")
async def get_teacher_details(
    teacher_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.get_teacher_details(teacher_id)

@router.get("/teachers/{teacher_id}/leaves")
async def get_teacher_leaves(
    teacher_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.get_teacher_leaves(teacher_id)

@router.put("/teachers/{teacher_id}/leaves/{leave_id}")
async def decide_leave(
    teacher_id: str,
    leave_id: str,
    data: LeaveDecision,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.decide_leave(admin, teacher_id, leave_id, data.status.value)

# ==================== FACULTY ADMINS ====================

@router.get("/faculty-admins")
async def get_all_faculty_admins(admin: UserContext = Depends(get_current_admin)):
    return await people_service.get_all_faculty_admins()

@router.post("/faculty-admins", status_code=201)
async def create_faculty_admin(
    data: EmployeeCreate,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.create_faculty_admin(admin, data.dict())

@router.put("/faculty-admins/{user_id}")
async def update_faculty_admin(
    user_id: str,
    data: EmployeeUpdate,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.update_faculty_admin(admin, user_id, data.dict(exclude_none=True))

@router.delete("/faculty-admins/{user_id}")
async def delete_faculty_admin(
    user_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.delete_faculty_admin(admin, user_id)

@router.get("/faculty-admins/{user_id}/details")
async def get_faculty_admin_details(
    user_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.get_faculty_admin_details(user_id)

@router.get("/faculty-analytics")
async def get_faculty_analytics(admin: UserContext = Depends(get_current_admin)):
    return await people_service.get_faculty_analytics()

# ==================== EMPLOYEES ====================

@router.get("/employees")
async def get_all_employees(admin: UserContext = Depends(get_current_admin)):
    return await people_service.get_all_employees()

@router.post("/documents/upload", status_code=201)
async def upload_employee_document(
    employee_id: str = Form(...),
    document_type: DocumentType = Form(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    issue_date: Optional[datetime] = Form(None),
    document: Optional[UploadFile] = File(None),
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.upload_employee_document(
        admin, employee_id, document_type.value, document, title, description, issue_date
    )

@router.get("/documents/{employee_id}")
async def get_employee_documents(
    employee_id: str,
    document_type: Optional[DocumentType] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.get_employee_documents(
        employee_id, document_type.value if document_type else None
    )

# ==================== STUDENTS ====================

@router.get("/students")
async def get_all_students(admin: UserContext = Depends(get_current_admin)):
    return await people_service.get_all_students()

@router.post("/students", status_code=201)
async def create_student(
    data: StudentCreate,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.create_student(admin, data.dict())

@router.get("/students/analytics")
async def get_student_analytics(admin: UserContext = Depends(get_current_admin)):
    return await people_service.get_student_analytics()

@router.put("/students/{student_id}")
async def update_student(
    student_id: str,
    data: StudentUpdate,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.update_student(admin, student_id, data.dict(exclude_none=True))

@router.delete("/students/{student_id}")
async def delete_student(
    student_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    """
    Delete a student, their submissions, classroom attendance entries and enrollments
    """
    return await people_service.delete_student(admin, student_id)

@router.get("/students/{student_id}/details")
async def get_student_details(
    student_id: str,
    admin: UserContext = Depends(get_current_admin)
):
    return await people_service.get_student_details(student_id)

# ==================== ASSIGNMENTS & SUBMISSIONS ====================

@router.get("/assignments")
async def get_all_assignments(
    classroom_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    is_published: Optional[bool] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await admin_service.get_all_assignments(classroom_id, teacher_id, is_published)

@router.get("/submissions")
async def get_all_submissions(
    assignment_id: Optional[str] = None,
    student_id: Optional[str] = None,
    classroom_id: Optional[str] = None,
    status: Optional[str] = None,
    admin: UserContext = Depends(get_current_admin)
):
    return await admin_service.get_all_submissions(assignment_id, student_id, classroom_id, status)
