from fastapi import APIRouter, Depends
from app.students.student_permissions import (
    get_current_student,
    verify_classroom_membership,
    verify_assignment_access,
    verify_submission_ownership,
    StudentContext
)
from app.students.student_schemas import SubmitAssignmentRequest, JoinClassroomRequest
from app.students import student_service as service

router = APIRouter(prefix="/student", tags=["Student Portal"])

# ==================== DASHBOARD ====================

@router.get("/dashboard")
async def get_dashboard(student: StudentContext = Depends(get_current_student)):
    return await service.get_dashboard(student)

# ==================== ASSIGNMENTS ====================

@router.get("/assignments")
async def get_my_assignments(student: StudentContext = Depends(get_current_student)):
    """
    Published assignments from joined classrooms with PENDING/SUBMITTED/EVALUATED/MISSED status
    """
    return await service.get_my_assignments(student)

@router.get("/assignments/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    student: StudentContext = Depends(get_current_student)
):
    """
    Assignment with questions; answer keys and hidden test cases are removed
    """
    assignment = await verify_assignment_access(assignment_id, student)
    return await service.get_assignment_detail(assignment, student)

@router.post("/assignments/{assignment_id}/submit", status_code=201)
async def submit_assignment(
    assignment_id: str,
    data: SubmitAssignmentRequest,
    student: StudentContext = Depends(get_current_student)
):
    """
    Submit answers once

    Server-side validations:
    - Classroom membership (403)
    - Published, started and before the deadline (400)
    - One submission per assignment (400)
    """
    assignment = await verify_assignment_access(assignment_id, student)
    return await service.submit_assignment(
        assignment, student, [a.dict() for a in data.answers]
    )

# ==================== SUBMISSIONS ====================

@router.get("/submissions")
async def get_my_submissions(student: StudentContext = Depends(get_current_student)):
    return await service.get_my_submission_list(student)

@router.get("/submissions/{submission_id}")
async def get_submission(
    submission_id: str,
    student: StudentContext = Depends(get_current_student)
):
    submission = await verify_submission_ownership(submission_id, student)
    return await service.get_my_submission_detail(submission)

# ==================== CLASSROOMS ====================

@router.get("/classrooms")
async def get_available_classrooms(student: StudentContext = Depends(get_current_student)):
    """
    Active classrooms the student has not joined yet
    """
    return await service.get_available_classrooms(student)

@router.post("/classrooms/join")
async def join_classroom(
    data: JoinClassroomRequest,
    student: StudentContext = Depends(get_current_student)
):
    return await service.join_classroom(student, data.code)

@router.get("/classrooms/joined")
async def get_joined_classrooms(student: StudentContext = Depends(get_current_student)):
    return await service.get_joined_classrooms(student)

@router.get("/classrooms/{classroom_id}")
async def get_classroom(
    classroom_id: str,
    student: StudentContext = Depends(get_current_student)
):
    classroom = await verify_classroom_membership(classroom_id, student)
    return await service.get_classroom_detail(classroom, student)
