from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from app.teachers.teacher_permissions import (
    get_current_teacher,
    verify_classroom_ownership,
    verify_assignment_ownership,
    verify_submission_access,
    check_assignment_not_published,
    TeacherContext
)
from app.teachers.teacher_schemas import (
    AssignmentCreate, AssignmentUpdate, AssignmentResponse,
    SubmissionResponse, SubmissionEvaluation
)
from app.teachers.teacher_models import SubmissionStatus
from app.teachers import teacher_service as service


router = APIRouter(prefix="/teacher", tags=["Teacher Management"])

# ==================== DASHBOARD ====================

@router.get("/dashboard")
async def get_dashboard(teacher: TeacherContext = Depends(get_current_teacher)):
    """
    Classroom, assignment and submission totals with score distribution
    """
    return await service.get_dashboard(teacher)

@router.get("/analytics")
async def get_analytics(teacher: TeacherContext = Depends(get_current_teacher)):
    return await service.get_teacher_analytics(teacher)

# ==================== CLASSROOMS ====================

@router.get("/classrooms")
async def get_my_classrooms(teacher: TeacherContext = Depends(get_current_teacher)):
    """
    Classrooms this teacher is assigned to
    """
    return await service.get_teacher_classrooms(teacher)

@router.get("/classrooms/{classroom_id}")
async def get_classroom_detail(
    classroom_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    classroom = await verify_classroom_ownership(classroom_id, teacher)
    classroom.pop("_id", None)
    classroom["student_details"] = await service.get_classroom_students(classroom)
    return classroom

@router.get("/classrooms/{classroom_id}/analytics")
async def get_classroom_analytics(
    classroom_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    classroom = await verify_classroom_ownership(classroom_id, teacher)
    return await service.get_classroom_analytics(classroom)

@router.get("/classrooms/{classroom_id}/students")
async def get_classroom_students(
    classroom_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    classroom = await verify_classroom_ownership(classroom_id, teacher)
    students = await service.get_classroom_students(classroom)

    return {
        "classroom_id": classroom_id,
        "total_students": len(students),
        "students": students
    }

# ==================== ASSIGNMENTS ====================

@router.post("/assignments", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    """
    Create an assignment with its questions (unpublished)
    """
    classroom = await verify_classroom_ownership(data.classroom_id, teacher)
    return await service.create_assignment(teacher, classroom, data.dict())

@router.get("/assignments", response_model=List[AssignmentResponse])
async def get_my_assignments(
    classroom_id: Optional[str] = None,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    return await service.get_teacher_assignments(teacher, classroom_id)

@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment_detail(
    assignment_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    await verify_assignment_ownership(assignment_id, teacher)
    return await service.get_assignment_detail(assignment_id)

@router.put("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: str,
    data: AssignmentUpdate,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    """
    Update an unpublished assignment; a question list replaces the existing one
    """
    assignment = await verify_assignment_ownership(assignment_id, teacher)
    check_assignment_not_published(assignment)
    return await service.update_assignment(assignment, teacher, data.dict(exclude_none=True))

@router.patch("/assignments/{assignment_id}/publish", response_model=AssignmentResponse)
async def publish_assignment(
    assignment_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    assignment = await verify_assignment_ownership(assignment_id, teacher)
    return await service.publish_assignment(assignment, teacher)

@router.delete("/assignments/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    assignment = await verify_assignment_ownership(assignment_id, teacher)
    await service.delete_assignment(assignment, teacher)
    return {"message": "Assignment deleted successfully"}

@router.get("/assignments/{assignment_id}/submissions", response_model=List[SubmissionResponse])
async def get_assignment_submissions(
    assignment_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    await verify_assignment_ownership(assignment_id, teacher)
    return await service.get_assignment_submissions(assignment_id)

# ==================== SUBMISSIONS ====================

@router.get("/submissions", response_model=List[SubmissionResponse])
async def get_all_submissions(
    status: Optional[SubmissionStatus] = Query(None),
    teacher: TeacherContext = Depends(get_current_teacher)
):
    return await service.get_all_submissions(teacher, status.value if status else None)

@router.get("/submissions/{submission_id}")
async def get_submission_detail(
    submission_id: str,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    submission, _ = await verify_submission_access(submission_id, teacher)
    return await service.get_submission_detail(submission)

@router.patch("/submissions/{submission_id}/evaluate")
async def evaluate_submission(
    submission_id: str,
    data: SubmissionEvaluation,
    teacher: TeacherContext = Depends(get_current_teacher)
):
    """
    Grade TEXT/CODE answers and confirm or override MCQ results
    """
    submission, assignment = await verify_submission_access(submission_id, teacher)
    return await service.evaluate_submission(
        submission,
        assignment,
        teacher,
        [a.dict() for a in data.answers],
        data.feedback or ""
    )
