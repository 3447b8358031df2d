from fastapi import HTTPException, Depends
from app.auth.auth_utils import verify_bearer_token
from app.auth.auth_permissions import UserContext, load_user_from_token
from app.auth.auth_models import Role
from app.database import db

class TeacherContext(UserContext):
    """
    Contains validated teacher profile and scope
    """
    def __init__(self, user: dict):
        super().__init__(user)
        record = user.get("employee_record") or {}
        self.employee_id = record.get("employee_id")
        self.designation = record.get("designation") or user.get("designation")

async def get_current_teacher(
    payload: dict = Depends(verify_bearer_token)
) -> TeacherContext:
    """
    Dependency: Validates user is a teacher and returns their context

    Raises:
        401: Invalid token
        403: Not a teacher
    """
    try:
        user = await load_user_from_token(payload)

        if user.get("role") != Role.TEACHER.value:
            raise HTTPException(
                status_code=403,
                detail="Access denied. Teacher privileges required."
            )

        return TeacherContext(user)

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Auth error: {str(e)}")

async def verify_classroom_ownership(
    classroom_id: str,
    teacher: TeacherContext
) -> dict:
    """
    Validates teacher is assigned to this classroom

    Returns:
        dict: Classroom document

    Raises:
        404: Classroom not found
        403: Not the owner
    """
    classroom = await db.classrooms.find_one({"classroom_id": classroom_id})

    if not classroom:
        raise HTTPException(status_code=404, detail="Classroom not found")

    if classroom.get("teacher_id") != teacher.user_id:
        raise HTTPException(status_code=403, detail="Not authorized to access this classroom")

    return classroom

async def verify_assignment_ownership(
    assignment_id: str,
    teacher: TeacherContext
) -> dict:
    """
    Validates teacher created this assignment

    Returns:
        dict: Assignment document

    Raises:
        404: Assignment not found
        403: Not the owner
    """
    assignment = await db.assignments.find_one({"assignment_id": assignment_id})

    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")

    if assignment.get("created_by") != teacher.user_id:
        raise HTTPException(status_code=403, detail="Not authorized to access this assignment")

    return assignment

async def verify_submission_access(
    submission_id: str,
    teacher: TeacherContext
) -> tuple:
    """
    Validates teacher can access this submission (must own the assignment)

    Returns:
        (submission, assignment)

    Raises:
        404: Submission not found
        403: Not authorized
    """
    submission = await db.submissions.find_one({"submission_id": submission_id})

    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")

    assignment = await db.assignments.find_one({"assignment_id": submission.get("assignment_id")})

    if not assignment:
        raise HTTPException(status_code=404, detail="Parent assignment not found")

    if assignment.get("created_by") != teacher.user_id:
        raise HTTPException(status_code=403, detail="Not authorized to access this submission")

    return submission, assignment

def check_assignment_not_published(assignment: dict):
    """
    Raises 400 if the assignment is already visible to students
    """
    if assignment.get("is_published", False):
        raise HTTPException(
            status_code=400,
            detail="Cannot modify a published assignment"
        )
