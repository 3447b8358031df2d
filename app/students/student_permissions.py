from datetime import datetime
from typing import Optional, Tuple
from fastapi import HTTPException, Depends
from app.auth.auth_utils import verify_bearer_token
from app.auth.auth_permissions import UserContext, load_user_from_token
from app.auth.auth_models import Role
from app.database import db


class StudentContext(UserContext):
    """
    Contains validated student profile and scope
    """
    def __init__(self, user: dict):
        super().__init__(user)
        self.enrollment_number = user.get("enrollment_number")
        self.batch = user.get("batch")
        self.current_semester = user.get("current_semester")

async def get_current_student(
    payload: dict = Depends(verify_bearer_token)
) -> StudentContext:
    """
    Dependency: Validates user is a student and returns their context

    Raises:
        401: Invalid token
        403: Not a student (teachers/admins blocked)
    """
    try:
        user = await load_user_from_token(payload)

        if user.get("role") != Role.STUDENT.value:
            raise HTTPException(
                status_code=403,
                detail="Only students can access student endpoints"
            )

        return StudentContext(user)

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Auth error: {str(e)}")

async def verify_classroom_membership(
    classroom_id: str,
    student: StudentContext
) -> dict:
    """
    Verify student is a member of this classroom

    Returns:
        dict: Classroom document

    Raises:
        404: Classroom not found
        403: Not a member
    """
    classroom = await db.classrooms.find_one({"classroom_id": classroom_id})

    if not classroom:
        raise HTTPException(status_code=404, detail="Classroom not found")

    if student.user_id not in classroom.get("students", []):
        raise HTTPException(status_code=403, detail="You are not a member of this classroom")

    return classroom

async def verify_assignment_access(
    assignment_id: str,
    student: StudentContext
) -> dict:
    """
    Verify student can see this assignment (published, in a joined classroom)

    Raises:
        404: Assignment not found or unpublished
        403: Not a classroom member
    """
    assignment = await db.assignments.find_one({"assignment_id": assignment_id})

    if not assignment or not assignment.get("is_published"):
        raise HTTPException(status_code=404, detail="Assignment not available")

    await verify_classroom_membership(assignment["classroom_id"], student)

    return assignment

async def verify_submission_ownership(
    submission_id: str,
    student: StudentContext
) -> dict:
    submission = await db.submissions.find_one({"submission_id": submission_id})

    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")

    if submission.get("student_id") != student.user_id:
        raise HTTPException(status_code=403, detail="Not authorized to access this submission")

    return submission

def check_can_submit(assignment: dict, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
    """
    Validates if student can submit to this assignment

    Returns:
        tuple: (can_submit: bool, reason: str or None)
    """
    now = now or datetime.utcnow()

    if not assignment.get("is_published"):
        return False, "Assignment is not published yet"

    start_time = assignment.get("start_time")
    if start_time and now < start_time:
        return False, "Assignment has not started yet"

    deadline = assignment.get("deadline")
    if deadline and now > deadline:
        return False, "Deadline has passed"

    return True, None
