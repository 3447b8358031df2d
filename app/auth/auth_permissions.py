from typing import List
from fastapi import HTTPException, Depends
from app.auth.auth_utils import verify_bearer_token
from app.auth.auth_models import Role, EMPLOYEE_ROLES
from app.database import db


class UserContext:
    """
    Contains the authenticated user document and its role
    """
    def __init__(self, user: dict):
        self.user_id = user.get("user_id")
        self.unique_id = user.get("unique_id")
        self.name = user.get("name")
        self.email = user.get("email")
        self.role = user.get("role")
        self.department = user.get("department")
        self.profile = user

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


async def load_user_from_token(payload: dict) -> dict:
    user_id = payload.get("sub")

    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user_id")

    user = await db.users.find_one({"user_id": user_id})

    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account is deactivated")

    return user


async def get_current_user(
    payload: dict = Depends(verify_bearer_token)
) -> UserContext:
    """
    Dependency: any authenticated user

    Raises:
        401: Invalid token or unknown user
        403: Deactivated account
    """
    try:
        user = await load_user_from_token(payload)
        return UserContext(user)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Auth error: {str(e)}")


def require_roles(*roles: str):
    """
    Build a dependency that only admits the given roles
    """
    allowed: List[str] = [r.value if isinstance(r, Role) else r for r in roles]

    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if user.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Requires one of: {', '.join(allowed)}"
            )
        return user

    return dependency


get_current_admin = require_roles(Role.ADMIN)
get_current_staff = require_roles(Role.ADMIN, Role.FACULTY_ADMIN)
get_current_employee = require_roles(*EMPLOYEE_ROLES)
get_current_course_reader = require_roles(Role.ADMIN, Role.FACULTY_ADMIN, Role.TEACHER)
get_attendance_history_reader = require_roles(Role.TEACHER, Role.FACULTY_ADMIN, Role.ADMIN)
