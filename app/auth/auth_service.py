from datetime import datetime
from typing import List
import logging
from fastapi import HTTPException
from app.database import db, generate_id, serialize_mongo
from app.auth.auth_models import (
    User, Role,
    generate_student_unique_id, generate_enrollment_number,
    check_profile_completeness
)
from app.auth.auth_utils import hash_password, verify_password, create_access_token
from app.auth.auth_permissions import UserContext

logger = logging.getLogger(__name__)

# Fields a user may never change through the profile endpoint
PROTECTED_FIELDS = {"password", "password_hash", "role", "email", "user_id", "unique_id"}

# ==================== REGISTRATION ====================

async def register_student(data: dict) -> dict:
    """Self-service registration; only students can sign up this way"""
    role = (data.pop("role", None) or Role.STUDENT.value).upper()
    if role != Role.STUDENT.value:
        raise HTTPException(status_code=400, detail="Only student registration is allowed")

    existing = await db.users.find_one({"email": data["email"]})
    if existing:
        raise HTTPException(status_code=400, detail="Email already exists")

    course_code = data.pop("course_code", None)
    password = data.pop("password")
    now = datetime.utcnow()

    user = User(
        user_id=generate_id("USR"),
        password_hash=hash_password(password),
        role=Role.STUDENT,
        unique_id=generate_student_unique_id(course_code),
        enrollment_number=generate_enrollment_number(data.get("department")),
        batch=data.pop("batch", None) or f"{now.year}-{now.year + 3}",
        current_semester=data.pop("current_semester", None) or "1",
        cgpa=data.pop("cgpa", None) or 0,
        **data
    )
    doc = user.dict()
    doc["is_profile_complete"] = check_profile_completeness(doc)

    await db.users.insert_one(doc)
    logger.info("Registered student %s (%s)", doc["user_id"], doc["unique_id"])

    token = create_access_token(doc["user_id"], doc["role"])
    return {"token": token, "token_type": "bearer", "user": _user_summary(doc)}

# ==================== LOGIN ====================

async def login(email: str, password: str) -> dict:
    user = await db.users.find_one({"email": email})

    if not user or not verify_password(password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account is deactivated")

    await db.users.update_one(
        {"user_id": user["user_id"]},
        {"$set": {"last_active": datetime.utcnow()}}
    )
    logger.info("User %s logged in as %s", user["user_id"], user["role"])

    token = create_access_token(user["user_id"], user["role"])
    return {"token": token, "token_type": "bearer", "user": _user_summary(user)}

def _user_summary(user: dict) -> dict:
    return {
        "user_id": user["user_id"],
        "name": user["name"],
        "email": user["email"],
        "role": user["role"],
        "unique_id": user.get("unique_id"),
        "avatar": user.get("avatar"),
    }

# ==================== PROFILE ====================

async def get_me(user: UserContext) -> dict:
    doc = await db.users.find_one({"user_id": user.user_id})
    if not doc:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return serialize_mongo(doc)

async def update_profile(user: UserContext, data: dict) -> dict:
    update_data = {
        k: v for k, v in data.items()
        if v is not None and k not in PROTECTED_FIELDS
    }

    merged = {**user.profile, **update_data}
    update_data["is_profile_complete"] = check_profile_completeness(merged)
    update_data["updated_at"] = datetime.utcnow()

    await db.users.update_one({"user_id": user.user_id}, {"$set": update_data})

    return await get_me(user)

async def get_eligible_students() -> List[dict]:
    """Students whose profile is complete (placement-ready list)"""
    projection = {
        "_id": 0, "user_id": 1, "name": 1, "email": 1, "phone": 1,
        "education": 1, "skills": 1, "cgpa": 1, "backlogs": 1,
        "batch": 1, "placement_status": 1
    }
    cursor = db.users.find(
        {"role": Role.STUDENT.value, "is_profile_complete": True},
        projection
    ).sort("name", 1)
    return await cursor.to_list(length=None)
