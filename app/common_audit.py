from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from app.database import db


class AuditLog(BaseModel):
    actor_user_id: str
    actor_unique_id: Optional[str] = None
    role: str
    action: str  # create_assignment, evaluate_submission, mark_attendance, ...
    target_type: str  # classroom, assignment, submission, attendance, payslip, ...
    target_id: str
    metadata: dict = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)


async def log_audit(
    actor,
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict = None
):
    """
    Log all destructive or important actions for auditability

    Args:
        actor: Any role context (UserContext and subclasses)
        action: Action performed (e.g., 'create_assignment', 'delete_classroom')
        target_type: Resource type (e.g., 'classroom', 'assignment', 'payslip')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    audit_log = AuditLog(
        actor_user_id=actor.user_id,
        actor_unique_id=actor.unique_id,
        role=actor.role,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
        timestamp=datetime.utcnow()
    )

    await db.audit_logs.insert_one(audit_log.dict())


async def get_audit_trail(target_type: str = None, target_id: str = None, limit: int = 100):
    """
    Retrieve audit logs with optional filters

    Returns:
        List of audit log entries, newest first
    """
    query = {}

    if target_type:
        query["target_type"] = target_type

    if target_id:
        query["target_id"] = target_id

    cursor = db.audit_logs.find(query).sort("timestamp", -1).limit(limit)
    logs = await cursor.to_list(length=limit)

    for log in logs:
        log.pop("_id", None)

    return logs
