from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.admin.models import AuditLog


async def log_audit(
    db: AsyncIOMotorDatabase,
    actor,
    action: str,
    target_type: str,
    target_id: str,
    metadata: dict = None
):
    """
    Record an admin or staff write for auditability

    Args:
        actor: UserContext of whoever performed the action
        action: Action performed (e.g., 'assign_course_points', 'change_role')
        target_type: Resource type (e.g., 'course', 'user', 'cron')
        target_id: ID of the resource
        metadata: Additional context (optional)
    """
    audit_log = AuditLog(
        actor_user_id=actor.user_id,
        role=actor.role,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
        timestamp=datetime.utcnow()
    )

    await db.audit_logs.insert_one(audit_log.dict())


async def get_audit_trail(db: AsyncIOMotorDatabase, target_type: str = None, target_id: str = None,
                          limit: int = 100):
    query = {}

    if target_type:
        query["target_type"] = target_type

    if target_id:
        query["target_id"] = target_id

    cursor = db.audit_logs.find(query, {"_id": 0}).sort("timestamp", -1).limit(limit)
    return await cursor.to_list(length=limit)
