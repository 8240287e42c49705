"""
Admin API Router
Platform stats, user management, invitations and content settings
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.admin.audit import get_audit_trail, log_audit
from app.admin.content_settings import get_content_settings, save_content_settings
from app.admin.invitations import InvitationError, create_invitation, signup_link
from app.admin.models import ContentSettings, InvitationCreate, UserAdminUpdate
from app.auth.permissions import UserContext, require_admin, require_owner, require_staff
from app.common.cache import cache, with_cache
from app.config import CONTENT_SETTINGS_CACHE_SECONDS
from app.database import get_db
from app.users.models import UserRole, UserStatus
from app.users.service import get_admin_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])
public_router = APIRouter(tags=["Content"])

CONTENT_SETTINGS_CACHE_KEY = "content-settings"


# ============================================================================
# DASHBOARD
# ============================================================================

@router.get("/stats")
async def admin_stats(
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await get_admin_stats(db)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/audit-logs")
async def audit_logs(
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Most recent audit entries first, optionally narrowed to one target"""
    logs = await get_audit_trail(db, target_type=target_type, target_id=target_id, limit=limit)
    return {"logs": logs, "count": len(logs)}


# ============================================================================
# USER MANAGEMENT
# ============================================================================

@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    List users with pagination and filters

    Filters:
    - search: name or email, case-insensitive
    - role: STUDENT, INSTRUCTOR, ADMIN, OWNER
    - status: ACTIVE, BLOCKED
    """
    query = {}

    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]
    if role:
        query["role"] = role.value
    if status:
        query["status"] = status.value

    skip = (page - 1) * limit
    users = await db.users_profile.find(query, {"_id": 0}) \
        .sort("created_at", -1) \
        .skip(skip) \
        .limit(limit) \
        .to_list(length=limit)

    total_count = await db.users_profile.count_documents(query)

    return {
        "status": "success",
        "users": users,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total_count,
            "total_pages": (total_count + limit - 1) // limit
        }
    }


@router.get("/users/stats")
async def user_counts(
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    by_role = {
        role.value: await db.users_profile.count_documents({"role": role.value})
        for role in UserRole
    }
    by_status = {
        status.value: await db.users_profile.count_documents({"status": status.value})
        for status in UserStatus
    }
    return {
        "total": await db.users_profile.count_documents({}),
        "by_role": by_role,
        "by_status": by_status,
    }


async def _get_modifiable_user(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    target = await db.users_profile.find_one({"user_id": user_id}, {"_id": 0})
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    if target.get("role") == UserRole.OWNER.value:
        raise HTTPException(status_code=403, detail="OWNER accounts cannot be modified")
    return target


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    data: UserAdminUpdate,
    owner: UserContext = Depends(require_owner),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Update a user

    - action=changeRole: set role (OWNER cannot be granted)
    - action=toggleStatus: flip ACTIVE / BLOCKED
    - no action: plain field update (name, email, status)
    """
    target = await _get_modifiable_user(db, user_id)

    if data.action == "changeRole":
        if not data.role:
            raise HTTPException(status_code=400, detail="role is required for changeRole")
        if data.role == UserRole.OWNER:
            raise HTTPException(status_code=403, detail="OWNER role cannot be assigned")
        update_fields = {"role": data.role.value}
    elif data.action == "toggleStatus":
        current = target.get("status", UserStatus.ACTIVE.value)
        new_status = UserStatus.BLOCKED if current == UserStatus.ACTIVE.value else UserStatus.ACTIVE
        update_fields = {"status": new_status.value}
    else:
        update_fields = {
            k: (v.value if hasattr(v, "value") else v)
            for k, v in data.dict(exclude_none=True).items()
            if k in ("name", "email", "status")
        }

    if not update_fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    await db.users_profile.update_one({"user_id": user_id}, {"$set": update_fields})
    await log_audit(db, owner, data.action or "update_user", "user", user_id, update_fields)

    return {
        "status": "success",
        "message": "User updated successfully",
        "updated_fields": update_fields
    }


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    owner: UserContext = Depends(require_owner),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Delete a user with their enrollments, progress, attempts and rank data"""
    await _get_modifiable_user(db, user_id)

    await db.users_profile.delete_one({"user_id": user_id})
    await db.enrollments.delete_many({"user_id": user_id})
    await db.progress.delete_many({"user_id": user_id})
    await db.quiz_attempts.delete_many({"user_id": user_id})
    await db.chapter_completions.delete_many({"user_id": user_id})
    await db.user_ranks.delete_one({"user_id": user_id})
    await db.rank_history.delete_many({"user_id": user_id})
    await db.notifications.delete_many({"user_id": user_id})
    await log_audit(db, owner, "delete_user", "user", user_id)

    return {
        "status": "success",
        "message": f"User {user_id} deleted completely"
    }


# ============================================================================
# INVITATIONS
# ============================================================================

@router.post("/user-management/invite")
async def invite_user(
    body: InvitationCreate,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        invitation = await create_invitation(
            db, body.email, body.role, admin.user_id, body.course_id, body.message
        )
    except InvitationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await log_audit(db, admin, "invite_user", "invitation", body.email, {"role": invitation["role"]})
    return {
        "success": True,
        "email": invitation["email"],
        "role": invitation["role"],
        "expires_at": invitation["expires_at"],
        "signup_link": signup_link(invitation["token"]),
        "email_sent": invitation["email_sent"],
    }


# ============================================================================
# CONTENT SETTINGS
# ============================================================================

@public_router.get("/content-settings")
async def read_content_settings(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await with_cache(
        CONTENT_SETTINGS_CACHE_KEY,
        lambda: get_content_settings(db),
        CONTENT_SETTINGS_CACHE_SECONDS
    )


@router.put("/content-settings")
async def replace_content_settings(
    body: ContentSettings,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    settings = await save_content_settings(db, body, admin.user_id)
    cache.delete(CONTENT_SETTINGS_CACHE_KEY)
    await log_audit(db, admin, "update_content_settings", "settings", "content_settings")
    return settings
