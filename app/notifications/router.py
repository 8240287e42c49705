import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user
from app.database import get_db
from app.notifications import service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
async def get_notifications(
    unread_only: bool = Query(False, description="Fetch only unread notifications"),
    limit: int = Query(50, ge=1, le=200),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        result = await service.list_notifications(db, user.user_id, unread_only, limit)
        return {"status": "success", **result}
    except Exception as e:
        logger.exception("Failed to list notifications for %s", user.user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/mark-all-read")
async def mark_all_notifications_read(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        modified = await service.mark_all_read(db, user.user_id)
        return {
            "status": "success",
            "message": f"Marked {modified} notifications as read",
            "modified_count": modified
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{notification_id}/mark-read")
async def mark_notification_read(
    notification_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        found = await service.mark_read(db, user.user_id, notification_id)
        if not found:
            raise HTTPException(status_code=404, detail="Notification not found")

        return {"status": "success", "message": "Notification marked as read"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
