import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.admin.audit import log_audit
from app.auth.permissions import UserContext, require_admin, verify_cron_secret
from app.database import get_db
from app.gamification.models import CronAction, CronActionRequest
from app.gamification.weekly_rank_update import (
    get_evaluation_logs,
    reset_weekly_points,
    weekly_rank_update,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Cron"])


async def _run_weekly_update(db: AsyncIOMotorDatabase) -> JSONResponse:
    result = await weekly_rank_update(db)
    status_code = 200 if result.success else 500
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.to_dict()))


# ==================== SCHEDULER ====================

@router.get("/cron/weekly-rank-update")
async def weekly_rank_update_get(
    authorized: bool = Depends(verify_cron_secret),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await _run_weekly_update(db)


@router.post("/cron/weekly-rank-update")
async def weekly_rank_update_post(
    authorized: bool = Depends(verify_cron_secret),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await _run_weekly_update(db)


# ==================== ADMIN TRIGGER ====================

@router.post("/admin/cron")
async def admin_cron_action(
    body: CronActionRequest,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if body.action == CronAction.RUN.value:
        logger.info("Weekly rank update triggered by %s", admin.user_id)
        await log_audit(db, admin, "run_weekly_rank_update", "cron", "weekly-rank-update")
        return await _run_weekly_update(db)

    if body.action == CronAction.RESET_WEEKLY_POINTS.value:
        modified = await reset_weekly_points(db)
        await log_audit(db, admin, "reset_weekly_points", "cron", "weekly-points", {"modified": modified})
        return {"success": True, "modified_count": modified}

    raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")


@router.get("/admin/cron")
async def admin_cron_logs(
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"logs": await get_evaluation_logs(db, limit=10)}
