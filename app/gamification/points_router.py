import logging

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user
from app.database import get_db
from app.gamification.achievements import ACHIEVEMENTS
from app.gamification.models import ChapterCompletionRequest
from app.gamification.ranks import get_rank_configs, get_user_rank
from app.gamification.service import (
    CourseItemNotFound,
    CoursePointsNotConfigured,
    RankNotInitialized,
    complete_chapter,
    get_user_rank_summary,
    preview_chapter_points,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["Points"])


@router.post("/calculate")
async def calculate_points(
    body: ChapterCompletionRequest,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Preview the points a completion would earn without saving anything"""
    try:
        breakdown = await preview_chapter_points(
            db, user.user_id, body.course_id, body.chapter_id,
            body.completion_time, body.quiz_score, body.expected_time
        )
        return {"success": True, "points": breakdown}
    except CoursePointsNotConfigured:
        raise HTTPException(status_code=404, detail="Course points not configured")
    except CourseItemNotFound:
        raise HTTPException(status_code=404, detail="Chapter not found")
    except Exception as e:
        logger.exception("Points preview failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/complete-chapter")
async def complete_chapter_endpoint(
    body: ChapterCompletionRequest,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        result = await complete_chapter(
            db, user.user_id, body.course_id, body.chapter_id,
            body.completion_time, body.quiz_score, body.expected_time
        )
        return {"success": True, **result}
    except RankNotInitialized:
        raise HTTPException(status_code=400, detail="User rank not initialized")
    except CoursePointsNotConfigured:
        raise HTTPException(status_code=404, detail="Course points not configured")
    except CourseItemNotFound:
        raise HTTPException(status_code=404, detail="Chapter not found")
    except Exception as e:
        logger.exception("Chapter completion failed for %s", user.user_id)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/ranks")
async def list_rank_configurations(db: AsyncIOMotorDatabase = Depends(get_db)):
    return {"ranks": await get_rank_configs(db)}


@router.get("/achievements")
async def list_achievements(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user_rank = await get_user_rank(db, user.user_id) or {}
    unlocked = set(user_rank.get("achievements", []))
    return {
        "achievements": [
            dict(achievement, unlocked=achievement["code"] in unlocked)
            for achievement in ACHIEVEMENTS
        ],
        "unlocked_count": len(unlocked),
    }


@router.get("/user/{user_id}")
async def get_user_points(
    user_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    summary = await get_user_rank_summary(db, user_id)
    if not summary:
        raise HTTPException(status_code=404, detail="User rank not found")
    return {"success": True, **summary}
