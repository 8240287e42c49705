from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user
from app.common.cache import with_cache
from app.config import LEADERBOARD_CACHE_SECONDS
from app.database import get_db
from app.gamification import leaderboard
from app.gamification.models import LeaderboardPeriod

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])


@router.get("")
async def get_leaderboard(
    course_id: Optional[str] = None,
    search: Optional[str] = None,
    period: LeaderboardPeriod = LeaderboardPeriod.ALL,
    limit: int = Query(50, ge=1, le=200),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Quiz score leaderboard, global or for one course"""
    try:
        return await leaderboard.quiz_score_leaderboard(
            db, user.user_id, course_id=course_id, search=search, period=period, limit=limit
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/points")
async def get_points_standings(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    standings = await with_cache(
        f"leaderboard:points:{limit}",
        lambda: leaderboard.points_standings(db, limit),
        LEADERBOARD_CACHE_SECONDS
    )
    return {"standings": standings}


@router.get("/weekly")
async def get_weekly_leaderboard(
    week: Optional[int] = Query(None, ge=1, le=53),
    year: Optional[int] = Query(None, ge=2000),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await leaderboard.weekly_snapshot(db, week, year, limit)
