"""
Chapter completion and rank summary services.

complete_chapter is the only write path that awards chapter points. It
updates the completion row, the user's rank state, progress and rank
history, then evaluates achievements.
"""

import logging
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.database import find_course_item, get_course_progress, get_course
from app.gamification.achievements import evaluate_achievements
from app.gamification.models import RankChangeType
from app.gamification.points import (
    calculate_chapter_points,
    next_streak_days,
    rank_progress_percentage,
    reaches_rank_ceiling,
)
from app.gamification.ranks import get_rank_config, get_user_rank, record_rank_history
from app.notifications.service import notify_rank_promotion, notify_milestone

logger = logging.getLogger(__name__)

RECENT_COMPLETIONS_LIMIT = 10
RECENT_HISTORY_LIMIT = 5


class CoursePointsNotConfigured(Exception):
    """The course has no points budget assigned"""


class RankNotInitialized(Exception):
    """The user has no user_ranks row yet"""


class CourseItemNotFound(Exception):
    """The chapter or subchapter is not part of the course"""


async def get_course_points(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    return await db.course_points.find_one({"course_id": course_id}, {"_id": 0})


async def _require_course_points(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course_points = await get_course_points(db, course_id)
    if not course_points:
        raise CoursePointsNotConfigured(f"Course points not configured for {course_id}")
    return course_points


async def _require_course_item(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str) -> dict:
    item = await find_course_item(db, course_id, chapter_id)
    if not item:
        raise CourseItemNotFound(f"Chapter {chapter_id} not found in course {course_id}")
    return item


async def _is_first_completion(db: AsyncIOMotorDatabase, user_id: str, chapter_id: str) -> bool:
    existing = await db.chapter_completions.find_one({"user_id": user_id, "chapter_id": chapter_id})
    return existing is None


# ==================== PREVIEW ====================

async def preview_chapter_points(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    chapter_id: str,
    completion_time: float,
    quiz_score: Optional[float] = None,
    expected_time: Optional[float] = None,
) -> dict:
    """Points a completion would earn right now; nothing is written"""
    course_points = await _require_course_points(db, course_id)
    await _require_course_item(db, course_id, chapter_id)
    user_rank = await get_user_rank(db, user_id) or {}
    streak_days = user_rank.get("streak_days", 0)

    breakdown = calculate_chapter_points(
        points_per_chapter=course_points["points_per_chapter"],
        is_first_time=await _is_first_completion(db, user_id, chapter_id),
        completion_time=completion_time,
        quiz_score=quiz_score,
        expected_time=expected_time,
        streak_days=streak_days,
    )
    return breakdown.to_dict()


# ==================== COMPLETION ====================

async def complete_chapter(
    db: AsyncIOMotorDatabase,
    user_id: str,
    course_id: str,
    chapter_id: str,
    completion_time: float,
    quiz_score: Optional[float] = None,
    expected_time: Optional[float] = None,
    now: datetime = None,
) -> dict:
    now = now or datetime.utcnow()

    user_rank = await get_user_rank(db, user_id)
    if not user_rank:
        raise RankNotInitialized(f"User rank not initialized for {user_id}")

    course_points = await _require_course_points(db, course_id)
    await _require_course_item(db, course_id, chapter_id)
    is_first_time = await _is_first_completion(db, user_id, chapter_id)

    breakdown = calculate_chapter_points(
        points_per_chapter=course_points["points_per_chapter"],
        is_first_time=is_first_time,
        completion_time=completion_time,
        quiz_score=quiz_score,
        expected_time=expected_time,
        streak_days=user_rank.get("streak_days", 0),
    )
    final_points = breakdown.final_points

    streak_days = next_streak_days(
        user_rank.get("streak_days", 0), user_rank.get("last_streak_date"), now
    )

    # Threshold promotion: crossing the current rank's ceiling moves up exactly one rank
    current_rank = user_rank["current_rank"]
    new_total = user_rank.get("total_points", 0) + final_points
    current_cfg = await get_rank_config(db, current_rank)
    next_cfg = None
    new_rank = current_rank
    if reaches_rank_ceiling(new_total, current_cfg):
        next_cfg = await get_rank_config(db, current_rank + 1)
        if next_cfg:
            new_rank = current_rank + 1
    promoted = new_rank > current_rank

    # ---------- completion row ----------
    await db.chapter_completions.update_one(
        {"user_id": user_id, "chapter_id": chapter_id},
        {
            "$set": {
                "course_id": course_id,
                "base_points": breakdown.base_points,
                "bonus_points": breakdown.bonus_points,
                "bonus_breakdown": breakdown.bonus_breakdown,
                "total_points": breakdown.total_points,
                "final_points": final_points,
                "points_earned": final_points,
                "completion_time": completion_time,
                "quiz_score": quiz_score,
                "is_perfect_score": breakdown.is_perfect_score,
                "has_speed_bonus": breakdown.has_speed_bonus,
                "streak_multiplier": breakdown.streak_multiplier,
                "completed_at": now,
            },
            "$setOnInsert": {"is_first_time": True, "first_completed_at": now},
        },
        upsert=True
    )
    completion = await db.chapter_completions.find_one(
        {"user_id": user_id, "chapter_id": chapter_id}, {"_id": 0}
    )

    # ---------- rank state ----------
    update = {
        "$set": {
            "total_points": new_total,
            "current_rank": new_rank,
            "streak_days": streak_days,
            "last_streak_date": now,
            "last_active": now,
            "highest_rank": max(user_rank.get("highest_rank", 1), new_rank),
        },
        "$inc": {"weekly_points": final_points},
    }
    if promoted:
        update["$inc"]["promotion_count"] = 1
    await db.user_ranks.update_one({"user_id": user_id}, update)

    if promoted:
        await record_rank_history(
            db, user_id, current_rank, new_rank, RankChangeType.PROMOTION,
            reason=f"Reached {new_total} points",
            weekly_points=user_rank.get("weekly_points", 0) + final_points,
            total_points=new_total,
            now=now,
        )
        logger.info("User %s promoted %d -> %d on completion", user_id, current_rank, new_rank)
        try:
            await notify_rank_promotion(db, user_id, current_cfg, next_cfg)
        except Exception:
            logger.exception("Promotion notification failed for %s", user_id)

    # ---------- progress ----------
    await db.progress.update_one(
        {"user_id": user_id, "chapter_id": chapter_id},
        {
            "$set": {
                "course_id": course_id,
                "is_completed": True,
                "completed_at": now,
                "updated_at": now,
            },
            "$setOnInsert": {"created_at": now},
        },
        upsert=True
    )

    if is_first_time:
        await _notify_course_finished(db, user_id, course_id)

    achievements_unlocked = await evaluate_achievements(db, user_id, now)

    refreshed = await get_user_rank(db, user_id)
    return {
        "points": {
            "base_points": breakdown.base_points,
            "bonus_points": breakdown.bonus_points,
            "bonus_breakdown": breakdown.bonus_breakdown,
            "total_points": breakdown.total_points,
            "streak_multiplier": breakdown.streak_multiplier,
            "final_points": final_points,
        },
        "rank": {
            "current": refreshed["current_rank"],
            "total_points": refreshed["total_points"],
            "weekly_points": refreshed["weekly_points"],
            "streak_days": refreshed["streak_days"],
            "promoted": promoted,
        },
        "completion": completion,
        "achievements_unlocked": [a["code"] for a in achievements_unlocked],
    }


async def _notify_course_finished(db: AsyncIOMotorDatabase, user_id: str, course_id: str):
    progress = await get_course_progress(db, user_id, course_id)
    if not progress["is_completed"]:
        return

    course = await get_course(db, course_id)
    title = course["title"] if course else course_id
    try:
        await notify_milestone(db, user_id, "Course completed", f"You finished {title}")
    except Exception:
        logger.exception("Milestone notification failed for %s", user_id)


# ==================== SUMMARY ====================

async def get_user_rank_summary(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    user_rank = await get_user_rank(db, user_id)
    if not user_rank:
        return None

    current_cfg = await get_rank_config(db, user_rank["current_rank"])
    next_cfg = await get_rank_config(db, user_rank["current_rank"] + 1)

    higher = await db.user_ranks.count_documents(
        {"total_points": {"$gt": user_rank.get("total_points", 0)}}
    )

    recent_completions = await db.chapter_completions.find(
        {"user_id": user_id}, {"_id": 0}
    ).sort("completed_at", -1).limit(RECENT_COMPLETIONS_LIMIT).to_list(length=RECENT_COMPLETIONS_LIMIT)

    rank_history = await db.rank_history.find(
        {"user_id": user_id}, {"_id": 0}
    ).sort("created_at", -1).limit(RECENT_HISTORY_LIMIT).to_list(length=RECENT_HISTORY_LIMIT)

    return {
        "user_rank": user_rank,
        "current_rank_config": current_cfg,
        "next_rank_config": next_cfg,
        "progress_percentage": rank_progress_percentage(
            user_rank.get("total_points", 0), current_cfg, next_cfg
        ),
        "leaderboard_position": higher + 1,
        "recent_completions": recent_completions,
        "rank_history": rank_history,
    }
