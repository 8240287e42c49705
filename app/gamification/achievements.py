"""
Achievement catalogue and unlock rules.

Each achievement has a single requirement key. Unlocks are evaluated after
every chapter completion, awarded once per user, and pay their
points_reward into both total and weekly points.
"""

import logging
from datetime import datetime
from typing import Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.database import count_completed_courses
from app.gamification.models import AchievementCategory, AchievementRarity
from app.notifications.service import notify_achievement

logger = logging.getLogger(__name__)


def _achievement(code, name, description, icon, category, requirement, points_reward, rarity):
    return {
        "code": code,
        "name": name,
        "description": description,
        "icon": icon,
        "category": category.value,
        "requirement": requirement,
        "points_reward": points_reward,
        "rarity": rarity.value,
    }


ACHIEVEMENTS = [
    _achievement("STREAK_MASTER_7", "Week Warrior", "Maintain a 7-day learning streak", "🔥",
                 AchievementCategory.STREAK, {"streak_days": 7}, 100, AchievementRarity.COMMON),
    _achievement("STREAK_MASTER_30", "Monthly Maven", "Maintain a 30-day learning streak", "🔥",
                 AchievementCategory.STREAK, {"streak_days": 30}, 500, AchievementRarity.RARE),
    _achievement("STREAK_MASTER_90", "Quarterly Champion", "Maintain a 90-day learning streak", "🔥",
                 AchievementCategory.STREAK, {"streak_days": 90}, 2000, AchievementRarity.EPIC),
    _achievement("STREAK_MASTER_365", "Year Legend", "Maintain a 365-day learning streak", "🔥",
                 AchievementCategory.STREAK, {"streak_days": 365}, 10000, AchievementRarity.LEGENDARY),
    _achievement("PERFECTIONIST_5", "Perfect Start", "Complete 5 chapters with perfect scores", "💯",
                 AchievementCategory.PERFECTION, {"perfect_scores": 5}, 200, AchievementRarity.COMMON),
    _achievement("PERFECTIONIST_25", "Excellence Seeker", "Complete 25 chapters with perfect scores", "💯",
                 AchievementCategory.PERFECTION, {"perfect_scores": 25}, 1000, AchievementRarity.RARE),
    _achievement("PERFECTIONIST_100", "Perfection Master", "Complete 100 chapters with perfect scores", "💯",
                 AchievementCategory.PERFECTION, {"perfect_scores": 100}, 5000, AchievementRarity.LEGENDARY),
    _achievement("SPEED_DEMON_10", "Quick Learner", "Complete 10 chapters with speed bonus", "⚡",
                 AchievementCategory.SPEED, {"speed_bonuses": 10}, 150, AchievementRarity.COMMON),
    _achievement("SPEED_DEMON_50", "Lightning Mind", "Complete 50 chapters with speed bonus", "⚡",
                 AchievementCategory.SPEED, {"speed_bonuses": 50}, 800, AchievementRarity.RARE),
    _achievement("COURSE_CONQUEROR_1", "First Victory", "Complete your first course", "🎯",
                 AchievementCategory.COMPLETION, {"courses_completed": 1}, 500, AchievementRarity.COMMON),
    _achievement("COURSE_CONQUEROR_5", "Knowledge Collector", "Complete 5 courses", "🎯",
                 AchievementCategory.COMPLETION, {"courses_completed": 5}, 2500, AchievementRarity.RARE),
    _achievement("COURSE_CONQUEROR_10", "Course Master", "Complete 10 courses", "🎯",
                 AchievementCategory.COMPLETION, {"courses_completed": 10}, 5000, AchievementRarity.EPIC),
    _achievement("EARLY_BIRD", "Early Bird", "Complete a chapter before 8 AM", "🌅",
                 AchievementCategory.SPECIAL, {"completion_time_range": "00:00-08:00"}, 100, AchievementRarity.COMMON),
    _achievement("NIGHT_OWL", "Night Owl", "Complete a chapter after 10 PM", "🦉",
                 AchievementCategory.SPECIAL, {"completion_time_range": "22:00-23:59"}, 100, AchievementRarity.COMMON),
    _achievement("MILESTONE_10K", "10K Club", "Reach 10,000 total points", "🏅",
                 AchievementCategory.MILESTONE, {"total_points": 10000}, 500, AchievementRarity.RARE),
    _achievement("MILESTONE_50K", "50K Elite", "Reach 50,000 total points", "🏅",
                 AchievementCategory.MILESTONE, {"total_points": 50000}, 2500, AchievementRarity.EPIC),
    _achievement("MILESTONE_100K", "100K Legend", "Reach 100,000 total points", "🏅",
                 AchievementCategory.MILESTONE, {"total_points": 100000}, 5000, AchievementRarity.LEGENDARY),
]

ACHIEVEMENTS_BY_CODE = {a["code"]: a for a in ACHIEVEMENTS}

COUNTER_REQUIREMENTS = ("streak_days", "perfect_scores", "speed_bonuses", "courses_completed", "total_points")


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def in_time_range(time_range: str, moment: datetime) -> bool:
    """Start inclusive, end exclusive, minute resolution ("22:00-23:59" covers the last minute too)"""
    start, end = time_range.split("-")
    minute_of_day = moment.hour * 60 + moment.minute
    end_minutes = _minutes(end)
    if end_minutes == 23 * 60 + 59:
        end_minutes += 1
    return _minutes(start) <= minute_of_day < end_minutes


def requirement_met(requirement: Dict, stats: Dict) -> bool:
    for key in COUNTER_REQUIREMENTS:
        if key in requirement:
            return stats.get(key, 0) >= requirement[key]

    if "completion_time_range" in requirement:
        moment = stats.get("completion_moment")
        return moment is not None and in_time_range(requirement["completion_time_range"], moment)

    return False


# ==================== PERSISTENCE ====================

async def seed_achievements(db: AsyncIOMotorDatabase) -> int:
    for achievement in ACHIEVEMENTS:
        await db.achievements.update_one(
            {"code": achievement["code"]},
            {"$set": achievement},
            upsert=True
        )
    logger.info("Seeded %d achievements", len(ACHIEVEMENTS))
    return len(ACHIEVEMENTS)


async def collect_achievement_stats(db: AsyncIOMotorDatabase, user_id: str, user_rank: dict,
                                    completion_moment: datetime) -> dict:
    return {
        "streak_days": user_rank.get("streak_days", 0),
        "total_points": user_rank.get("total_points", 0),
        "perfect_scores": await db.chapter_completions.count_documents(
            {"user_id": user_id, "is_perfect_score": True}
        ),
        "speed_bonuses": await db.chapter_completions.count_documents(
            {"user_id": user_id, "has_speed_bonus": True}
        ),
        "courses_completed": await count_completed_courses(db, user_id),
        "completion_moment": completion_moment,
    }


async def evaluate_achievements(db: AsyncIOMotorDatabase, user_id: str,
                                completion_moment: datetime = None) -> List[dict]:
    """Award every achievement the user now qualifies for and has not unlocked yet"""
    completion_moment = completion_moment or datetime.utcnow()

    user_rank = await db.user_ranks.find_one({"user_id": user_id})
    if not user_rank:
        return []

    stats = await collect_achievement_stats(db, user_id, user_rank, completion_moment)
    already = set(user_rank.get("achievements", []))

    unlocked = []
    for achievement in ACHIEVEMENTS:
        if achievement["code"] in already or not requirement_met(achievement["requirement"], stats):
            continue

        result = await db.user_ranks.update_one(
            {"user_id": user_id, "achievements": {"$ne": achievement["code"]}},
            {
                "$addToSet": {"achievements": achievement["code"]},
                "$inc": {
                    "total_points": achievement["points_reward"],
                    "weekly_points": achievement["points_reward"],
                },
            }
        )
        if result.modified_count == 0:
            continue

        unlocked.append(achievement)
        logger.info("User %s unlocked %s", user_id, achievement["code"])

        try:
            await notify_achievement(db, user_id, achievement)
        except Exception:
            logger.exception("Achievement notification failed for %s", user_id)

    return unlocked
