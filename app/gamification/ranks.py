import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.gamification.models import RankTier, RankChangeType, UserRank, RankHistoryEntry
from app.gamification.points import iso_week

logger = logging.getLogger(__name__)

# ==================== RANK LADDER ====================

RANK_CONFIGURATIONS = [
    {
        "rank_number": 1, "name": "Knowledge Seeker", "icon": "🌱", "color": "#10b981",
        "description": "You've taken your first steps into the world of learning. Every journey begins with curiosity!",
        "min_points": 0, "max_points": 1000, "estimated_weeks": 2,
        "tier": RankTier.NOVICE, "is_animated": False,
    },
    {
        "rank_number": 2, "name": "Curious Learner", "icon": "🔍", "color": "#3b82f6",
        "description": "Your curiosity drives you forward. You're exploring new topics and building foundations.",
        "min_points": 1000, "max_points": 2500, "estimated_weeks": 4,
        "tier": RankTier.NOVICE, "is_animated": False,
    },
    {
        "rank_number": 3, "name": "Dedicated Student", "icon": "📚", "color": "#6366f1",
        "description": "Consistency is your strength. You're committed to regular learning and growth.",
        "min_points": 2500, "max_points": 5000, "estimated_weeks": 6,
        "tier": RankTier.NOVICE, "is_animated": False,
    },
    {
        "rank_number": 4, "name": "Knowledge Enthusiast", "icon": "🎓", "color": "#8b5cf6",
        "description": "Learning is becoming your passion. You're expanding your horizons across multiple domains.",
        "min_points": 5000, "max_points": 10000, "estimated_weeks": 10,
        "tier": RankTier.INTERMEDIATE, "is_animated": False,
    },
    {
        "rank_number": 5, "name": "Diligent Scholar", "icon": "📖", "color": "#a855f7",
        "description": "Your dedication is remarkable. You're diving deep into complex subjects with confidence.",
        "min_points": 10000, "max_points": 15000, "estimated_weeks": 15,
        "tier": RankTier.INTERMEDIATE, "is_animated": False,
    },
    {
        "rank_number": 6, "name": "Academic Achiever", "icon": "🏆", "color": "#d946ef",
        "description": "Excellence is your standard. Your achievements speak to your hard work and talent.",
        "min_points": 15000, "max_points": 25000, "estimated_weeks": 20,
        "tier": RankTier.INTERMEDIATE, "is_animated": True,
    },
    {
        "rank_number": 7, "name": "Wisdom Seeker", "icon": "🧠", "color": "#ec4899",
        "description": "You're not just learning facts, you're seeking understanding and wisdom.",
        "min_points": 25000, "max_points": 40000, "estimated_weeks": 28,
        "tier": RankTier.ADVANCED, "is_animated": True,
    },
    {
        "rank_number": 8, "name": "Master Student", "icon": "⚡", "color": "#f59e0b",
        "description": "You've mastered the art of learning. Your skills and knowledge are truly impressive.",
        "min_points": 40000, "max_points": 55000, "estimated_weeks": 36,
        "tier": RankTier.ADVANCED, "is_animated": True,
    },
    {
        "rank_number": 9, "name": "Knowledge Guardian", "icon": "🛡️", "color": "#f97316",
        "description": "You protect and preserve knowledge. Your expertise guides others on their journey.",
        "min_points": 55000, "max_points": 75000, "estimated_weeks": 45,
        "tier": RankTier.ADVANCED, "is_animated": True,
    },
    {
        "rank_number": 10, "name": "Enlightened Mind", "icon": "💡", "color": "#ef4444",
        "description": "Enlightenment comes from persistence. Your understanding transcends ordinary learning.",
        "min_points": 75000, "max_points": 100000, "estimated_weeks": 52,
        "tier": RankTier.EXPERT, "is_animated": True,
    },
    {
        "rank_number": 11, "name": "Academic Luminary", "icon": "✨", "color": "#dc2626",
        "description": "You shine as a beacon of knowledge. Your insights illuminate the path for countless others.",
        "min_points": 100000, "max_points": 150000, "estimated_weeks": 65,
        "tier": RankTier.EXPERT, "is_animated": True,
    },
    {
        "rank_number": 12, "name": "Wisdom Sage", "icon": "🔮", "color": "#991b1b",
        "description": "Wisdom flows through you. Your depth of understanding is matched by few.",
        "min_points": 150000, "max_points": 200000, "estimated_weeks": 80,
        "tier": RankTier.EXPERT, "is_animated": True,
    },
    {
        "rank_number": 13, "name": "Grand Maestro", "icon": "👑", "color": "#fbbf24",
        "description": "You've reached legendary status. Your mastery across multiple domains is extraordinary.",
        "min_points": 200000, "max_points": 350000, "estimated_weeks": 104,
        "tier": RankTier.LEGENDARY, "is_animated": True,
    },
    {
        "rank_number": 14, "name": "Omniscient Scholar", "icon": "🌟", "color": "#fcd34d",
        "description": "The pinnacle of achievement. Your knowledge knows no bounds.",
        "min_points": 350000, "max_points": None, "estimated_weeks": 130,
        "tier": RankTier.LEGENDARY, "is_animated": True,
    },
]


# ==================== RANK CONFIG ====================

async def seed_rank_configurations(db: AsyncIOMotorDatabase) -> int:
    for config in RANK_CONFIGURATIONS:
        doc = dict(config, tier=config["tier"].value)
        await db.rank_configurations.update_one(
            {"rank_number": config["rank_number"]},
            {"$set": doc},
            upsert=True
        )
    logger.info("Seeded %d rank configurations", len(RANK_CONFIGURATIONS))
    return len(RANK_CONFIGURATIONS)


async def get_rank_config(db: AsyncIOMotorDatabase, rank_number: int) -> Optional[dict]:
    return await db.rank_configurations.find_one({"rank_number": rank_number}, {"_id": 0})


async def get_rank_configs(db: AsyncIOMotorDatabase) -> List[dict]:
    cursor = db.rank_configurations.find({}, {"_id": 0}).sort("rank_number", 1)
    return await cursor.to_list(length=None)


# ==================== USER RANK ====================

async def get_user_rank(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.user_ranks.find_one({"user_id": user_id}, {"_id": 0})


async def initialize_user_rank(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    """Create the starting rank row for a user; existing rows are left untouched"""
    existing = await get_user_rank(db, user_id)
    if existing:
        return existing

    user_rank = UserRank(user_id=user_id).dict()
    await db.user_ranks.insert_one(dict(user_rank))
    logger.info("Initialized rank for user %s", user_id)
    return user_rank


async def record_rank_history(
    db: AsyncIOMotorDatabase,
    user_id: str,
    from_rank: int,
    to_rank: int,
    change_type: RankChangeType,
    reason: str,
    weekly_points: int = 0,
    total_points: int = 0,
    now: datetime = None,
) -> dict:
    now = now or datetime.utcnow()
    week_number, year = iso_week(now)

    entry = RankHistoryEntry(
        user_id=user_id,
        from_rank=from_rank,
        to_rank=to_rank,
        change_type=change_type,
        weekly_points=weekly_points,
        total_points=total_points,
        reason=reason,
        week_number=week_number,
        year=year,
        created_at=now,
    ).dict()
    entry["change_type"] = change_type.value

    await db.rank_history.insert_one(dict(entry))
    return entry
