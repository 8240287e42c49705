import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.config import MONGO_URL, MONGO_DB_NAME

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


async def create_indexes(db: AsyncIOMotorDatabase):
    """Create all indexes used by the academy collections"""

    # ==================== USERS ====================
    await db.users_profile.create_index("user_id", unique=True)
    await db.users_profile.create_index("email", unique=True)
    await db.users_profile.create_index([("role", ASCENDING), ("status", ASCENDING)])

    # ==================== CONTENT ====================
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index([("is_published", ASCENDING), ("created_at", DESCENDING)])
    await db.chapters.create_index("chapter_id", unique=True)
    await db.chapters.create_index([("course_id", ASCENDING), ("position", ASCENDING)])
    await db.subchapters.create_index("subchapter_id", unique=True)
    await db.subchapters.create_index([("chapter_id", ASCENDING), ("position", ASCENDING)])
    await db.subchapters.create_index("course_id")
    await db.quizzes.create_index("quiz_id", unique=True)
    await db.quizzes.create_index("chapter_id")
    await db.quiz_attempts.create_index([("user_id", ASCENDING), ("quiz_id", ASCENDING)])
    await db.quiz_attempts.create_index([("course_id", ASCENDING), ("completed_at", DESCENDING)])

    # ==================== ENROLLMENT / PROGRESS ====================
    await db.enrollments.create_index(
        [("user_id", ASCENDING), ("course_id", ASCENDING)], unique=True
    )
    await db.progress.create_index(
        [("user_id", ASCENDING), ("chapter_id", ASCENDING)], unique=True
    )
    await db.progress.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)])

    # ==================== GAMIFICATION ====================
    await db.course_points.create_index("course_id", unique=True)
    await db.rank_configurations.create_index("rank_number", unique=True)
    await db.user_ranks.create_index("user_id", unique=True)
    await db.user_ranks.create_index([("total_points", DESCENDING)])
    await db.user_ranks.create_index([("weekly_points", DESCENDING)])
    await db.chapter_completions.create_index(
        [("user_id", ASCENDING), ("chapter_id", ASCENDING)], unique=True
    )
    await db.chapter_completions.create_index([("user_id", ASCENDING), ("completed_at", DESCENDING)])
    await db.rank_history.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    await db.weekly_leaderboards.create_index(
        [("week_number", ASCENDING), ("year", ASCENDING), ("user_id", ASCENDING)], unique=True
    )
    await db.weekly_leaderboards.create_index(
        [("year", DESCENDING), ("week_number", DESCENDING), ("rank", ASCENDING)]
    )
    await db.weekly_evaluation_logs.create_index([("started_at", DESCENDING)])
    await db.achievements.create_index("code", unique=True)

    # ==================== NOTIFICATIONS / ADMIN ====================
    await db.notifications.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    await db.notifications.create_index("notification_id", unique=True)
    await db.invitations.create_index("token", unique=True)
    await db.invitations.create_index("expires_at")
    await db.audit_logs.create_index([("target_type", ASCENDING), ("target_id", ASCENDING)])
    await db.audit_logs.create_index([("timestamp", DESCENDING)])

    logger.info("Academy indexes created")
