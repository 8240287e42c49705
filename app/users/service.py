from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.database import (
    count_completed_courses,
    get_course,
    get_course_progress,
    get_user_enrollments,
)
from app.gamification.ranks import initialize_user_rank
from app.users.models import UserProfile, UserRole, UserStatus

BADGE_ENROLLED_THRESHOLD = 5
BADGE_COMPLETED_THRESHOLD = 3


async def register_user(db: AsyncIOMotorDatabase, user_id: str, email: str, name: str) -> dict:
    """Self signup: a STUDENT profile plus the starting rank"""
    profile = UserProfile(user_id=user_id, email=email, name=name).dict()
    profile["role"] = UserRole.STUDENT.value
    profile["status"] = UserStatus.ACTIVE.value
    await db.users_profile.insert_one(dict(profile))
    await initialize_user_rank(db, user_id)
    return profile


def badges_earned(enrolled_count: int, completed_count: int) -> int:
    badges = completed_count
    if enrolled_count >= BADGE_ENROLLED_THRESHOLD:
        badges += 1
    if completed_count >= BADGE_COMPLETED_THRESHOLD:
        badges += 1
    return badges


async def get_user_stats(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    enrolled = len(await get_user_enrollments(db, user_id))
    completed = await count_completed_courses(db, user_id)
    return {
        "enrolled_count": enrolled,
        "completed_count": completed,
        "badges_earned": badges_earned(enrolled, completed),
    }


async def get_profile(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    profile = await db.users_profile.find_one({"user_id": user_id}, {"_id": 0})
    if not profile:
        return None

    courses = []
    for enrollment in await get_user_enrollments(db, user_id):
        course = await get_course(db, enrollment["course_id"])
        if not course:
            continue
        progress = await get_course_progress(db, user_id, enrollment["course_id"])
        courses.append({
            "course_id": course["course_id"],
            "title": course["title"],
            "thumbnail": course.get("thumbnail"),
            "enrolled_at": enrollment["enrolled_at"],
            "percentage": progress["percentage"],
            "is_completed": progress["is_completed"],
        })

    attempts = await db.quiz_attempts.find({"user_id": user_id}, {"score": 1}).to_list(length=None)

    profile["courses"] = courses
    profile["total_quiz_score"] = sum(a.get("score", 0) for a in attempts)
    profile["completed_courses"] = sum(1 for c in courses if c["is_completed"])
    return profile


async def update_profile(db: AsyncIOMotorDatabase, user_id: str, updates: dict) -> Optional[dict]:
    updates = dict(updates, updated_at=datetime.utcnow())
    result = await db.users_profile.update_one({"user_id": user_id}, {"$set": updates})
    if result.matched_count == 0:
        return None
    return await db.users_profile.find_one({"user_id": user_id}, {"_id": 0})


async def get_admin_stats(db: AsyncIOMotorDatabase) -> dict:
    total_progress = await db.progress.count_documents({})
    completed_progress = await db.progress.count_documents({"is_completed": True})

    return {
        "total_courses": await db.courses.count_documents({}),
        "total_students": await db.users_profile.count_documents({"role": UserRole.STUDENT.value}),
        "total_instructors": await db.users_profile.count_documents({"role": UserRole.INSTRUCTOR.value}),
        "completion_rate": round(completed_progress / total_progress * 100) if total_progress else 0,
    }
