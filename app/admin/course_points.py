"""
Course points budgets.

A course's budget is split evenly over its items (chapters plus
subchapters); points_per_chapter is stored unrounded and rounded when
points are awarded.
"""

import logging
from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.courses.database import count_course_items, get_course
from app.gamification.models import CourseDifficulty

logger = logging.getLogger(__name__)

MIN_TOTAL_POINTS = 100
MAX_TOTAL_POINTS = 50000


class CoursePointsError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


async def list_course_points(db: AsyncIOMotorDatabase) -> List[dict]:
    courses = await db.courses.find(
        {}, {"_id": 0, "course_id": 1, "title": 1, "is_published": 1}
    ).sort("created_at", -1).to_list(length=None)

    configs = {
        cfg["course_id"]: cfg
        for cfg in await db.course_points.find({}, {"_id": 0}).to_list(length=None)
    }

    for course in courses:
        chapters, subchapters = await count_course_items(db, course["course_id"])
        course["chapter_count"] = chapters
        course["subchapter_count"] = subchapters
        course["total_items"] = chapters + subchapters
        course["course_points"] = configs.get(course["course_id"])
    return courses


async def assign_course_points(
    db: AsyncIOMotorDatabase,
    course_id: str,
    total_points: int,
    difficulty: CourseDifficulty,
    assigned_by: str,
    admin_notes: Optional[str] = None,
) -> dict:
    if not MIN_TOTAL_POINTS <= total_points <= MAX_TOTAL_POINTS:
        raise CoursePointsError("Total points must be between 100 and 50,000")

    course = await get_course(db, course_id)
    if not course:
        raise CoursePointsError("Course not found", 404)

    chapters, subchapters = await count_course_items(db, course_id)
    total_items = chapters + subchapters
    if total_items == 0:
        raise CoursePointsError("Course must have at least one chapter or subchapter")

    now = datetime.utcnow()
    difficulty = CourseDifficulty(difficulty)
    await db.course_points.update_one(
        {"course_id": course_id},
        {
            "$set": {
                "total_points": total_points,
                "points_per_chapter": total_points / total_items,
                "difficulty": difficulty.value,
                "assigned_by": assigned_by,
                "admin_notes": admin_notes,
                "updated_at": now,
            },
            "$setOnInsert": {"created_at": now},
        },
        upsert=True
    )
    logger.info("Assigned %d points to course %s over %d items", total_points, course_id, total_items)
    return await db.course_points.find_one({"course_id": course_id}, {"_id": 0})


async def delete_course_points(db: AsyncIOMotorDatabase, course_id: str) -> bool:
    result = await db.course_points.delete_one({"course_id": course_id})
    return result.deleted_count > 0


async def recalculate_course_points(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    """
    Recompute points_per_chapter from the current item count.
    Returns {"success": False, ...} when the course has no budget.
    """
    course = await get_course(db, course_id)
    if not course:
        raise CoursePointsError("Course not found", 404)

    config = await db.course_points.find_one({"course_id": course_id}, {"_id": 0})
    if not config:
        return {"success": False, "message": "Course has no points configuration"}

    chapters, subchapters = await count_course_items(db, course_id)
    total_items = chapters + subchapters
    if total_items == 0:
        raise CoursePointsError("Course has no chapters or subchapters")

    new_points = config["total_points"] / total_items
    await db.course_points.update_one(
        {"course_id": course_id},
        {"$set": {"points_per_chapter": new_points, "updated_at": datetime.utcnow()}}
    )
    return {
        "success": True,
        "course_id": course_id,
        "total_items": total_items,
        "previous_points_per_item": config["points_per_chapter"],
        "points_per_item": new_points,
    }


async def sync_course_points(db: AsyncIOMotorDatabase, course_id: str):
    """Keep an existing budget spread over the current items after structural edits"""
    config = await db.course_points.find_one({"course_id": course_id})
    if not config:
        return

    chapters, subchapters = await count_course_items(db, course_id)
    if chapters + subchapters == 0:
        logger.warning("Course %s has a points budget but no items", course_id)
        return

    await db.course_points.update_one(
        {"course_id": course_id},
        {"$set": {
            "points_per_chapter": config["total_points"] / (chapters + subchapters),
            "updated_at": datetime.utcnow(),
        }}
    )


async def bulk_assign_course_points(db: AsyncIOMotorDatabase, assignments: List[dict],
                                    assigned_by: str) -> dict:
    results = {"success": [], "errors": []}

    for assignment in assignments:
        course_id = assignment.get("course_id")
        total_points = assignment.get("total_points")
        difficulty = assignment.get("difficulty")

        if not course_id or not total_points or not difficulty:
            results["errors"].append({"course_id": course_id, "error": "Missing required fields"})
            continue

        try:
            difficulty = CourseDifficulty(difficulty)
            await assign_course_points(
                db, course_id, int(total_points), difficulty, assigned_by,
                assignment.get("admin_notes")
            )
            results["success"].append(course_id)
        except (TypeError, ValueError):
            results["errors"].append({"course_id": course_id, "error": "Invalid difficulty or points"})
        except CoursePointsError as e:
            results["errors"].append({"course_id": course_id, "error": e.message})

    return results
