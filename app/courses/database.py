from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List, Optional, Dict, Any, Tuple
import logging

from app.common.ids import generate_id
from app.gamification.points import round_half_up
from app.courses.models import QuestionType

logger = logging.getLogger(__name__)

MINUTES_PER_ITEM_ESTIMATE = 30
MAX_QUIZ_ATTEMPTS = 3
QUIZ_PASSING_SCORE = 70

NO_ID = {"_id": 0}


# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, course_data: dict, creator_id: str) -> dict:
    now = datetime.utcnow()
    course = {
        "course_id": generate_id("CRS"),
        "title": course_data["title"],
        "description": course_data["description"],
        "thumbnail": course_data.get("thumbnail"),
        "price": course_data.get("price", 0),
        "category": course_data.get("category"),
        "level": course_data.get("level"),
        "is_published": course_data.get("is_published", False),
        "course_details": course_data.get("course_details", {}),
        "creator_id": creator_id,
        "created_at": now,
        "updated_at": now,
    }
    await db.courses.insert_one(dict(course))
    return course


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    return await db.courses.find_one({"course_id": course_id}, NO_ID)


async def update_course(db: AsyncIOMotorDatabase, course_id: str, updates: dict) -> Optional[dict]:
    updates = dict(updates, updated_at=datetime.utcnow())
    result = await db.courses.update_one({"course_id": course_id}, {"$set": updates})
    if result.matched_count == 0:
        return None
    return await get_course(db, course_id)


async def delete_course(db: AsyncIOMotorDatabase, course_id: str) -> bool:
    """Delete a course with its chapters, subchapters, quizzes and points config"""
    result = await db.courses.delete_one({"course_id": course_id})
    if result.deleted_count == 0:
        return False

    await db.chapters.delete_many({"course_id": course_id})
    await db.subchapters.delete_many({"course_id": course_id})
    await db.quizzes.delete_many({"course_id": course_id})
    await db.course_points.delete_one({"course_id": course_id})
    logger.info("Deleted course %s and its content", course_id)
    return True


async def count_course_items(db: AsyncIOMotorDatabase, course_id: str) -> Tuple[int, int]:
    """(chapters, subchapters) in a course"""
    chapters = await db.chapters.count_documents({"course_id": course_id})
    subchapters = await db.subchapters.count_documents({"course_id": course_id})
    return chapters, subchapters


async def course_item_ids(db: AsyncIOMotorDatabase, course_id: str) -> set:
    """Ids of every current chapter and subchapter in a course"""
    chapters = await db.chapters.find({"course_id": course_id}, {"chapter_id": 1}).to_list(length=None)
    subchapters = await db.subchapters.find({"course_id": course_id}, {"subchapter_id": 1}).to_list(length=None)
    return {doc["chapter_id"] for doc in chapters} | {doc["subchapter_id"] for doc in subchapters}


async def list_courses(db: AsyncIOMotorDatabase, include_unpublished: bool = False) -> List[dict]:
    query = {} if include_unpublished else {"is_published": True}
    courses = await db.courses.find(query, NO_ID).sort("created_at", -1).to_list(length=None)

    for course in courses:
        chapters, subchapters = await count_course_items(db, course["course_id"])
        course["chapter_count"] = chapters
        course["subchapter_count"] = subchapters
        course["enrollment_count"] = await db.enrollments.count_documents(
            {"course_id": course["course_id"]}
        )
        course["estimated_hours"] = round(
            (chapters + subchapters) * MINUTES_PER_ITEM_ESTIMATE / 60, 1
        )
    return courses


async def get_course_detail(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    course = await get_course(db, course_id)
    if not course:
        return None

    chapters = await list_chapters(db, course_id)
    subchapters = await db.subchapters.find(
        {"course_id": course_id}, NO_ID
    ).sort("position", 1).to_list(length=None)

    by_chapter: Dict[str, List[dict]] = {}
    for sub in subchapters:
        by_chapter.setdefault(sub["chapter_id"], []).append(sub)

    for chapter in chapters:
        chapter["subchapters"] = by_chapter.get(chapter["chapter_id"], [])

    course["chapters"] = chapters
    return course


# ==================== CHAPTERS ====================

async def list_chapters(db: AsyncIOMotorDatabase, course_id: str) -> List[dict]:
    cursor = db.chapters.find({"course_id": course_id}, NO_ID).sort("position", 1)
    return await cursor.to_list(length=None)


async def get_chapter(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str) -> Optional[dict]:
    return await db.chapters.find_one({"chapter_id": chapter_id, "course_id": course_id}, NO_ID)


async def create_chapter(db: AsyncIOMotorDatabase, course_id: str, chapter_data: dict,
                         chapter_id: str = None) -> dict:
    position = await db.chapters.count_documents({"course_id": course_id}) + 1
    now = datetime.utcnow()
    chapter = {
        "chapter_id": chapter_id or generate_id("CH"),
        "course_id": course_id,
        "title": chapter_data["title"],
        "description": chapter_data.get("description"),
        "content": chapter_data.get("content"),
        "video_url": chapter_data.get("video_url"),
        "duration_minutes": chapter_data.get("duration_minutes"),
        "is_free": chapter_data.get("is_free", False),
        "position": position,
        "created_at": now,
        "updated_at": now,
    }
    await db.chapters.insert_one(dict(chapter))
    return chapter


async def update_chapter(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str,
                         updates: dict) -> Optional[dict]:
    updates = dict(updates, updated_at=datetime.utcnow())
    result = await db.chapters.update_one(
        {"chapter_id": chapter_id, "course_id": course_id},
        {"$set": updates}
    )
    if result.matched_count == 0:
        return None
    return await get_chapter(db, course_id, chapter_id)


async def delete_chapter(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str) -> bool:
    result = await db.chapters.delete_one({"chapter_id": chapter_id, "course_id": course_id})
    if result.deleted_count == 0:
        return False

    subchapters = await db.subchapters.find({"chapter_id": chapter_id}, {"subchapter_id": 1}).to_list(length=None)
    removed_ids = [chapter_id] + [doc["subchapter_id"] for doc in subchapters]

    await db.subchapters.delete_many({"chapter_id": chapter_id})
    await db.quizzes.delete_many({"chapter_id": chapter_id})
    await db.progress.delete_many({"course_id": course_id, "chapter_id": {"$in": removed_ids}})
    await _compact_positions(db.chapters, {"course_id": course_id}, "chapter_id")
    return True


async def _compact_positions(collection, query: dict, id_field: str):
    """Renumber positions 1..n keeping the current order"""
    docs = await collection.find(query, {id_field: 1, "position": 1}).sort("position", 1).to_list(length=None)
    for index, doc in enumerate(docs, start=1):
        if doc.get("position") != index:
            await collection.update_one({id_field: doc[id_field]}, {"$set": {"position": index}})


async def _apply_order(collection, query: dict, id_field: str, ordered_ids: List[str]) -> bool:
    existing = await collection.find(query, {id_field: 1}).to_list(length=None)
    existing_ids = {doc[id_field] for doc in existing}

    if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != existing_ids:
        return False

    for index, item_id in enumerate(ordered_ids, start=1):
        await collection.update_one(
            {id_field: item_id},
            {"$set": {"position": index, "updated_at": datetime.utcnow()}}
        )
    return True


async def reorder_chapters(db: AsyncIOMotorDatabase, course_id: str, chapter_ids: List[str]) -> bool:
    """Set chapter positions to the given order, the list must name every chapter exactly once"""
    return await _apply_order(db.chapters, {"course_id": course_id}, "chapter_id", chapter_ids)


async def convert_chapter_to_subchapter(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str,
                                        parent_chapter_id: str) -> dict:
    """
    Move a chapter under another chapter of the same course.
    The item id is kept so progress and completions stay attached.

    Raises:
        LookupError: chapter or parent not found
        ValueError: chapter is its own parent or still has subchapters
    """
    if chapter_id == parent_chapter_id:
        raise ValueError("A chapter cannot become its own subchapter")

    parent = await get_chapter(db, course_id, parent_chapter_id)
    if not parent:
        raise LookupError("Parent chapter not found")

    chapter = await get_chapter(db, course_id, chapter_id)
    if not chapter:
        raise LookupError("Chapter not found")

    if await db.subchapters.count_documents({"chapter_id": chapter_id}):
        raise ValueError("Chapter has subchapters; move or delete them first")

    subchapter = await create_subchapter(db, course_id, parent_chapter_id, chapter, subchapter_id=chapter_id)
    await db.chapters.delete_one({"chapter_id": chapter_id})
    await db.quizzes.update_many({"chapter_id": chapter_id}, {"$set": {"chapter_id": parent_chapter_id}})
    await _compact_positions(db.chapters, {"course_id": course_id}, "chapter_id")
    return subchapter


# ==================== SUBCHAPTERS ====================

async def list_subchapters(db: AsyncIOMotorDatabase, chapter_id: str) -> List[dict]:
    cursor = db.subchapters.find({"chapter_id": chapter_id}, NO_ID).sort("position", 1)
    return await cursor.to_list(length=None)


async def get_subchapter(db: AsyncIOMotorDatabase, chapter_id: str, subchapter_id: str) -> Optional[dict]:
    return await db.subchapters.find_one(
        {"subchapter_id": subchapter_id, "chapter_id": chapter_id}, NO_ID
    )


async def create_subchapter(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str,
                            data: dict, subchapter_id: str = None) -> dict:
    last = await db.subchapters.find(
        {"chapter_id": chapter_id}, {"position": 1}
    ).sort("position", -1).limit(1).to_list(length=1)
    position = (last[0]["position"] if last else 0) + 1

    now = datetime.utcnow()
    subchapter = {
        "subchapter_id": subchapter_id or generate_id("SUB"),
        "chapter_id": chapter_id,
        "course_id": course_id,
        "title": data["title"],
        "description": data.get("description"),
        "content": data.get("content"),
        "video_url": data.get("video_url"),
        "duration_minutes": data.get("duration_minutes"),
        "position": position,
        "created_at": now,
        "updated_at": now,
    }
    await db.subchapters.insert_one(dict(subchapter))
    return subchapter


async def update_subchapter(db: AsyncIOMotorDatabase, chapter_id: str, subchapter_id: str,
                            updates: dict) -> Optional[dict]:
    updates = dict(updates, updated_at=datetime.utcnow())
    updates.pop("is_free", None)
    result = await db.subchapters.update_one(
        {"subchapter_id": subchapter_id, "chapter_id": chapter_id},
        {"$set": updates}
    )
    if result.matched_count == 0:
        return None
    return await get_subchapter(db, chapter_id, subchapter_id)


async def delete_subchapter(db: AsyncIOMotorDatabase, chapter_id: str, subchapter_id: str) -> bool:
    result = await db.subchapters.delete_one({"subchapter_id": subchapter_id, "chapter_id": chapter_id})
    if result.deleted_count == 0:
        return False
    await db.progress.delete_many({"chapter_id": subchapter_id})
    await _compact_positions(db.subchapters, {"chapter_id": chapter_id}, "subchapter_id")
    return True


async def reorder_subchapters(db: AsyncIOMotorDatabase, chapter_id: str, subchapter_ids: List[str]) -> bool:
    return await _apply_order(db.subchapters, {"chapter_id": chapter_id}, "subchapter_id", subchapter_ids)


async def promote_subchapter_to_chapter(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str,
                                        subchapter_id: str) -> Optional[dict]:
    """Append a subchapter to the end of the course as a chapter, keeping its id"""
    subchapter = await get_subchapter(db, chapter_id, subchapter_id)
    if not subchapter or subchapter["course_id"] != course_id:
        return None

    chapter = await create_chapter(db, course_id, subchapter, chapter_id=subchapter_id)
    await db.subchapters.delete_one({"subchapter_id": subchapter_id})
    await _compact_positions(db.subchapters, {"chapter_id": chapter_id}, "subchapter_id")
    return chapter


async def find_course_item(db: AsyncIOMotorDatabase, course_id: str, item_id: str) -> Optional[dict]:
    """A chapter or subchapter of the course with the given id"""
    chapter = await db.chapters.find_one({"chapter_id": item_id, "course_id": course_id}, NO_ID)
    if chapter:
        return chapter
    return await db.subchapters.find_one({"subchapter_id": item_id, "course_id": course_id}, NO_ID)


# ==================== ENROLLMENT ====================

async def get_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    return await db.enrollments.find_one({"user_id": user_id, "course_id": course_id}, NO_ID)


async def enroll_user(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Tuple[dict, bool]:
    """Returns (enrollment, created)"""
    existing = await get_enrollment(db, user_id, course_id)
    if existing:
        return existing, False

    enrollment = {
        "enrollment_id": generate_id("ENR"),
        "user_id": user_id,
        "course_id": course_id,
        "enrolled_at": datetime.utcnow(),
    }
    await db.enrollments.insert_one(dict(enrollment))
    return enrollment, True


async def get_user_enrollments(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    cursor = db.enrollments.find({"user_id": user_id}, NO_ID).sort("enrolled_at", -1)
    return await cursor.to_list(length=None)


# ==================== PROGRESS ====================

async def set_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str, chapter_id: str,
                       is_completed: bool) -> dict:
    now = datetime.utcnow()
    await db.progress.update_one(
        {"user_id": user_id, "chapter_id": chapter_id},
        {
            "$set": {
                "course_id": course_id,
                "is_completed": is_completed,
                "completed_at": now if is_completed else None,
                "updated_at": now,
            },
            "$setOnInsert": {"created_at": now},
        },
        upsert=True
    )
    return await db.progress.find_one({"user_id": user_id, "chapter_id": chapter_id}, NO_ID)


async def get_course_progress(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    """Progress over the course's current items; rows for removed items are ignored"""
    item_ids = await course_item_ids(db, course_id)
    total = len(item_ids)

    rows = await db.progress.find(
        {"user_id": user_id, "course_id": course_id, "chapter_id": {"$in": list(item_ids)}}, NO_ID
    ).sort("updated_at", -1).to_list(length=None)

    completed_ids = [row["chapter_id"] for row in rows if row.get("is_completed")]
    percentage = min(100, round_half_up(len(completed_ids) / total * 100)) if total else 0

    return {
        "course_id": course_id,
        "completed_items": completed_ids,
        "completed_count": len(completed_ids),
        "total_items": total,
        "percentage": percentage,
        "is_completed": total > 0 and set(completed_ids) >= item_ids,
        "last_activity": rows[0]["updated_at"] if rows else None,
        "items": rows,
    }


async def count_completed_courses(db: AsyncIOMotorDatabase, user_id: str) -> int:
    """Enrolled courses where every chapter and subchapter is completed"""
    completed = 0
    for enrollment in await get_user_enrollments(db, user_id):
        progress = await get_course_progress(db, user_id, enrollment["course_id"])
        if progress["is_completed"]:
            completed += 1
    return completed


# ==================== QUIZZES ====================

async def create_quiz(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str, quiz_data: dict) -> dict:
    questions = []
    for question in quiz_data["questions"]:
        question = dict(question)
        question["question_id"] = question.get("question_id") or generate_id("Q")
        questions.append(question)

    quiz = {
        "quiz_id": generate_id("QZ"),
        "course_id": course_id,
        "chapter_id": chapter_id,
        "title": quiz_data["title"],
        "description": quiz_data.get("description"),
        "questions": questions,
        "created_at": datetime.utcnow(),
    }
    await db.quizzes.insert_one(dict(quiz))
    return quiz


async def get_quiz(db: AsyncIOMotorDatabase, quiz_id: str) -> Optional[dict]:
    return await db.quizzes.find_one({"quiz_id": quiz_id}, NO_ID)


def public_quiz(quiz: dict) -> dict:
    """Quiz payload for students, answers removed"""
    questions = [
        {k: v for k, v in question.items() if k != "answer"}
        for question in quiz["questions"]
    ]
    return dict(quiz, questions=questions)


def _normalize_answer(value: Any, question_type: str) -> str:
    if question_type == QuestionType.MULTIPLE_CHOICE.value:
        return str(value)
    return str(value).strip().lower()


def grade_quiz(quiz: dict, answers: Dict[str, Any]) -> dict:
    """Score a submission; multiple choice compares exactly, other types ignore case"""
    graded = []
    earned = 0
    total = 0

    for question in quiz["questions"]:
        points = question.get("points", 1)
        total += points
        question_type = question.get("type", QuestionType.MULTIPLE_CHOICE.value)
        submitted = answers.get(question["question_id"])

        is_correct = submitted is not None and (
            _normalize_answer(submitted, question_type) == _normalize_answer(question["answer"], question_type)
        )
        if is_correct:
            earned += points

        graded.append({
            "question_id": question["question_id"],
            "submitted": submitted,
            "correct_answer": question["answer"],
            "is_correct": is_correct,
            "points": points if is_correct else 0,
        })

    score = round_half_up(earned / total * 100) if total else 0
    return {
        "score": score,
        "earned_points": earned,
        "total_points": total,
        "passed": score >= QUIZ_PASSING_SCORE,
        "graded_answers": graded,
    }


async def list_quiz_attempts(db: AsyncIOMotorDatabase, user_id: str, quiz_id: str,
                             limit: int = None) -> List[dict]:
    cursor = db.quiz_attempts.find({"user_id": user_id, "quiz_id": quiz_id}, NO_ID).sort("completed_at", -1)
    if limit:
        cursor = cursor.limit(limit)
    return await cursor.to_list(length=limit)


async def save_quiz_attempt(db: AsyncIOMotorDatabase, user_id: str, quiz: dict, answers: dict,
                            result: dict) -> dict:
    attempt = {
        "attempt_id": generate_id("ATT"),
        "user_id": user_id,
        "quiz_id": quiz["quiz_id"],
        "course_id": quiz["course_id"],
        "chapter_id": quiz["chapter_id"],
        "answers": answers,
        "score": result["score"],
        "passed": result["passed"],
        "completed_at": datetime.utcnow(),
    }
    await db.quiz_attempts.insert_one(dict(attempt))
    return attempt
