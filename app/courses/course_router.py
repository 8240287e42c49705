"""
Course, chapter and subchapter endpoints.
Reads of published content are open to any signed-in user; structural
writes need an instructor, admin or owner.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.admin.course_points import sync_course_points
from app.auth.permissions import UserContext, get_current_user, require_staff
from app.common.cache import cache, with_cache
from app.config import COURSE_LIST_CACHE_SECONDS, COURSE_LIST_ALL_CACHE_SECONDS
from app.courses import database as courses_db
from app.courses.dependencies import get_course_or_404
from app.courses.models import (
    ChapterCreate,
    ChapterUpdate,
    ConvertToSubchapterRequest,
    CourseCreate,
    CourseUpdate,
    ReorderRequest,
)
from app.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["Courses"])

COURSE_CACHE_PREFIX = "courses:"


def _invalidate_course_cache():
    cache.invalidate_prefix(COURSE_CACHE_PREFIX)


def _enum_values(data: dict) -> dict:
    return {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}


# ==================== COURSES ====================

@router.get("")
async def list_courses(
    all: bool = Query(False, description="Include unpublished courses (staff only)"),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if all and not user.is_staff:
        raise HTTPException(status_code=403, detail="Access denied. Instructor privileges required.")

    if all:
        key, ttl = f"{COURSE_CACHE_PREFIX}all", COURSE_LIST_ALL_CACHE_SECONDS
    else:
        key, ttl = f"{COURSE_CACHE_PREFIX}published", COURSE_LIST_CACHE_SECONDS

    courses = await with_cache(key, lambda: courses_db.list_courses(db, include_unpublished=all), ttl)
    return {"courses": courses, "count": len(courses)}


@router.post("")
async def create_course(
    body: CourseCreate,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        course = await courses_db.create_course(db, _enum_values(body.dict()), staff.user_id)
        _invalidate_course_cache()
        return {"success": True, "course": course}
    except Exception as e:
        logger.exception("Course creation failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{course_id}")
async def get_course_detail(
    course_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    course = await courses_db.get_course_detail(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if not course.get("is_published") and not user.is_staff:
        raise HTTPException(status_code=404, detail="Course not found")
    return {"course": course}


@router.patch("/{course_id}")
async def update_course(
    course_id: str,
    body: CourseUpdate,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = _enum_values(body.dict(exclude_none=True))
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    course = await courses_db.update_course(db, course_id, updates)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    _invalidate_course_cache()
    return {"success": True, "course": course}


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await courses_db.delete_course(db, course_id):
        raise HTTPException(status_code=404, detail="Course not found")

    _invalidate_course_cache()
    return {"success": True, "message": "Course deleted"}


# ==================== CHAPTERS ====================

@router.get("/{course_id}/chapters")
async def list_chapters(
    course: dict = Depends(get_course_or_404),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return {"chapters": await courses_db.list_chapters(db, course["course_id"])}


@router.post("/{course_id}/chapters")
async def create_chapter(
    body: ChapterCreate,
    course: dict = Depends(get_course_or_404),
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    chapter = await courses_db.create_chapter(db, course["course_id"], body.dict())
    await sync_course_points(db, course["course_id"])
    _invalidate_course_cache()
    return {"success": True, "chapter": chapter}


@router.post("/{course_id}/chapters/reorder")
async def reorder_chapters(
    body: ReorderRequest,
    course: dict = Depends(get_course_or_404),
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await courses_db.reorder_chapters(db, course["course_id"], body.ids):
        raise HTTPException(status_code=400, detail="ids must list every chapter of the course exactly once")
    return {"success": True, "chapters": await courses_db.list_chapters(db, course["course_id"])}


@router.get("/{course_id}/chapters/{chapter_id}")
async def get_chapter(
    course_id: str,
    chapter_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    chapter = await courses_db.get_chapter(db, course_id, chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    chapter["subchapters"] = await courses_db.list_subchapters(db, chapter_id)
    return {"chapter": chapter}


@router.patch("/{course_id}/chapters/{chapter_id}")
async def update_chapter(
    course_id: str,
    chapter_id: str,
    body: ChapterUpdate,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = body.dict(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    chapter = await courses_db.update_chapter(db, course_id, chapter_id, updates)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return {"success": True, "chapter": chapter}


@router.delete("/{course_id}/chapters/{chapter_id}")
async def delete_chapter(
    course_id: str,
    chapter_id: str,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await courses_db.delete_chapter(db, course_id, chapter_id):
        raise HTTPException(status_code=404, detail="Chapter not found")

    await sync_course_points(db, course_id)
    _invalidate_course_cache()
    return {"success": True, "message": "Chapter deleted"}


@router.post("/{course_id}/chapters/{chapter_id}/convert-to-subchapter")
async def convert_to_subchapter(
    course_id: str,
    chapter_id: str,
    body: ConvertToSubchapterRequest,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        subchapter = await courses_db.convert_chapter_to_subchapter(
            db, course_id, chapter_id, body.parent_chapter_id
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "subchapter": subchapter,
        "message": "Chapter converted to subchapter successfully"
    }


# ==================== SUBCHAPTERS ====================

async def _require_chapter(db: AsyncIOMotorDatabase, course_id: str, chapter_id: str) -> dict:
    chapter = await courses_db.get_chapter(db, course_id, chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter


@router.get("/{course_id}/chapters/{chapter_id}/subchapters")
async def list_subchapters(
    course_id: str,
    chapter_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _require_chapter(db, course_id, chapter_id)
    return {"subchapters": await courses_db.list_subchapters(db, chapter_id)}


@router.post("/{course_id}/chapters/{chapter_id}/subchapters")
async def create_subchapter(
    course_id: str,
    chapter_id: str,
    body: ChapterCreate,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _require_chapter(db, course_id, chapter_id)
    subchapter = await courses_db.create_subchapter(db, course_id, chapter_id, body.dict())
    await sync_course_points(db, course_id)
    _invalidate_course_cache()
    return {"success": True, "subchapter": subchapter}


@router.post("/{course_id}/chapters/{chapter_id}/subchapters/reorder")
async def reorder_subchapters(
    course_id: str,
    chapter_id: str,
    body: ReorderRequest,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _require_chapter(db, course_id, chapter_id)
    if not await courses_db.reorder_subchapters(db, chapter_id, body.ids):
        raise HTTPException(status_code=400, detail="ids must list every subchapter of the chapter exactly once")
    return {"success": True, "subchapters": await courses_db.list_subchapters(db, chapter_id)}


@router.patch("/{course_id}/chapters/{chapter_id}/subchapters/{subchapter_id}")
async def update_subchapter(
    course_id: str,
    chapter_id: str,
    subchapter_id: str,
    body: ChapterUpdate,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _require_chapter(db, course_id, chapter_id)
    updates = body.dict(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    subchapter = await courses_db.update_subchapter(db, chapter_id, subchapter_id, updates)
    if not subchapter:
        raise HTTPException(status_code=404, detail="Subchapter not found")
    return {"success": True, "subchapter": subchapter}


@router.delete("/{course_id}/chapters/{chapter_id}/subchapters/{subchapter_id}")
async def delete_subchapter(
    course_id: str,
    chapter_id: str,
    subchapter_id: str,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _require_chapter(db, course_id, chapter_id)
    if not await courses_db.delete_subchapter(db, chapter_id, subchapter_id):
        raise HTTPException(status_code=404, detail="Subchapter not found")

    await sync_course_points(db, course_id)
    _invalidate_course_cache()
    return {"success": True, "message": "Subchapter deleted"}


@router.post("/{course_id}/chapters/{chapter_id}/subchapters/{subchapter_id}/promote-to-chapter")
async def promote_to_chapter(
    course_id: str,
    chapter_id: str,
    subchapter_id: str,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await _require_chapter(db, course_id, chapter_id)
    chapter = await courses_db.promote_subchapter_to_chapter(db, course_id, chapter_id, subchapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Subchapter not found")

    return {
        "success": True,
        "chapter": chapter,
        "message": "Subchapter promoted to chapter successfully"
    }
