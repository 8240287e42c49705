"""
ENROLLMENT & PROGRESS ROUTER
File: app/courses/enrollment_router.py

- Enrollment is idempotent; only published courses accept enrollments
- Progress updates require enrollment and an item that belongs to the course
"""

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user
from app.courses.database import (
    enroll_user,
    find_course_item,
    get_course_progress,
    get_enrollment,
    set_progress,
)
from app.courses.dependencies import get_course_or_404, verify_enrollment
from app.courses.models import ProgressUpdate
from app.database import get_db

router = APIRouter(prefix="/courses", tags=["Enrollments"])


@router.post("/{course_id}/enroll")
async def enroll_in_course(
    course: dict = Depends(get_course_or_404),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not course.get("is_published"):
        raise HTTPException(status_code=403, detail="Course is not published")

    enrollment, created = await enroll_user(db, user.user_id, course["course_id"])
    return {
        "enrolled": True,
        "message": "Enrolled successfully" if created else "Already enrolled",
        "enrollment": enrollment
    }


@router.get("/{course_id}/enroll")
async def enrollment_status(
    course: dict = Depends(get_course_or_404),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    enrollment = await get_enrollment(db, user.user_id, course["course_id"])
    return {"enrolled": enrollment is not None, "enrollment": enrollment}


@router.get("/{course_id}/progress")
async def course_progress(
    course: dict = Depends(get_course_or_404),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    return await get_course_progress(db, user.user_id, course["course_id"])


@router.post("/{course_id}/progress")
async def update_progress(
    body: ProgressUpdate,
    course: dict = Depends(get_course_or_404),
    enrollment: dict = Depends(verify_enrollment),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    item = await find_course_item(db, course["course_id"], body.chapter_id)
    if not item:
        raise HTTPException(status_code=404, detail="Chapter not found in this course")

    progress = await set_progress(db, user.user_id, course["course_id"], body.chapter_id, body.is_completed)
    return {"success": True, "progress": progress}
