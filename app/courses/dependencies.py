from fastapi import Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user
from app.courses.database import get_course, get_enrollment
from app.database import get_db


async def get_course_or_404(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


async def verify_enrollment(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
) -> dict:
    """Verify user is enrolled in course"""
    enrollment = await get_enrollment(db, user.user_id, course_id)

    if not enrollment:
        raise HTTPException(
            status_code=403,
            detail="Not enrolled in this course. Please enroll first."
        )

    return enrollment
