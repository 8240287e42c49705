import logging

from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user, require_staff
from app.courses.database import (
    MAX_QUIZ_ATTEMPTS,
    create_quiz,
    get_chapter,
    get_quiz,
    grade_quiz,
    list_quiz_attempts,
    public_quiz,
    save_quiz_attempt,
)
from app.courses.dependencies import verify_enrollment
from app.courses.models import QuizCreate, QuizSubmission
from app.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courses", tags=["Quizzes"])

RECENT_ATTEMPTS_LIMIT = 5


async def _quiz_for_course(db: AsyncIOMotorDatabase, course_id: str, quiz_id: str) -> dict:
    quiz = await get_quiz(db, quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    if quiz["course_id"] != course_id:
        raise HTTPException(status_code=400, detail="Quiz does not belong to this course")
    return quiz


@router.post("/{course_id}/chapters/{chapter_id}/quizzes")
async def create_chapter_quiz(
    course_id: str,
    chapter_id: str,
    body: QuizCreate,
    staff: UserContext = Depends(require_staff),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await get_chapter(db, course_id, chapter_id):
        raise HTTPException(status_code=404, detail="Chapter not found")

    data = body.dict()
    for question in data["questions"]:
        question["type"] = question["type"].value if hasattr(question["type"], "value") else question["type"]

    quiz = await create_quiz(db, course_id, chapter_id, data)
    return {"success": True, "quiz": quiz}


@router.get("/{course_id}/quiz/{quiz_id}")
async def get_course_quiz(
    course_id: str,
    quiz_id: str,
    enrollment: dict = Depends(verify_enrollment),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    quiz = await _quiz_for_course(db, course_id, quiz_id)
    attempts = await list_quiz_attempts(db, user.user_id, quiz_id)

    return {
        "quiz": public_quiz(quiz),
        "total_points": sum(q.get("points", 1) for q in quiz["questions"]),
        "previous_attempts": [
            {"score": a["score"], "passed": a["passed"], "attempted_at": a["completed_at"]}
            for a in attempts[:RECENT_ATTEMPTS_LIMIT]
        ],
        "attempts_remaining": max(0, MAX_QUIZ_ATTEMPTS - len(attempts)),
    }


@router.post("/{course_id}/quiz/{quiz_id}")
async def submit_course_quiz(
    course_id: str,
    quiz_id: str,
    body: QuizSubmission,
    enrollment: dict = Depends(verify_enrollment),
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    quiz = await _quiz_for_course(db, course_id, quiz_id)

    previous = await list_quiz_attempts(db, user.user_id, quiz_id)
    if len(previous) >= MAX_QUIZ_ATTEMPTS:
        raise HTTPException(status_code=400, detail=f"Maximum quiz attempts reached ({MAX_QUIZ_ATTEMPTS})")

    result = grade_quiz(quiz, body.answers)
    attempt = await save_quiz_attempt(db, user.user_id, quiz, body.answers, result)
    logger.info("Quiz %s attempt by %s scored %d", quiz_id, user.user_id, result["score"])

    return {
        "attempt_id": attempt["attempt_id"],
        "score": result["score"],
        "passed": result["passed"],
        "earned_points": result["earned_points"],
        "total_points": result["total_points"],
        "graded_answers": result["graded_answers"],
        "attempts_remaining": max(0, MAX_QUIZ_ATTEMPTS - len(previous) - 1),
    }
