from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.admin.audit import log_audit
from app.admin.course_points import (
    CoursePointsError,
    assign_course_points,
    bulk_assign_course_points,
    delete_course_points,
    list_course_points,
    recalculate_course_points,
)
from app.auth.permissions import UserContext, require_admin
from app.database import get_db
from app.gamification.models import (
    BulkCoursePointsRequest,
    CoursePointsAssign,
    CoursePointsRecalculate,
)

router = APIRouter(prefix="/admin/course-points", tags=["Course Points"])


@router.get("")
async def get_course_points_overview(
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return {"courses": await list_course_points(db)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("")
async def assign_points(
    body: CoursePointsAssign,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        config = await assign_course_points(
            db, body.course_id, body.total_points, body.difficulty, admin.user_id, body.admin_notes
        )
    except CoursePointsError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await log_audit(db, admin, "assign_course_points", "course", body.course_id,
                    {"total_points": body.total_points, "difficulty": config["difficulty"]})
    return {"success": True, "course_points": config}


@router.delete("")
async def remove_points(
    course_id: str = Query(..., min_length=1),
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not await delete_course_points(db, course_id):
        raise HTTPException(status_code=404, detail="Course points not found")

    await log_audit(db, admin, "delete_course_points", "course", course_id)
    return {"success": True, "message": "Course points removed"}


@router.post("/recalculate")
async def recalculate_points(
    body: CoursePointsRecalculate,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await recalculate_course_points(db, body.course_id)
    except CoursePointsError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/bulk")
async def bulk_assign_points(
    body: BulkCoursePointsRequest,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    results = await bulk_assign_course_points(db, body.assignments, admin.user_id)
    await log_audit(db, admin, "bulk_assign_course_points", "course", "bulk",
                    {"success": len(results["success"]), "errors": len(results["errors"])})
    return results
