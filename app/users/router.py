from fastapi import APIRouter, Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.permissions import UserContext, get_current_user
from app.database import get_db
from app.users.models import ProfileUpdate
from app.users.service import get_profile, get_user_stats, update_profile

router = APIRouter(tags=["Users"])


@router.get("/user/stats")
async def user_stats(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        return await get_user_stats(db, user.user_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/profile")
async def read_profile(
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    profile = await get_profile(db, user.user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return {"profile": profile}


@router.patch("/profile")
async def patch_profile(
    body: ProfileUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    updates = body.dict(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    profile = await update_profile(db, user.user_id, updates)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return {"profile": profile}
