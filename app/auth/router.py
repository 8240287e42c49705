import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from app.admin.invitations import InvitationError, complete_signup, validate_invitation
from app.admin.models import CompleteSignupRequest
from app.auth.auth_utils import verify_access_token
from app.database import get_db
from app.users.service import register_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


@router.post("/register")
async def register(
    body: RegisterRequest,
    token: dict = Depends(verify_access_token),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Create the STUDENT profile for a freshly authenticated identity"""
    user_id = token["sub"]
    email = token.get("email")
    if not email:
        raise HTTPException(status_code=400, detail="Token has no email claim")

    existing = await db.users_profile.find_one({"$or": [{"user_id": user_id}, {"email": email}]})
    if existing:
        raise HTTPException(status_code=409, detail="Profile already exists")

    profile = await register_user(db, user_id, email, body.name)
    return {"success": True, "profile": profile}


@router.get("/validate-invitation")
async def validate_invitation_endpoint(
    token: str = Query(..., min_length=1),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        invitation = await validate_invitation(db, token)
    except InvitationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return {
        "valid": True,
        "email": invitation["email"],
        "role": invitation["role"],
        "course_id": invitation.get("course_id"),
        "expires_at": invitation["expires_at"],
    }


@router.post("/complete-signup")
async def complete_signup_endpoint(
    body: CompleteSignupRequest,
    token: dict = Depends(verify_access_token),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    try:
        profile = await complete_signup(db, body.token, token["sub"], body.name, token.get("email"))
        return {"success": True, "profile": profile}
    except InvitationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception("Signup completion failed")
        raise HTTPException(status_code=500, detail=str(e))
