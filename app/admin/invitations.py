"""
Invitation-based signup.

An admin invites an email address with a role (and optionally a course);
the invitee follows the signup link, the token is validated and the
profile is created with the invited role.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import APP_BASE_URL, INVITATION_EXPIRY_DAYS
from app.courses.database import enroll_user, get_course
from app.gamification.ranks import initialize_user_rank
from app.integrations.email import send_email
from app.users.models import UserProfile, UserRole

logger = logging.getLogger(__name__)


class InvitationError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def signup_link(token: str) -> str:
    return f"{APP_BASE_URL.rstrip('/')}/signup?token={token}"


async def create_invitation(
    db: AsyncIOMotorDatabase,
    email: str,
    role: UserRole,
    invited_by: str,
    course_id: Optional[str] = None,
    message: Optional[str] = None,
) -> dict:
    if await db.users_profile.find_one({"email": email}):
        raise InvitationError("A user with this email already exists", 409)

    course = None
    if course_id:
        course = await get_course(db, course_id)
        if not course:
            raise InvitationError("Course not found", 404)

    now = datetime.utcnow()
    invitation = {
        "token": secrets.token_hex(32),
        "email": email,
        "role": UserRole(role).value,
        "course_id": course_id,
        "message": message,
        "invited_by": invited_by,
        "used": False,
        "created_at": now,
        "expires_at": now + timedelta(days=INVITATION_EXPIRY_DAYS),
    }
    await db.invitations.insert_one(dict(invitation))

    lines = ["You've been invited to join the academy.", ""]
    if course:
        lines.append(f"You will be enrolled in: {course['title']}")
    if message:
        lines.extend([message, ""])
    lines.append(f"Complete your signup: {signup_link(invitation['token'])}")
    lines.append(f"This link expires in {INVITATION_EXPIRY_DAYS} days.")

    invitation["email_sent"] = await send_email(email, "You're invited", "\n".join(lines))
    logger.info("Invitation created for %s as %s by %s", email, invitation["role"], invited_by)
    return invitation


async def validate_invitation(db: AsyncIOMotorDatabase, token: str, now: datetime = None) -> dict:
    now = now or datetime.utcnow()
    invitation = await db.invitations.find_one({"token": token}, {"_id": 0})

    if not invitation:
        raise InvitationError("Invalid invitation token", 404)
    if invitation.get("used"):
        raise InvitationError("Invitation has already been used")
    if invitation["expires_at"] < now:
        raise InvitationError("Invitation has expired")
    return invitation


async def complete_signup(db: AsyncIOMotorDatabase, token: str, user_id: str, name: str,
                          identity_email: Optional[str] = None) -> dict:
    """Create the invited user's profile, enrollment and rank, then consume the token"""
    invitation = await validate_invitation(db, token)

    if identity_email and identity_email.strip().lower() != invitation["email"]:
        raise InvitationError("Invitation was issued for a different email", 403)

    if await db.users_profile.find_one({"$or": [{"email": invitation["email"]}, {"user_id": user_id}]}):
        raise InvitationError("A user with this email already exists")

    profile = UserProfile(
        user_id=user_id,
        email=invitation["email"],
        name=name,
        role=UserRole(invitation["role"]),
    ).dict()
    profile["role"] = invitation["role"]
    profile["status"] = profile["status"].value
    await db.users_profile.insert_one(dict(profile))

    if invitation.get("course_id"):
        await enroll_user(db, user_id, invitation["course_id"])

    await initialize_user_rank(db, user_id)

    await db.invitations.update_one(
        {"token": token},
        {"$set": {"used": True, "used_at": datetime.utcnow(), "user_id": user_id}}
    )
    logger.info("Signup completed for %s via invitation", invitation["email"])
    return profile
