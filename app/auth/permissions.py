import hmac

from fastapi import Depends, Header, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.auth.auth_utils import verify_access_token
from app.config import CRON_SECRET
from app.database import get_db
from app.users.models import UserRole, UserStatus

STAFF_ROLES = {UserRole.INSTRUCTOR.value, UserRole.ADMIN.value, UserRole.OWNER.value}
ADMIN_ROLES = {UserRole.ADMIN.value, UserRole.OWNER.value}


class UserContext:
    """
    Authenticated user with the profile fields routers care about
    """
    def __init__(self, user_id: str, profile: dict):
        self.user_id = user_id
        self.email = profile.get("email")
        self.name = profile.get("name")
        self.role = profile.get("role", UserRole.STUDENT.value)
        self.status = profile.get("status", UserStatus.ACTIVE.value)
        self.profile = profile

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_owner(self) -> bool:
        return self.role == UserRole.OWNER.value


async def get_current_user(
    token: dict = Depends(verify_access_token),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> UserContext:
    """
    Dependency: resolves the token subject to a users_profile record

    Raises:
        401: Invalid token
        403: Account blocked
        404: Profile not found
    """
    user_id = token.get("sub")
    profile = await db.users_profile.find_one({"user_id": user_id})

    if not profile:
        raise HTTPException(
            status_code=404,
            detail="Profile not found. Please complete registration first."
        )

    if profile.get("status") == UserStatus.BLOCKED.value:
        raise HTTPException(status_code=403, detail="Account is blocked")

    return UserContext(user_id, profile)


async def require_staff(user: UserContext = Depends(get_current_user)) -> UserContext:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Access denied. Instructor privileges required.")
    return user


async def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return user


async def require_owner(user: UserContext = Depends(get_current_user)) -> UserContext:
    if not user.is_owner:
        raise HTTPException(status_code=403, detail="Access denied. Owner privileges required.")
    return user


def verify_cron_secret(authorization: str = Header(None)):
    """Scheduler calls carry `Authorization: Bearer <CRON_SECRET>`"""
    if not CRON_SECRET:
        raise HTTPException(status_code=401, detail="Cron secret is not configured")
    if not authorization or not hmac.compare_digest(authorization.encode(), f"Bearer {CRON_SECRET}".encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return True
