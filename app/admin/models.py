from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any
from datetime import datetime

from app.users.models import UserRole, UserStatus


class AuditLog(BaseModel):
    actor_user_id: str
    role: str
    action: str
    target_type: str
    target_id: str
    metadata: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)

# ==================== USER MANAGEMENT ====================

class UserAdminUpdate(BaseModel):
    """
    PATCH /admin/users/{id}

    action=changeRole needs role, action=toggleStatus flips ACTIVE/BLOCKED,
    no action applies the plain field updates.
    """
    action: Optional[str] = None
    role: Optional[UserRole] = None
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    status: Optional[UserStatus] = None

    @validator("action")
    def validate_action(cls, v):
        if v is not None and v not in ("changeRole", "toggleStatus"):
            raise ValueError("action must be changeRole or toggleStatus")
        return v

class InvitationCreate(BaseModel):
    email: str
    role: UserRole = UserRole.STUDENT
    course_id: Optional[str] = None
    message: Optional[str] = Field(None, max_length=1000)

    @validator("email")
    def email_must_look_valid(cls, v):
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v.strip().lower()

    @validator("role")
    def owner_cannot_be_invited(cls, v):
        if v == UserRole.OWNER:
            raise ValueError("OWNER accounts cannot be created by invitation")
        return v

class CompleteSignupRequest(BaseModel):
    token: str
    name: str = Field(..., min_length=1, max_length=100)

# ==================== CONTENT SETTINGS ====================

class FilterCategory(BaseModel):
    id: str
    name: str
    color: str = "#6366f1"
    order: int = 0

class LayoutOptions(BaseModel):
    grid_columns: int = Field(3, ge=1, le=4)
    show_price: bool = True
    show_level: bool = True
    show_enrollment_count: bool = True

class ContentSettings(BaseModel):
    filter_categories: List[FilterCategory] = []
    featured_courses: List[str] = []
    layout_options: LayoutOptions = LayoutOptions()
