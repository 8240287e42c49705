from pydantic import BaseModel, Field, validator
from typing import Optional, Dict
from datetime import datetime
from enum import Enum

# ==================== ENUMS ====================

class UserRole(str, Enum):
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"
    OWNER = "OWNER"

class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"

# ==================== PROFILE MODELS ====================

class SocialLinks(BaseModel):
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    title: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = None
    social_links: Optional[SocialLinks] = None
    avatar: Optional[str] = None
    banner: Optional[str] = None
    is_public: Optional[bool] = None

    @validator("website")
    def website_must_be_url(cls, v):
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("website must start with http:// or https://")
        return v

class UserProfile(BaseModel):
    user_id: str
    email: str
    name: str
    role: UserRole = UserRole.STUDENT
    status: UserStatus = UserStatus.ACTIVE
    image: Optional[str] = None
    bio: Optional[str] = None
    title: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    social_links: Dict[str, Optional[str]] = {}
    avatar: Optional[str] = None
    banner: Optional[str] = None
    is_public: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
