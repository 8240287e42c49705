from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    RANK_PROMOTION = "RANK_PROMOTION"
    RANK_DEMOTION = "RANK_DEMOTION"
    ACHIEVEMENT_UNLOCKED = "ACHIEVEMENT_UNLOCKED"
    WEEKLY_LEADERBOARD = "WEEKLY_LEADERBOARD"
    MILESTONE = "MILESTONE"
    SYSTEM = "SYSTEM"


class Notification(BaseModel):
    notification_id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    related_id: Optional[str] = None
    metadata: Dict[str, Any] = {}
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    read_at: Optional[datetime] = None
