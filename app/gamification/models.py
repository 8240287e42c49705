from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

# ==================== ENUMS ====================

class RankTier(str, Enum):
    NOVICE = "NOVICE"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"
    LEGENDARY = "LEGENDARY"

class RankChangeType(str, Enum):
    PROMOTION = "PROMOTION"
    DEMOTION = "DEMOTION"
    MAINTAIN = "MAINTAIN"

class LeaderboardZone(str, Enum):
    PROMOTION = "PROMOTION"
    SAFE = "SAFE"
    DEMOTION = "DEMOTION"

class EvaluationStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

class CourseDifficulty(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"

class AchievementCategory(str, Enum):
    STREAK = "STREAK"
    PERFECTION = "PERFECTION"
    SPEED = "SPEED"
    COMPLETION = "COMPLETION"
    SPECIAL = "SPECIAL"
    MILESTONE = "MILESTONE"

class AchievementRarity(str, Enum):
    COMMON = "COMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"

class LeaderboardPeriod(str, Enum):
    ALL = "all"
    WEEK = "week"
    MONTH = "month"

class CronAction(str, Enum):
    RUN = "run"
    RESET_WEEKLY_POINTS = "reset-weekly-points"

# ==================== STORED DOCUMENTS ====================

class UserRank(BaseModel):
    user_id: str
    current_rank: int = 1
    total_points: int = 0
    weekly_points: int = 0
    streak_days: int = 0
    last_active: datetime = Field(default_factory=datetime.utcnow)
    last_streak_date: Optional[datetime] = None
    highest_rank: int = 1
    promotion_count: int = 0
    demotion_count: int = 0
    achievements: List[str] = []
    immunity_weeks: int = 2
    frozen_until: Optional[datetime] = None
    last_week_rank: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

class RankHistoryEntry(BaseModel):
    user_id: str
    from_rank: int
    to_rank: int
    change_type: RankChangeType
    weekly_points: int = 0
    total_points: int = 0
    reason: str
    week_number: int
    year: int
    created_at: datetime = Field(default_factory=datetime.utcnow)

# ==================== REQUEST MODELS ====================

class ChapterCompletionRequest(BaseModel):
    chapter_id: str
    course_id: str
    completion_time: float = Field(..., gt=0, description="Seconds spent on the chapter")
    quiz_score: Optional[float] = Field(None, ge=0, le=100)
    expected_time: Optional[float] = Field(None, gt=0)

class CoursePointsAssign(BaseModel):
    course_id: str
    total_points: int = Field(..., ge=100, le=50000)
    difficulty: CourseDifficulty
    admin_notes: Optional[str] = None

class BulkCoursePointsRequest(BaseModel):
    assignments: List[Dict[str, Any]]

    @validator("assignments")
    def must_not_be_empty(cls, v):
        if not v:
            raise ValueError("assignments cannot be empty")
        return v

class CoursePointsRecalculate(BaseModel):
    course_id: str

class CronActionRequest(BaseModel):
    action: str
