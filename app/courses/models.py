from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"

class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    thumbnail: Optional[str] = None
    price: float = Field(0, ge=0)
    category: Optional[str] = None
    level: CourseLevel = CourseLevel.BEGINNER
    is_published: bool = False
    course_details: Dict[str, Any] = {}

class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    thumbnail: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    level: Optional[CourseLevel] = None
    is_published: Optional[bool] = None
    course_details: Optional[Dict[str, Any]] = None

# ==================== CHAPTER MODELS ====================

class ChapterCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    is_free: bool = False

class ChapterUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    is_free: Optional[bool] = None

class ReorderRequest(BaseModel):
    ids: List[str] = Field(..., min_items=1)

class ConvertToSubchapterRequest(BaseModel):
    parent_chapter_id: str

# ==================== QUIZ MODELS ====================

class QuizQuestion(BaseModel):
    question_id: Optional[str] = None
    text: str
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: List[str] = []
    answer: str
    points: int = Field(1, ge=1)

    @validator("answer")
    def answer_in_options(cls, v, values):
        options = values.get("options") or []
        if values.get("type") == QuestionType.MULTIPLE_CHOICE and options and v not in options:
            raise ValueError("answer must be one of the options")
        return v

class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    questions: List[QuizQuestion] = Field(..., min_items=1)

class QuizSubmission(BaseModel):
    answers: Dict[str, Any]

# ==================== ENROLLMENT / PROGRESS ====================

class ProgressUpdate(BaseModel):
    chapter_id: str
    is_completed: bool

class Enrollment(BaseModel):
    enrollment_id: str
    user_id: str
    course_id: str
    enrolled_at: datetime = Field(default_factory=datetime.utcnow)
