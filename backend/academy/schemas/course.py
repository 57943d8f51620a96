"""
Course, topic and material schemas used by the admin endpoints.
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from academy.core.config import settings
from academy.models.course import CourseStatus, DifficultyLevel, MaterialType
from academy.schemas.base import PartialUpdate


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=500)
    thumbnail_url: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=100)
    difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER
    duration_weeks: Optional[int] = Field(None, ge=1)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    max_students: int = Field(settings.DEFAULT_COURSE_MAX_STUDENTS, ge=1)
    tutor_id: Optional[int] = None
    status: CourseStatus = CourseStatus.DRAFT
    is_featured: bool = False


class CourseUpdate(PartialUpdate):
    nullable_fields = frozenset({
        "description", "short_description", "thumbnail_url", "category", "duration_weeks", "tutor_id"
    })

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=500)
    thumbnail_url: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, max_length=100)
    difficulty_level: Optional[DifficultyLevel] = None
    duration_weeks: Optional[int] = Field(None, ge=1)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    max_students: Optional[int] = Field(None, ge=1)
    tutor_id: Optional[int] = None
    status: Optional[CourseStatus] = None
    is_featured: Optional[bool] = None


class CourseStatusUpdate(BaseModel):
    status: CourseStatus


class TutorAssignment(BaseModel):
    tutor_id: int


class TopicCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    order_index: int = Field(0, ge=0)


class TopicUpdate(PartialUpdate):
    nullable_fields = frozenset({"description"})

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0)


class MaterialCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    type: MaterialType = MaterialType.TEXT
    content: Optional[str] = None
    url: Optional[str] = Field(None, max_length=1000)
    duration_minutes: Optional[int] = Field(None, ge=0)
    order_index: int = Field(0, ge=0)


class MaterialUpdate(PartialUpdate):
    nullable_fields = frozenset({"content", "url", "duration_minutes"})

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[MaterialType] = None
    content: Optional[str] = None
    url: Optional[str] = Field(None, max_length=1000)
    duration_minutes: Optional[int] = Field(None, ge=0)
    order_index: Optional[int] = Field(None, ge=0)


class BookmarkToggle(BaseModel):
    is_bookmarked: bool


class FavoriteToggle(BaseModel):
    is_favorite: bool
