"""
Course models for the Academy backend.

Defines Course, Topic and Material models for the catalog and
learning content structure.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from enum import Enum
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text, Numeric,
    ForeignKey, Index, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from academy.core.database import Base


class CourseStatus(str, Enum):
    """Lifecycle status of a course, set directly by staff."""
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class DifficultyLevel(str, Enum):
    """Difficulty levels for courses."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class MarkKind(str, Enum):
    """Ways a student can mark a course for later."""
    BOOKMARK = "BOOKMARK"
    FAVORITE = "FAVORITE"


class MaterialType(str, Enum):
    """Kinds of content a material can hold."""
    PDF = "PDF"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    LINK = "LINK"


class Course(Base):
    """
    Course model representing one offering in the catalog.
    """
    __tablename__ = "courses"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Basic information
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    short_description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Course metadata
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    difficulty_level: Mapped[str] = mapped_column(
        String(20),
        default=DifficultyLevel.BEGINNER.value,
        nullable=False
    )
    duration_weeks: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Pricing and capacity
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    max_students: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    # Lead tutor
    tutor_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    # Publishing and visibility
    status: Mapped[str] = mapped_column(
        String(20),
        default=CourseStatus.DRAFT.value,
        nullable=False
    )
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Statistics
    enrolled_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    topics = relationship(
        "Topic",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Topic.order_index"
    )
    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")
    marks = relationship("CourseMark", back_populates="course", cascade="all, delete-orphan")
    tutor = relationship("User", foreign_keys=[tutor_id], backref="led_courses")

    # Table constraints
    __table_args__ = (
        CheckConstraint("price >= 0", name="check_course_price_positive"),
        CheckConstraint("max_students > 0", name="check_course_capacity_positive"),
        CheckConstraint("enrolled_count >= 0", name="check_course_enrolled_positive"),
        CheckConstraint(
            "status IN ('DRAFT', 'ACTIVE', 'INACTIVE', 'ARCHIVED')",
            name="check_course_status"
        ),
        Index("idx_course_status_featured", "status", "is_featured"),
        Index("idx_course_category_status", "category", "status"),
    )

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, title='{self.title}', status='{self.status}')>"

    @property
    def is_free(self) -> bool:
        return self.price is None or Decimal(self.price) == 0

    @property
    def is_active(self) -> bool:
        return self.status == CourseStatus.ACTIVE.value

    @property
    def material_count(self) -> int:
        return sum(len(topic.materials) for topic in self.topics)

    @property
    def test_count(self) -> int:
        return sum(len(topic.tests) for topic in self.topics)

    def set_status(self, new_status: str) -> None:
        """Change status, stamping the first publication."""
        self.status = new_status
        if new_status == CourseStatus.ACTIVE.value and not self.published_at:
            self.published_at = datetime.utcnow()

    def to_dict(self) -> dict:
        """Catalog representation of the course."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "short_description": self.short_description,
            "thumbnail_url": self.thumbnail_url,
            "category": self.category,
            "difficulty_level": self.difficulty_level,
            "duration_weeks": self.duration_weeks,
            "price": float(self.price or 0),
            "is_free": self.is_free,
            "max_students": self.max_students,
            "enrolled_count": self.enrolled_count,
            "tutor_id": self.tutor_id,
            "tutor_name": self.tutor.display_name if self.tutor else None,
            "status": self.status,
            "is_featured": self.is_featured,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }


class Topic(Base):
    """
    Topic model representing a unit within a course.
    """
    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    # Relationships
    course = relationship("Course", back_populates="topics")
    materials = relationship(
        "Material",
        back_populates="topic",
        cascade="all, delete-orphan",
        order_by="Material.order_index"
    )
    tests = relationship(
        "Test",
        back_populates="topic",
        cascade="all, delete-orphan",
        order_by="Test.id"
    )

    __table_args__ = (
        Index("idx_topic_course_order", "course_id", "order_index"),
    )

    def __repr__(self) -> str:
        return f"<Topic(id={self.id}, title='{self.title}', course_id={self.course_id})>"


class Material(Base):
    """
    A content unit (PDF, video, link, text...) attached to a topic.
    """
    __tablename__ = "materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    topic_id: Mapped[int] = mapped_column(Integer, ForeignKey("topics.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), default=MaterialType.TEXT.value, nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # Body for TEXT materials
    url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)  # File or external link
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    topic = relationship("Topic", back_populates="materials")
    progress_records = relationship("MaterialProgress", back_populates="material", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "type IN ('PDF', 'VIDEO', 'AUDIO', 'TEXT', 'IMAGE', 'LINK')",
            name="check_material_type"
        ),
        Index("idx_material_topic_order", "topic_id", "order_index"),
    )

    def __repr__(self) -> str:
        return f"<Material(id={self.id}, title='{self.title}', type='{self.type}')>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "title": self.title,
            "type": self.type,
            "content": self.content,
            "url": self.url,
            "duration_minutes": self.duration_minutes,
            "order_index": self.order_index,
        }


class CourseMark(Base):
    """A student's bookmark or favorite on a course. At most one of each kind per pair."""
    __tablename__ = "course_marks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    course = relationship("Course", back_populates="marks")
    student = relationship("User")

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "kind", name="uq_course_mark"),
        CheckConstraint("kind IN ('BOOKMARK', 'FAVORITE')", name="check_course_mark_kind"),
    )

    def __repr__(self) -> str:
        return f"<CourseMark(student_id={self.student_id}, course_id={self.course_id}, kind='{self.kind}')>"
