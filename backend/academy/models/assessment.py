"""
Assessment models for the Academy backend.

Defines Test, Question and TestAttempt models. A TestAttempt carries the
server-side clock of a timed test: it is the record the test timer
utilities operate on.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text,
    ForeignKey, Index, CheckConstraint, UniqueConstraint, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from academy.core.database import Base


class QuestionType(str, Enum):
    """Types of test questions."""
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"


CHOICE_QUESTION_TYPES = (QuestionType.MULTIPLE_CHOICE.value, QuestionType.TRUE_FALSE.value)


class AttemptStatus(str, Enum):
    """Status of a test attempt. SUBMITTED is terminal."""
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    SUBMITTED = "SUBMITTED"


class Test(Base):
    """
    A test attached to a topic.
    """
    __tablename__ = "tests"
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    topic_id: Mapped[int] = mapped_column(Integer, ForeignKey("topics.id"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Rules
    time_limit_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # None means untimed
    max_attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, default=60, nullable=False)  # Percentage
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
    topic = relationship("Topic", back_populates="tests")
    questions = relationship(
        "Question",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="Question.order_index"
    )
    attempts = relationship("TestAttempt", back_populates="test", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("max_attempts > 0", name="check_test_max_attempts_positive"),
        CheckConstraint("passing_score >= 0 AND passing_score <= 100", name="check_test_passing_score"),
        CheckConstraint("time_limit_minutes IS NULL OR time_limit_minutes > 0", name="check_test_time_limit"),
    )

    def __repr__(self) -> str:
        return f"<Test(id={self.id}, title='{self.title}', topic_id={self.topic_id})>"

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)

    @property
    def time_limit_seconds(self) -> Optional[int]:
        return self.time_limit_minutes * 60 if self.time_limit_minutes else None

    @property
    def course_id(self) -> int:
        return self.topic.course_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "title": self.title,
            "description": self.description,
            "time_limit_minutes": self.time_limit_minutes,
            "max_attempts": self.max_attempts,
            "passing_score": self.passing_score,
            "is_active": self.is_active,
            "question_count": len(self.questions),
            "total_points": self.total_points,
        }


class Question(Base):
    """
    A question belonging to a test.

    options holds the choices for MULTIPLE_CHOICE and TRUE_FALSE questions;
    correct_answer is the expected option text or short answer.
    """
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    test_id: Mapped[int] = mapped_column(Integer, ForeignKey("tests.id"), nullable=False)

    text: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), default=QuestionType.MULTIPLE_CHOICE.value, nullable=False)
    options: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    correct_answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
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

    test = relationship("Test", back_populates="questions")

    __table_args__ = (
        CheckConstraint("points >= 0", name="check_question_points_positive"),
        CheckConstraint(
            "type IN ('MULTIPLE_CHOICE', 'TRUE_FALSE', 'SHORT_ANSWER', 'ESSAY')",
            name="check_question_type"
        ),
        Index("idx_question_test_order", "test_id", "order_index"),
    )

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, type='{self.type}', test_id={self.test_id})>"

    def to_public_dict(self) -> Dict[str, Any]:
        """Question as shown to a student taking the test (no answer)."""
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type,
            "options": self.options or [],
            "points": self.points,
            "order_index": self.order_index,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full question including the answer key, for staff."""
        data = self.to_public_dict()
        data.update({
            "test_id": self.test_id,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
        })
        return data


class TestAttempt(Base):
    """
    One student's attempt at a test, including its server-side clock.
    """
    __tablename__ = "test_attempts"
    __test__ = False

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    test_id: Mapped[int] = mapped_column(Integer, ForeignKey("tests.id"), nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    attempt_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=AttemptStatus.IN_PROGRESS.value,
        nullable=False
    )

    # Clock
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    paused_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    paused_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pause_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    time_limit_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # Snapshot at start

    # Work in progress
    answers: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)  # question_id -> answer
    current_question_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Result
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    time_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # in seconds
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    results: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON, nullable=True)

    # Relationships
    test = relationship("Test", back_populates="attempts")
    student = relationship("User", back_populates="test_attempts")

    __table_args__ = (
        CheckConstraint("attempt_number > 0", name="check_attempt_number_positive"),
        CheckConstraint("paused_seconds >= 0", name="check_attempt_paused_positive"),
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="check_attempt_percentage"),
        CheckConstraint(
            "status IN ('IN_PROGRESS', 'PAUSED', 'SUBMITTED')",
            name="check_attempt_status"
        ),
        UniqueConstraint("test_id", "student_id", "attempt_number", name="uq_attempt_number"),
        Index("idx_attempt_student_test", "student_id", "test_id"),
    )

    def __repr__(self) -> str:
        return f"<TestAttempt(id={self.id}, test_id={self.test_id}, student_id={self.student_id}, status='{self.status}')>"

    @property
    def is_open(self) -> bool:
        return self.status != AttemptStatus.SUBMITTED.value
