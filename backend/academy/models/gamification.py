"""
Gamification models for the Academy backend.

Defines UserPoints (aggregated counters per user), Badge and UserBadge.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text,
    ForeignKey, UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from academy.core.database import Base
from academy.utils.levels import calculate_level


class UserPoints(Base):
    """
    Stored gamification counters for one user.
    """
    __tablename__ = "user_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Streak tracking
    streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    user = relationship("User", back_populates="points")

    __table_args__ = (
        CheckConstraint("experience >= 0", name="check_experience_positive"),
        CheckConstraint("streak >= 0", name="check_streak_positive"),
        CheckConstraint("longest_streak >= streak", name="check_longest_streak"),
        Index("idx_user_points_points", "points"),
    )

    def __repr__(self) -> str:
        return f"<UserPoints(user_id={self.user_id}, points={self.points}, level={self.level})>"

    @property
    def level(self) -> int:
        return calculate_level(self.experience or 0)

    def record_activity(self, activity_date: datetime) -> None:
        """Update the daily activity streak."""
        if not self.last_activity_at:
            # First activity
            self.streak = 1
            self.longest_streak = max(self.longest_streak or 0, 1)
        else:
            days_diff = (activity_date.date() - self.last_activity_at.date()).days

            if days_diff == 1:
                self.streak += 1
                if self.streak > self.longest_streak:
                    self.longest_streak = self.streak
            elif days_diff > 1:
                # Streak broken
                self.streak = 1
            # Same day: unchanged

        self.last_activity_at = activity_date


class Badge(Base):
    """
    A badge that can be earned by users.
    """
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    awards = relationship("UserBadge", back_populates="badge", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Badge(id={self.id}, name='{self.name}')>"


class UserBadge(Base):
    """
    A badge earned by a user.
    """
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    user = relationship("User", back_populates="badges")
    badge = relationship("Badge", back_populates="awards")

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
    )

    def __repr__(self) -> str:
        return f"<UserBadge(user_id={self.user_id}, badge_id={self.badge_id})>"
