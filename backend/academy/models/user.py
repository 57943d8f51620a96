"""
User model for the Academy backend.

Defines the User table with authentication fields, role, profile information
and relationships to enrollments and gamification.
"""

from datetime import datetime
from typing import Optional
from enum import Enum
from sqlalchemy import Boolean, Integer, String, DateTime, Text, Index, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from academy.core.database import Base


class UserRole(str, Enum):
    """Roles a user can hold in the academy."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    TUTOR = "TUTOR"
    STUDENT = "STUDENT"


STAFF_ROLES = (UserRole.OWNER.value, UserRole.ADMIN.value)


class User(Base):
    """
    User model for authentication and profile management.
    """
    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    # Authentication fields
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.STUDENT.value,
        nullable=False
    )

    # Profile fields
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Status fields
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    enrollments = relationship(
        "Enrollment",
        foreign_keys="Enrollment.student_id",
        back_populates="student",
        cascade="all, delete-orphan"
    )
    test_attempts = relationship("TestAttempt", back_populates="student", cascade="all, delete-orphan")
    points = relationship("UserPoints", back_populates="user", uselist=False, cascade="all, delete-orphan")
    badges = relationship("UserBadge", back_populates="user", cascade="all, delete-orphan")
    admin_logs = relationship("AdminLog", back_populates="user", cascade="all, delete-orphan")

    # Table constraints
    __table_args__ = (
        CheckConstraint("role IN ('OWNER', 'ADMIN', 'TUTOR', 'STUDENT')", name="check_user_role"),
        Index("idx_user_role_active", "role", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def display_name(self) -> str:
        """Get user's display name (full name or the email's local part)."""
        return self.full_name or self.email.split("@")[0]

    @property
    def is_staff(self) -> bool:
        """Owners and admins manage the academy."""
        return self.role in STAFF_ROLES

    def to_dict(self) -> dict:
        """Convert user to a short public dictionary representation."""
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "display_name": self.display_name,
            "role": self.role,
            "avatar_url": self.avatar_url,
            "is_active": self.is_active,
        }
