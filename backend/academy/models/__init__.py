"""
Database models for the Academy backend.

This module contains all SQLAlchemy models for the application:
- User model for authentication, roles and profiles
- Course models for the catalog and content structure
- Assessment models for tests, questions and timed attempts
- Enrollment models for enrollments, requests, payments and material progress
- Gamification models for points, streaks and badges
- Admin models for auditing and system settings
"""

from academy.core.database import Base

# Import all models to ensure they're registered with SQLAlchemy
from .user import User, UserRole
from .course import Course, Topic, Material, CourseMark, CourseStatus, MaterialType, MarkKind, DifficultyLevel
from .assessment import Test, Question, TestAttempt, QuestionType, AttemptStatus
from .enrollment import (
    Enrollment, EnrollmentRequest, Payment, MaterialProgress,
    EnrollmentStatus, PaymentStatus, PaymentMethod, RequestStatus, ProgressStatus
)
from .gamification import UserPoints, Badge, UserBadge
from .admin import AdminLog, AdminAction, SystemSettings

# Export all models
__all__ = [
    "Base",
    "User",
    "UserRole",
    "Course",
    "Topic",
    "Material",
    "CourseMark",
    "MarkKind",
    "CourseStatus",
    "MaterialType",
    "DifficultyLevel",
    "Test",
    "Question",
    "TestAttempt",
    "QuestionType",
    "AttemptStatus",
    "Enrollment",
    "EnrollmentRequest",
    "Payment",
    "MaterialProgress",
    "EnrollmentStatus",
    "PaymentStatus",
    "PaymentMethod",
    "RequestStatus",
    "ProgressStatus",
    "UserPoints",
    "Badge",
    "UserBadge",
    "AdminLog",
    "AdminAction",
    "SystemSettings"
]
