"""
API routers for the Academy backend.

This module contains all API endpoint routers:
- auth: Sign-up, login and the current user
- courses: Public catalog and course content
- enrollments: Direct enrollments and enrollment requests
- progress: Material progress and course progress
- tests: Timed test taking
- gamification: Profiles, leaderboards and badges
- tutor: Tutor dashboards
- site: Public runtime settings
- admin: Staff endpoints for content, enrollments, users and settings
"""

from fastapi import APIRouter

# Import individual routers
from .auth import router as auth_router
from .courses import router as courses_router
from .enrollments import router as enrollments_router, requests_router as enrollment_requests_router
from .progress import router as progress_router
from .tests import router as tests_router
from .gamification import router as gamification_router
from .tutor import router as tutor_router
from .site import router as site_router

# Import admin sub-routers
from .admin import admin_router

# Create main API router
api_router = APIRouter()

# Include all routers with their prefixes
api_router.include_router(
    auth_router,
    prefix="/auth",
    tags=["authentication"]
)

api_router.include_router(
    courses_router,
    prefix="/courses",
    tags=["courses"]
)

api_router.include_router(
    enrollments_router,
    prefix="/enrollments",
    tags=["enrollments"]
)

api_router.include_router(
    enrollment_requests_router,
    prefix="/enrollment-requests",
    tags=["enrollments"]
)

api_router.include_router(
    progress_router,
    tags=["progress"]
)

api_router.include_router(
    tests_router,
    tags=["tests"]
)

api_router.include_router(
    gamification_router,
    prefix="/gamification",
    tags=["gamification"]
)

api_router.include_router(
    tutor_router,
    prefix="/tutor",
    tags=["tutor"]
)

api_router.include_router(
    site_router,
    prefix="/settings",
    tags=["settings"]
)

api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["admin"]
)

# Export all routers
__all__ = [
    "api_router",
    "auth_router",
    "courses_router",
    "enrollments_router",
    "enrollment_requests_router",
    "progress_router",
    "tests_router",
    "gamification_router",
    "tutor_router",
    "site_router",
    "admin_router"
]
