"""
Gamification router for the Academy backend.

Reads stored points, experience, streaks and badges. Nothing here awards
or spends points.
"""

from typing import Dict, Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func

from academy.core.config import settings
from academy.core.database import get_db
from academy.models.user import User
from academy.models.assessment import TestAttempt, AttemptStatus
from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.models.gamification import UserPoints, Badge, UserBadge
from academy.routers.auth import get_current_user
from academy.utils import test_timer
from academy.utils.levels import calculate_level, experience_to_next_level, level_progress_percentage
from academy.utils.ranking import assign_ranks


router = APIRouter()


def _entry(user: User, value, **extra) -> Dict[str, Any]:
    entry = {
        "user_id": user.id,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "value": value,
    }
    entry.update(extra)
    return entry


def points_leaderboard(db: Session, limit: int) -> List[Dict[str, Any]]:
    rows = db.query(User, UserPoints).join(
        UserPoints, UserPoints.user_id == User.id
    ).filter(
        User.is_active == True
    ).order_by(
        UserPoints.points.desc(),
        UserPoints.experience.desc(),
        User.id
    ).limit(limit).all()

    return [
        _entry(user, points.points, experience=points.experience, level=points.level)
        for user, points in rows
    ]


def test_scores_leaderboard(db: Session, limit: int) -> List[Dict[str, Any]]:
    test_timer.expire_open_attempts(db)
    average = func.avg(TestAttempt.percentage)
    rows = db.query(
        User,
        average.label("average"),
        func.count(TestAttempt.id).label("tests_taken")
    ).join(
        TestAttempt, TestAttempt.student_id == User.id
    ).filter(
        User.is_active == True,
        TestAttempt.status == AttemptStatus.SUBMITTED.value
    ).group_by(User.id).order_by(
        average.desc(),
        User.id
    ).limit(limit).all()

    return [
        _entry(user, round(float(avg), 2), tests_taken=tests_taken)
        for user, avg, tests_taken in rows
    ]


def course_completion_leaderboard(db: Session, limit: int) -> List[Dict[str, Any]]:
    completed = func.count(Enrollment.id)
    rows = db.query(User, completed.label("completed")).join(
        Enrollment, Enrollment.student_id == User.id
    ).filter(
        User.is_active == True,
        Enrollment.status == EnrollmentStatus.COMPLETED.value
    ).group_by(User.id).order_by(
        completed.desc(),
        User.id
    ).limit(limit).all()

    return [_entry(user, count) for user, count in rows]


LEADERBOARDS = {
    "points": points_leaderboard,
    "test_scores": test_scores_leaderboard,
    "course_completion": course_completion_leaderboard,
}


@router.get("/profile")
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    The caller's gamification profile.
    """
    points = current_user.points
    if points is None:
        points = UserPoints(user_id=current_user.id, points=0, experience=0, streak=0, longest_streak=0)
        db.add(points)
        db.commit()
        db.refresh(points)

    ahead = db.query(func.count(UserPoints.id)).join(
        User, UserPoints.user_id == User.id
    ).filter(
        User.is_active == True,
        UserPoints.points > points.points
    ).scalar() or 0

    earned = db.query(UserBadge).filter(
        UserBadge.user_id == current_user.id
    ).order_by(UserBadge.earned_at.desc()).all()

    return {
        "user_id": current_user.id,
        "display_name": current_user.display_name,
        "points": points.points,
        "experience": points.experience,
        "level": calculate_level(points.experience),
        "experience_to_next_level": experience_to_next_level(points.experience),
        "level_progress": level_progress_percentage(points.experience),
        "streak": points.streak,
        "longest_streak": points.longest_streak,
        "last_activity_at": points.last_activity_at.isoformat() if points.last_activity_at else None,
        "rank": ahead + 1,
        "badges": [
            {
                "id": award.badge.id,
                "name": award.badge.name,
                "description": award.badge.description,
                "icon": award.badge.icon,
                "earned_at": award.earned_at.isoformat() if award.earned_at else None,
            }
            for award in earned
        ],
    }


@router.get("/leaderboard")
async def get_leaderboard(
    category: str = Query("points", pattern="^(points|test_scores|course_completion)$"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Users ranked within a category. Ties share a rank.
    """
    limit = limit or settings.LEADERBOARD_DEFAULT_LIMIT
    entries = assign_ranks(LEADERBOARDS[category](db, limit))
    return {
        "category": category,
        "entries": entries
    }


@router.get("/badges")
async def list_badges(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    earned_ids = {
        badge_id for (badge_id,) in db.query(UserBadge.badge_id).filter(
            UserBadge.user_id == current_user.id
        ).all()
    }
    badges = db.query(Badge).filter(Badge.is_active == True).order_by(Badge.category, Badge.name).all()
    return [
        {
            "id": badge.id,
            "name": badge.name,
            "description": badge.description,
            "icon": badge.icon,
            "category": badge.category,
            "points": badge.points,
            "earned": badge.id in earned_ids,
        }
        for badge in badges
    ]
