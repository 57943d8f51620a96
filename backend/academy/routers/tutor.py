"""
Tutor router for the Academy backend.

Gives tutors a view of the courses they lead, their students and the
submissions to tests in their courses.
"""

from typing import Dict, Any, List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import func

from academy.core.database import get_db
from academy.models.user import User, UserRole
from academy.models.course import Course
from academy.models.assessment import TestAttempt, AttemptStatus
from academy.models.enrollment import Enrollment, EnrollmentStatus
from academy.routers.auth import require_roles
from academy.routers.tests import get_test_or_404, attempt_result
from academy.utils import test_timer
from academy.utils.access import course_progress, is_course_manager


router = APIRouter()

get_current_tutor = require_roles(UserRole.TUTOR, UserRole.ADMIN, UserRole.OWNER)


@router.get("/courses")
async def my_courses(
    current_user: User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    """
    Courses led by the caller with their active student counts.
    """
    courses = db.query(Course).filter(Course.tutor_id == current_user.id).order_by(Course.title).all()

    counts = dict(
        db.query(Enrollment.course_id, func.count(Enrollment.id)).filter(
            Enrollment.status == EnrollmentStatus.ACTIVE.value
        ).group_by(Enrollment.course_id).all()
    )

    result = []
    for course in courses:
        course_dict = course.to_dict()
        course_dict["active_students"] = counts.get(course.id, 0)
        course_dict["topic_count"] = len(course.topics)
        result.append(course_dict)
    return result


@router.get("/students")
async def my_students(
    current_user: User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    """
    Students assigned to the caller, one entry per enrollment.
    """
    enrollments = db.query(Enrollment).filter(
        Enrollment.tutor_id == current_user.id,
        Enrollment.status.in_([EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value])
    ).order_by(Enrollment.course_id, Enrollment.id).all()

    return [
        {
            "enrollment_id": enrollment.id,
            "status": enrollment.status,
            "student": enrollment.student.to_dict(),
            "course_id": enrollment.course_id,
            "course_title": enrollment.course.title,
            **course_progress(db, enrollment.student_id, enrollment.course_id),
        }
        for enrollment in enrollments
    ]


@router.get("/tests/{test_id}/submissions")
async def test_submissions(
    test_id: int,
    current_user: User = Depends(get_current_tutor),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Submitted attempts for a test in a course the caller leads.
    """
    test = get_test_or_404(db, test_id)
    if not is_course_manager(current_user, test.topic.course):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not teach this course"
        )

    test_timer.expire_open_attempts(db, TestAttempt.test_id == test.id)

    attempts = db.query(TestAttempt).filter(
        TestAttempt.test_id == test.id,
        TestAttempt.status == AttemptStatus.SUBMITTED.value
    ).order_by(TestAttempt.submitted_at.desc(), TestAttempt.id.desc()).all()

    return {
        "test_id": test.id,
        "title": test.title,
        "submissions": [
            dict(attempt_result(attempt), student=attempt.student.to_dict(), answers=attempt.answers)
            for attempt in attempts
        ]
    }
