"""
Lookups and access checks shared by the student, tutor and admin routers.
"""

from typing import Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from academy.core.errors import not_found
from academy.models.course import Course, Topic, Material
from academy.models.enrollment import Enrollment, EnrollmentStatus, MaterialProgress, ProgressStatus
from academy.models.user import User


def get_course_or_404(db: Session, course_id: int, lock: bool = False) -> Course:
    """The course, row-locked for the transaction when ``lock`` is set."""
    query = db.query(Course).filter(Course.id == course_id)
    if lock:
        query = query.with_for_update()
    course = query.first()
    if not course:
        raise not_found("Course")
    return course


def get_enrollment(db: Session, student_id: int, course_id: int) -> Optional[Enrollment]:
    return db.query(Enrollment).filter(
        Enrollment.student_id == student_id,
        Enrollment.course_id == course_id
    ).first()


def has_active_enrollment(db: Session, student_id: int, course_id: int) -> bool:
    enrollment = get_enrollment(db, student_id, course_id)
    return enrollment is not None and enrollment.is_active


def is_course_manager(user: User, course: Course) -> bool:
    """Staff and the course's lead tutor manage a course."""
    return user.is_staff or (course.tutor_id is not None and course.tutor_id == user.id)


def ensure_course_access(db: Session, user: User, course: Course) -> None:
    """
    Allow staff, the lead tutor and students with an active enrollment.

    Raises:
        HTTPException: 403 for anyone else
    """
    if is_course_manager(user, course):
        return
    if not has_active_enrollment(db, user.id, course.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not enrolled in this course"
        )


def ensure_active_enrollment(db: Session, user: User, course_id: int) -> Enrollment:
    enrollment = get_enrollment(db, user.id, course_id)
    if enrollment is None or not enrollment.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not enrolled in this course"
        )
    return enrollment


def tutor_active_students(db: Session, tutor_id: int, course_id: Optional[int] = None) -> int:
    """Active enrollments held by a tutor, optionally within one course."""
    query = db.query(func.count(Enrollment.id)).filter(
        Enrollment.tutor_id == tutor_id,
        Enrollment.status == EnrollmentStatus.ACTIVE.value
    )
    if course_id is not None:
        query = query.filter(Enrollment.course_id == course_id)
    return query.scalar() or 0


def course_progress(db: Session, student_id: int, course_id: int) -> Dict[str, int]:
    """Completed materials over total materials for one student in one course."""
    total = db.query(func.count(Material.id)).join(Topic).filter(
        Topic.course_id == course_id
    ).scalar() or 0

    completed = db.query(func.count(MaterialProgress.id)).join(
        Material, MaterialProgress.material_id == Material.id
    ).join(Topic).filter(
        Topic.course_id == course_id,
        MaterialProgress.student_id == student_id,
        MaterialProgress.status == ProgressStatus.COMPLETED.value
    ).scalar() or 0

    return {
        "completed_materials": completed,
        "total_materials": total,
        "progress_percentage": round(completed / total * 100) if total else 0,
    }
