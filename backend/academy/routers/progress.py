"""
Progress router for the Academy backend.

Records material progress and summarizes a student's progress through a
course, topic by topic.
"""

from datetime import datetime
from typing import Dict, Any
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from academy.core.database import get_db
from academy.core.errors import not_found
from academy.models.user import User
from academy.models.course import Material
from academy.models.assessment import TestAttempt, AttemptStatus
from academy.models.enrollment import MaterialProgress, ProgressStatus
from academy.routers.auth import get_current_user
from academy.schemas.enrollment import MaterialProgressUpdate
from academy.utils import test_timer
from academy.utils.access import get_course_or_404, ensure_active_enrollment, ensure_course_access, course_progress


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/materials/{material_id}/progress", status_code=status.HTTP_200_OK)
async def update_material_progress(
    material_id: int,
    progress_data: MaterialProgressUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Create or update the caller's progress on a material.

    time_spent is added to the stored total.
    """
    material = db.query(Material).filter(Material.id == material_id).first()
    if not material:
        raise not_found("Material")

    ensure_active_enrollment(db, current_user, material.topic.course_id)

    now = datetime.utcnow()
    progress = db.query(MaterialProgress).filter(
        MaterialProgress.material_id == material.id,
        MaterialProgress.student_id == current_user.id
    ).first()

    if not progress:
        progress = MaterialProgress(
            material_id=material.id,
            student_id=current_user.id,
            time_spent=0
        )
        db.add(progress)

    progress.status = progress_data.status.value
    progress.time_spent = (progress.time_spent or 0) + progress_data.time_spent
    progress.last_accessed = now
    if progress_data.status == ProgressStatus.COMPLETED:
        progress.completed_at = progress.completed_at or now
    else:
        progress.completed_at = None

    db.commit()
    db.refresh(progress)

    return {
        "material_id": material.id,
        "status": progress.status,
        "time_spent": progress.time_spent,
        "last_accessed": progress.last_accessed.isoformat() if progress.last_accessed else None,
        "completed_at": progress.completed_at.isoformat() if progress.completed_at else None,
        "course_progress": course_progress(db, current_user.id, material.topic.course_id)
    }


@router.get("/courses/{course_id}/progress")
async def get_course_progress(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Per-topic material completion and test results for the caller.
    """
    course = get_course_or_404(db, course_id)
    ensure_course_access(db, current_user, course)

    completed_ids = {
        material_id for (material_id,) in db.query(MaterialProgress.material_id).filter(
            MaterialProgress.student_id == current_user.id,
            MaterialProgress.status == ProgressStatus.COMPLETED.value
        ).all()
    }

    test_ids = [test.id for topic in course.topics for test in topic.tests]
    if test_ids:
        test_timer.expire_open_attempts(
            db, TestAttempt.student_id == current_user.id, TestAttempt.test_id.in_(test_ids)
        )

    topics = []
    for topic in course.topics:
        material_ids = [material.id for material in topic.materials]
        completed = len([material_id for material_id in material_ids if material_id in completed_ids])

        tests = []
        for test in topic.tests:
            submitted = db.query(TestAttempt).filter(
                TestAttempt.test_id == test.id,
                TestAttempt.student_id == current_user.id,
                TestAttempt.status == AttemptStatus.SUBMITTED.value
            ).order_by(TestAttempt.percentage.desc()).all()
            best = submitted[0] if submitted else None
            tests.append({
                "test_id": test.id,
                "title": test.title,
                "attempts": len(submitted),
                "best_percentage": best.percentage if best else None,
                "passed": any(attempt.passed for attempt in submitted),
            })

        topics.append({
            "topic_id": topic.id,
            "title": topic.title,
            "completed_materials": completed,
            "total_materials": len(material_ids),
            "completed": bool(material_ids) and completed == len(material_ids),
            "tests": tests,
        })

    return {
        "course_id": course.id,
        "overall": course_progress(db, current_user.id, course.id),
        "topics": topics
    }
