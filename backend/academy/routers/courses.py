"""
Courses router for the Academy backend.

Handles the public catalog, course details, course content for enrolled
students, the tutors teaching a course and student bookmarks and favorites.
"""

from typing import Optional, Dict, Any, List
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy import or_

from academy.core.database import get_db
from academy.models.user import User, UserRole
from academy.models.course import Course, CourseMark, CourseStatus, MarkKind
from academy.models.assessment import TestAttempt
from academy.models.enrollment import Enrollment, EnrollmentRequest, EnrollmentStatus, MaterialProgress, RequestStatus
from academy.routers.auth import get_current_user, get_optional_user, require_roles
from academy.schemas.course import BookmarkToggle, FavoriteToggle
from academy.utils import test_timer
from academy.utils.access import get_course_or_404, get_enrollment, ensure_course_access, is_course_manager


router = APIRouter()

get_current_student = require_roles(UserRole.STUDENT)


@router.get("")
async def list_courses(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    List active courses with optional filtering.
    """
    query = db.query(Course).filter(Course.status == CourseStatus.ACTIVE.value)

    if category:
        query = query.filter(Course.category == category)

    if difficulty:
        query = query.filter(Course.difficulty_level == difficulty)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Course.title.ilike(search_term),
                Course.description.ilike(search_term),
                Course.short_description.ilike(search_term)
            )
        )

    total = query.count()

    courses = query.order_by(
        Course.is_featured.desc(),
        Course.created_at.desc(),
        Course.id.desc()
    ).offset(skip).limit(limit).all()

    return {
        "courses": [course.to_dict() for course in courses],
        "total": total,
        "skip": skip,
        "limit": limit
    }


def set_course_mark(db: Session, student: User, course_id: int, kind: MarkKind, marked: bool) -> None:
    """Add or remove one mark. Repeating a request leaves the same state."""
    course = get_course_or_404(db, course_id)
    mark = db.query(CourseMark).filter(
        CourseMark.student_id == student.id,
        CourseMark.course_id == course.id,
        CourseMark.kind == kind.value
    ).first()

    if marked and mark is None:
        db.add(CourseMark(student_id=student.id, course_id=course.id, kind=kind.value))
    elif not marked and mark is not None:
        db.delete(mark)

    try:
        db.commit()
    except IntegrityError:
        # Marked by a concurrent request
        db.rollback()


def marked_courses(db: Session, student: User, kind: MarkKind) -> List[Dict[str, Any]]:
    marks = db.query(CourseMark).filter(
        CourseMark.student_id == student.id,
        CourseMark.kind == kind.value
    ).order_by(CourseMark.created_at.desc(), CourseMark.id.desc()).all()
    return [
        dict(mark.course.to_dict(), marked_at=mark.created_at.isoformat() if mark.created_at else None)
        for mark in marks
    ]


@router.get("/bookmarks")
async def my_bookmarks(
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    return marked_courses(db, current_user, MarkKind.BOOKMARK)


@router.get("/favorites")
async def my_favorites(
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    return marked_courses(db, current_user, MarkKind.FAVORITE)


@router.post("/{course_id}/bookmark")
async def toggle_bookmark(
    course_id: int,
    toggle: BookmarkToggle,
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    set_course_mark(db, current_user, course_id, MarkKind.BOOKMARK, toggle.is_bookmarked)
    return {"course_id": course_id, "is_bookmarked": toggle.is_bookmarked}


@router.post("/{course_id}/favorite")
async def toggle_favorite(
    course_id: int,
    toggle: FavoriteToggle,
    current_user: User = Depends(get_current_student),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    set_course_mark(db, current_user, course_id, MarkKind.FAVORITE, toggle.is_favorite)
    return {"course_id": course_id, "is_favorite": toggle.is_favorite}


@router.get("/{course_id}")
async def get_course(
    course_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get detailed information about a specific course.
    """
    course = get_course_or_404(db, course_id)

    if not course.is_active and not (current_user and is_course_manager(current_user, course)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found"
        )

    course_dict = course.to_dict()
    course_dict.update({
        "topic_count": len(course.topics),
        "material_count": course.material_count,
        "test_count": course.test_count,
        "topics": [
            {
                "id": topic.id,
                "title": topic.title,
                "description": topic.description,
                "order_index": topic.order_index,
                "material_count": len(topic.materials),
                "test_count": len(topic.tests),
            }
            for topic in course.topics
        ],
        "enrollment": None,
        "pending_request": False,
    })

    if current_user:
        enrollment = get_enrollment(db, current_user.id, course.id)
        if enrollment:
            course_dict["enrollment"] = {
                "id": enrollment.id,
                "status": enrollment.status,
                "payment_status": enrollment.payment_status,
            }
        course_dict["pending_request"] = db.query(EnrollmentRequest).filter(
            EnrollmentRequest.student_id == current_user.id,
            EnrollmentRequest.course_id == course.id,
            EnrollmentRequest.status == RequestStatus.PENDING.value
        ).first() is not None

    return course_dict


@router.get("/{course_id}/content")
async def get_course_content(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Topics with their materials and tests, plus the caller's progress.
    """
    course = get_course_or_404(db, course_id)
    ensure_course_access(db, current_user, course)

    material_ids = [material.id for topic in course.topics for material in topic.materials]
    progress_by_material = {}
    if material_ids:
        progress_by_material = {
            record.material_id: record
            for record in db.query(MaterialProgress).filter(
                MaterialProgress.student_id == current_user.id,
                MaterialProgress.material_id.in_(material_ids)
            ).all()
        }

    test_ids = [test.id for topic in course.topics for test in topic.tests]
    attempts_by_test: Dict[int, list] = {}
    if test_ids:
        test_timer.expire_open_attempts(
            db, TestAttempt.student_id == current_user.id, TestAttempt.test_id.in_(test_ids)
        )
        for attempt in db.query(TestAttempt).filter(
            TestAttempt.student_id == current_user.id,
            TestAttempt.test_id.in_(test_ids)
        ).order_by(TestAttempt.attempt_number).all():
            attempts_by_test.setdefault(attempt.test_id, []).append(attempt)

    topics = []
    for topic in course.topics:
        materials = []
        for material in topic.materials:
            material_dict = material.to_dict()
            record = progress_by_material.get(material.id)
            material_dict["progress"] = {
                "status": record.status,
                "time_spent": record.time_spent,
                "completed_at": record.completed_at.isoformat() if record.completed_at else None,
            } if record else None
            materials.append(material_dict)

        tests = []
        for test in topic.tests:
            if not test.is_active and not is_course_manager(current_user, course):
                continue
            attempts = attempts_by_test.get(test.id, [])
            latest = attempts[-1] if attempts else None
            test_dict = test.to_dict()
            test_dict.update({
                "attempts_used": len(attempts),
                "latest_status": latest.status if latest else None,
                "best_percentage": max((a.percentage for a in attempts if not a.is_open), default=None),
            })
            tests.append(test_dict)

        topics.append({
            "id": topic.id,
            "title": topic.title,
            "description": topic.description,
            "order_index": topic.order_index,
            "materials": materials,
            "tests": tests,
        })

    return {
        "course": course.to_dict(),
        "topics": topics
    }


@router.get("/{course_id}/tutors")
async def get_course_tutors(
    course_id: int,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Tutors teaching the course: the lead tutor and tutors holding active enrollments.
    """
    course = get_course_or_404(db, course_id)

    tutor_ids = {
        tutor_id for (tutor_id,) in db.query(Enrollment.tutor_id).filter(
            Enrollment.course_id == course.id,
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
            Enrollment.tutor_id.isnot(None)
        ).distinct().all()
    }
    if course.tutor_id:
        tutor_ids.add(course.tutor_id)

    tutors = []
    if tutor_ids:
        tutors = db.query(User).filter(
            User.id.in_(tutor_ids),
            User.role == UserRole.TUTOR.value,
            User.is_active == True
        ).order_by(User.full_name).all()

    return {
        "course_id": course.id,
        "tutors": [
            dict(tutor.to_dict(), is_lead=tutor.id == course.tutor_id, bio=tutor.bio)
            for tutor in tutors
        ]
    }
