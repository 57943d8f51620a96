"""
Admin courses router for the Academy backend.

Handles course CRUD, status changes, tutor assignment and adding topics.
"""

from typing import Optional, Dict, Any
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import func, or_

from academy.core.database import get_db
from academy.models.user import User
from academy.models.course import Course, Topic
from academy.models.enrollment import Enrollment, EnrollmentRequest, EnrollmentStatus
from academy.models.admin import AdminAction
from academy.schemas.course import CourseCreate, CourseUpdate, CourseStatusUpdate, TutorAssignment, TopicCreate
from academy.utils.access import get_course_or_404
from .deps import get_current_admin_user, log_admin_action, get_tutor_or_400


logger = logging.getLogger(__name__)

router = APIRouter()


def course_detail(course: Course) -> Dict[str, Any]:
    course_dict = course.to_dict()
    course_dict["updated_at"] = course.updated_at.isoformat() if course.updated_at else None
    course_dict["topics"] = [
        {
            "id": topic.id,
            "title": topic.title,
            "description": topic.description,
            "order_index": topic.order_index,
            "materials": [material.to_dict() for material in topic.materials],
            "tests": [test.to_dict() for test in topic.tests],
        }
        for topic in course.topics
    ]
    return course_dict


@router.get("")
async def list_courses(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = Query("created_at", pattern="^(created_at|updated_at|title|enrolled_count|price)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    List all courses with filtering and sorting for admin.
    """
    query = db.query(Course)

    if status_filter:
        query = query.filter(Course.status == status_filter)

    if category:
        query = query.filter(Course.category == category)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Course.title.ilike(search_term),
                Course.description.ilike(search_term)
            )
        )

    total = query.count()

    sort_column = getattr(Course, sort_by)
    if sort_order == "desc":
        query = query.order_by(sort_column.desc(), Course.id.desc())
    else:
        query = query.order_by(sort_column.asc(), Course.id.asc())

    courses = query.offset(skip).limit(limit).all()

    active_counts = dict(
        db.query(Enrollment.course_id, func.count(Enrollment.id)).filter(
            Enrollment.status == EnrollmentStatus.ACTIVE.value
        ).group_by(Enrollment.course_id).all()
    )

    course_list = []
    for course in courses:
        course_dict = course.to_dict()
        course_dict["active_students"] = active_counts.get(course.id, 0)
        course_dict["topic_count"] = len(course.topics)
        course_list.append(course_dict)

    return {
        "courses": course_list,
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(
    course_data: CourseCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Create a new course. New courses are drafts unless a status is given.
    """
    if course_data.tutor_id is not None:
        get_tutor_or_400(db, course_data.tutor_id)

    new_course = Course(
        **course_data.model_dump(exclude={"status", "difficulty_level"}),
        difficulty_level=course_data.difficulty_level.value,
        enrolled_count=0
    )
    new_course.set_status(course_data.status.value)
    db.add(new_course)
    db.flush()

    log_admin_action(
        db, request, current_admin, AdminAction.CREATE, "course", new_course.id,
        {"course_title": new_course.title, "status": new_course.status}
    )
    db.commit()
    db.refresh(new_course)

    logger.info(f"Course {new_course.id} created by user {current_admin.id}")
    return course_detail(new_course)


@router.get("/{course_id}")
async def get_course(
    course_id: int,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get a course with its full content tree.
    """
    return course_detail(get_course_or_404(db, course_id))


@router.put("/{course_id}")
async def update_course(
    course_id: int,
    course_update: CourseUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Update course fields. Only the fields sent are changed.
    """
    course = get_course_or_404(db, course_id)
    update_data = course_update.model_dump(exclude_unset=True)

    if update_data.get("tutor_id") is not None:
        get_tutor_or_400(db, update_data["tutor_id"])

    new_status = update_data.pop("status", None)
    if update_data.get("difficulty_level") is not None:
        update_data["difficulty_level"] = update_data["difficulty_level"].value

    for field, value in update_data.items():
        setattr(course, field, value)
    if new_status is not None:
        course.set_status(new_status.value)

    log_admin_action(
        db, request, current_admin, AdminAction.UPDATE, "course", course.id,
        {"updated_fields": sorted(course_update.model_dump(exclude_unset=True).keys())}
    )
    db.commit()
    db.refresh(course)

    return course_detail(course)


@router.delete("/{course_id}")
async def delete_course(
    course_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    """
    Delete a course that has no active enrollments.
    """
    course = get_course_or_404(db, course_id)

    active = db.query(Enrollment).filter(
        Enrollment.course_id == course.id,
        Enrollment.status == EnrollmentStatus.ACTIVE.value
    ).count()
    if active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete a course with {active} active enrollments"
        )

    log_admin_action(
        db, request, current_admin, AdminAction.DELETE, "course", course.id,
        {"course_title": course.title}
    )
    db.query(EnrollmentRequest).filter(EnrollmentRequest.course_id == course.id).delete()
    db.delete(course)
    db.commit()

    logger.info(f"Course {course_id} deleted by user {current_admin.id}")
    return {"message": "Course deleted successfully"}


@router.post("/{course_id}/status")
async def change_course_status(
    course_id: int,
    status_update: CourseStatusUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    course = get_course_or_404(db, course_id)
    old_status = course.status
    course.set_status(status_update.status.value)

    log_admin_action(
        db, request, current_admin, AdminAction.STATUS_CHANGE, "course", course.id,
        {"old_status": old_status, "new_status": course.status}
    )
    db.commit()
    db.refresh(course)

    logger.info(f"Course {course.id} status changed {old_status} -> {course.status}")
    return course.to_dict()


@router.post("/{course_id}/assign-tutor")
async def assign_tutor(
    course_id: int,
    assignment: TutorAssignment,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Make a tutor the lead tutor of a course.
    """
    course = get_course_or_404(db, course_id)
    tutor = get_tutor_or_400(db, assignment.tutor_id)

    previous_tutor_id = course.tutor_id
    course.tutor_id = tutor.id

    log_admin_action(
        db, request, current_admin, AdminAction.UPDATE, "course", course.id,
        {"previous_tutor_id": previous_tutor_id, "tutor_id": tutor.id}
    )
    db.commit()
    db.refresh(course)
    return course.to_dict()


@router.post("/{course_id}/topics", status_code=status.HTTP_201_CREATED)
async def create_topic(
    course_id: int,
    topic_data: TopicCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    course = get_course_or_404(db, course_id)

    topic = Topic(course_id=course.id, **topic_data.model_dump())
    db.add(topic)
    db.flush()

    log_admin_action(
        db, request, current_admin, AdminAction.CREATE, "topic", topic.id,
        {"course_id": course.id, "title": topic.title}
    )
    db.commit()
    db.refresh(topic)

    return {
        "id": topic.id,
        "course_id": topic.course_id,
        "title": topic.title,
        "description": topic.description,
        "order_index": topic.order_index
    }
