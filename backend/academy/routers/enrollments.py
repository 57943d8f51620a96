"""
Enrollment router for the Academy backend.

Students enroll directly in free courses and send enrollment requests
for paid ones. Requests are settled manually by staff.
"""

from typing import Dict, Any, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import func

from academy.core.config import settings
from academy.core.database import get_db
from academy.core.errors import not_found
from academy.models.user import User, UserRole
from academy.models.course import Course
from academy.models.admin import SystemSettings
from academy.models.enrollment import (
    Enrollment, EnrollmentRequest, EnrollmentStatus, PaymentStatus, RequestStatus
)
from academy.routers.auth import get_current_user
from academy.schemas.enrollment import EnrollmentCreate, EnrollmentRequestCreate
from academy.utils.access import get_course_or_404, get_enrollment, course_progress, tutor_active_students


logger = logging.getLogger(__name__)

router = APIRouter()
requests_router = APIRouter()


def enrollment_to_dict(enrollment: Enrollment) -> Dict[str, Any]:
    return {
        "id": enrollment.id,
        "course_id": enrollment.course_id,
        "student_id": enrollment.student_id,
        "tutor_id": enrollment.tutor_id,
        "tutor_name": enrollment.tutor.display_name if enrollment.tutor else None,
        "status": enrollment.status,
        "payment_status": enrollment.payment_status,
        "enrolled_at": enrollment.enrolled_at.isoformat() if enrollment.enrolled_at else None,
        "completed_at": enrollment.completed_at.isoformat() if enrollment.completed_at else None,
    }


def request_to_dict(request: EnrollmentRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "student_id": request.student_id,
        "course_id": request.course_id,
        "tutor_id": request.tutor_id,
        "full_name": request.full_name,
        "phone": request.phone,
        "email": request.email,
        "preferred_contact": request.preferred_contact,
        "message": request.message,
        "course_title": request.course_title,
        "course_price": float(request.course_price),
        "status": request.status,
        "admin_notes": request.admin_notes,
        "processed_by": request.processed_by,
        "processed_at": request.processed_at.isoformat() if request.processed_at else None,
        "created_at": request.created_at.isoformat() if request.created_at else None,
    }


def resolve_tutor(db: Session, course: Course, tutor_id: Optional[int] = None) -> Optional[User]:
    """
    The tutor for a new enrollment: the requested one, or the course's lead tutor.

    Raises:
        HTTPException: 400 when the requested user is not an active tutor
    """
    tutor_id = tutor_id or course.tutor_id
    if tutor_id is None:
        return None

    tutor = db.query(User).filter(User.id == tutor_id).first()
    if not tutor or tutor.role != UserRole.TUTOR.value or not tutor.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Selected tutor is not available"
        )
    return tutor


@router.post("", status_code=status.HTTP_201_CREATED)
async def enroll(
    enrollment_data: EnrollmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Enroll the caller directly in a free, active course.
    """
    course = get_course_or_404(db, enrollment_data.course_id, lock=True)

    if not course.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Course is not open for enrollment"
        )

    if not course.is_free:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="This course is paid. Send an enrollment request instead"
        )

    if not SystemSettings.get_value(db, "enable_direct_enrollment", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Direct enrollment is currently disabled"
        )

    enrollment = get_enrollment(db, current_user.id, course.id)
    if enrollment and enrollment.status != EnrollmentStatus.CANCELLED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are already enrolled in this course"
        )

    max_enrollments = SystemSettings.get_value(db, "max_enrollments_per_student", 10)
    active_count = db.query(func.count(Enrollment.id)).filter(
        Enrollment.student_id == current_user.id,
        Enrollment.status == EnrollmentStatus.ACTIVE.value
    ).scalar()
    if active_count >= max_enrollments:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"You cannot hold more than {max_enrollments} active enrollments"
        )

    if course.enrolled_count >= course.max_students:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Course is full"
        )

    tutor = resolve_tutor(db, course, enrollment_data.tutor_id)
    if tutor and tutor_active_students(db, tutor.id, course.id) >= settings.TUTOR_COURSE_CAPACITY:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This tutor has no free places in the course"
        )

    if enrollment:
        # Re-enrolling after a cancellation
        enrollment.status = EnrollmentStatus.ACTIVE.value
        enrollment.payment_status = PaymentStatus.PAID.value
        enrollment.tutor_id = tutor.id if tutor else None
        enrollment.completed_at = None
    else:
        enrollment = Enrollment(
            course_id=course.id,
            student_id=current_user.id,
            tutor_id=tutor.id if tutor else None,
            status=EnrollmentStatus.ACTIVE.value,
            payment_status=PaymentStatus.PAID.value
        )
        db.add(enrollment)

    course.enrolled_count += 1
    db.commit()
    db.refresh(enrollment)

    logger.info(f"User {current_user.id} enrolled in course {course.id}")
    return enrollment_to_dict(enrollment)


@router.get("/me")
async def my_enrollments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    """
    The caller's enrollments with course info and progress.
    """
    enrollments = db.query(Enrollment).filter(
        Enrollment.student_id == current_user.id
    ).order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc()).all()

    result = []
    for enrollment in enrollments:
        enrollment_dict = enrollment_to_dict(enrollment)
        enrollment_dict["course"] = enrollment.course.to_dict()
        enrollment_dict.update(course_progress(db, current_user.id, enrollment.course_id))
        result.append(enrollment_dict)
    return result


@router.get("/check/{course_id}")
async def check_enrollment(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Whether the caller is enrolled in a course or waiting on a request.
    """
    get_course_or_404(db, course_id)
    enrollment = get_enrollment(db, current_user.id, course_id)
    pending = db.query(EnrollmentRequest).filter(
        EnrollmentRequest.student_id == current_user.id,
        EnrollmentRequest.course_id == course_id,
        EnrollmentRequest.status == RequestStatus.PENDING.value
    ).first()

    return {
        "enrolled": bool(enrollment and enrollment.is_active),
        "status": enrollment.status if enrollment else None,
        "pending_request": pending is not None
    }


@router.post("/{enrollment_id}/cancel")
async def cancel_enrollment(
    enrollment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Cancel an enrollment. Students cancel their own, staff cancel any.
    """
    enrollment = db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
    if not enrollment or (enrollment.student_id != current_user.id and not current_user.is_staff):
        raise not_found("Enrollment")

    if enrollment.status == EnrollmentStatus.CANCELLED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Enrollment is already cancelled"
        )

    if enrollment.status == EnrollmentStatus.ACTIVE.value:
        course = get_course_or_404(db, enrollment.course_id, lock=True)
        course.enrolled_count = max(course.enrolled_count - 1, 0)
    enrollment.status = EnrollmentStatus.CANCELLED.value
    db.commit()
    db.refresh(enrollment)

    logger.info(f"Enrollment {enrollment.id} cancelled by user {current_user.id}")
    return enrollment_to_dict(enrollment)


@requests_router.post("", status_code=status.HTTP_201_CREATED)
async def create_enrollment_request(
    request_data: EnrollmentRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Ask staff to enroll the caller in a paid course after a manual payment.
    """
    course = get_course_or_404(db, request_data.course_id)

    if not course.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Course is not open for enrollment"
        )

    enrollment = get_enrollment(db, current_user.id, course.id)
    if enrollment and enrollment.status in (EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are already enrolled in this course"
        )

    pending = db.query(EnrollmentRequest).filter(
        EnrollmentRequest.student_id == current_user.id,
        EnrollmentRequest.course_id == course.id,
        EnrollmentRequest.status == RequestStatus.PENDING.value
    ).first()
    if pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already have a pending request for this course"
        )

    tutor = resolve_tutor(db, course, request_data.tutor_id)

    enrollment_request = EnrollmentRequest(
        student_id=current_user.id,
        course_id=course.id,
        tutor_id=tutor.id if tutor else None,
        full_name=request_data.full_name,
        phone=request_data.phone,
        email=request_data.email,
        preferred_contact=request_data.preferred_contact,
        message=request_data.message,
        course_title=course.title,
        course_price=course.price,
        status=RequestStatus.PENDING.value
    )
    db.add(enrollment_request)
    db.commit()
    db.refresh(enrollment_request)

    logger.info(f"Enrollment request {enrollment_request.id} created for course {course.id}")
    return request_to_dict(enrollment_request)


@requests_router.get("/me")
async def my_enrollment_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    requests = db.query(EnrollmentRequest).filter(
        EnrollmentRequest.student_id == current_user.id
    ).order_by(EnrollmentRequest.created_at.desc(), EnrollmentRequest.id.desc()).all()
    return [request_to_dict(request) for request in requests]
