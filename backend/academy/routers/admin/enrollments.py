"""
Admin enrollments router for the Academy backend.

Staff settle manual enrollment requests and can enroll students directly.
"""

from datetime import datetime
from typing import Optional, Dict, Any
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.core.database import get_db
from academy.core.errors import not_found
from academy.models.user import User, UserRole
from academy.models.course import Course
from academy.models.enrollment import (
    Enrollment, EnrollmentRequest, Payment,
    EnrollmentStatus, PaymentStatus, PaymentMethod, RequestStatus
)
from academy.models.admin import AdminAction
from academy.routers.enrollments import enrollment_to_dict, request_to_dict
from academy.schemas.enrollment import RequestDecision, EnrollmentOverride
from academy.utils.access import get_course_or_404, get_enrollment, tutor_active_students
from .deps import get_current_admin_user, log_admin_action, get_tutor_or_400


logger = logging.getLogger(__name__)

router = APIRouter()


def get_pending_request(db: Session, request_id: int) -> EnrollmentRequest:
    enrollment_request = db.query(EnrollmentRequest).filter(
        EnrollmentRequest.id == request_id
    ).first()
    if not enrollment_request:
        raise not_found("Enrollment request")
    if enrollment_request.status != RequestStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Request has already been {enrollment_request.status.lower()}"
        )
    return enrollment_request


def activate_enrollment(
    db: Session,
    student_id: int,
    course: Course,
    tutor_id: Optional[int]
) -> Enrollment:
    """
    Create an ACTIVE, PAID enrollment or reactivate an existing inactive one.

    Raises:
        HTTPException: 400 when the student already holds an active enrollment
    """
    enrollment = get_enrollment(db, student_id, course.id)
    if enrollment and enrollment.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Student is already enrolled in this course"
        )

    if enrollment is None:
        enrollment = Enrollment(course_id=course.id, student_id=student_id)
        db.add(enrollment)

    enrollment.tutor_id = tutor_id
    enrollment.status = EnrollmentStatus.ACTIVE.value
    enrollment.payment_status = PaymentStatus.PAID.value
    enrollment.completed_at = None
    course.enrolled_count += 1
    return enrollment


@router.get("/enrollment-requests")
async def list_enrollment_requests(
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(PENDING|APPROVED|REJECTED)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    query = db.query(EnrollmentRequest)
    if status_filter:
        query = query.filter(EnrollmentRequest.status == status_filter)

    total = query.count()
    requests = query.order_by(
        EnrollmentRequest.created_at.desc(),
        EnrollmentRequest.id.desc()
    ).offset(skip).limit(limit).all()

    return {
        "total": total,
        "skip": skip,
        "limit": limit,
        "requests": [request_to_dict(enrollment_request) for enrollment_request in requests]
    }


@router.post("/enrollment-requests/{request_id}/approve")
async def approve_enrollment_request(
    request_id: int,
    request: Request,
    decision: Optional[RequestDecision] = None,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Approve a pending request.

    In one transaction: checks the tutor's load, activates the enrollment
    and records a manual payment for the snapshotted price.
    """
    enrollment_request = get_pending_request(db, request_id)
    course = get_course_or_404(db, enrollment_request.course_id, lock=True)

    tutor_id = enrollment_request.tutor_id or course.tutor_id
    if tutor_id is not None:
        get_tutor_or_400(db, tutor_id)
        if tutor_active_students(db, tutor_id) >= settings.TUTOR_MAX_STUDENTS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Tutor already has {settings.TUTOR_MAX_STUDENTS} active students"
            )

    try:
        enrollment = activate_enrollment(db, enrollment_request.student_id, course, tutor_id)
        enrollment.payments.append(Payment(
            student_id=enrollment_request.student_id,
            course_id=course.id,
            amount=enrollment_request.course_price,
            method=PaymentMethod.MANUAL.value,
            status=PaymentStatus.PAID.value
        ))

        enrollment_request.status = RequestStatus.APPROVED.value
        enrollment_request.processed_by = current_admin.id
        enrollment_request.processed_at = datetime.utcnow()
        if decision and decision.notes:
            enrollment_request.admin_notes = decision.notes

        log_admin_action(
            db, request, current_admin, AdminAction.APPROVE, "enrollment_request", enrollment_request.id,
            {
                "student_id": enrollment_request.student_id,
                "course_id": course.id,
                "tutor_id": tutor_id,
                "amount": float(enrollment_request.course_price)
            }
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Approving enrollment request {request_id} failed")
        raise

    db.refresh(enrollment)
    db.refresh(enrollment_request)

    logger.info(f"Enrollment request {request_id} approved by user {current_admin.id}")
    return {
        "request": request_to_dict(enrollment_request),
        "enrollment": enrollment_to_dict(enrollment)
    }


@router.post("/enrollment-requests/{request_id}/reject")
async def reject_enrollment_request(
    request_id: int,
    request: Request,
    decision: Optional[RequestDecision] = None,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    enrollment_request = get_pending_request(db, request_id)

    enrollment_request.status = RequestStatus.REJECTED.value
    enrollment_request.processed_by = current_admin.id
    enrollment_request.processed_at = datetime.utcnow()
    if decision and decision.notes:
        enrollment_request.admin_notes = decision.notes

    log_admin_action(
        db, request, current_admin, AdminAction.REJECT, "enrollment_request", enrollment_request.id,
        {"notes": enrollment_request.admin_notes}
    )
    db.commit()
    db.refresh(enrollment_request)

    logger.info(f"Enrollment request {request_id} rejected by user {current_admin.id}")
    return request_to_dict(enrollment_request)


@router.post("/enrollments", status_code=status.HTTP_201_CREATED)
async def enroll_student(
    override: EnrollmentOverride,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Enroll a student directly, bypassing payment and capacity checks.
    """
    student = db.query(User).filter(User.id == override.student_id).first()
    if not student or student.role != UserRole.STUDENT.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Student not found"
        )

    course = get_course_or_404(db, override.course_id, lock=True)
    tutor_id = override.tutor_id or course.tutor_id
    if tutor_id is not None:
        get_tutor_or_400(db, tutor_id)

    enrollment = activate_enrollment(db, student.id, course, tutor_id)
    db.flush()

    log_admin_action(
        db, request, current_admin, AdminAction.CREATE, "enrollment", enrollment.id,
        {"student_id": student.id, "course_id": course.id, "tutor_id": tutor_id, "override": True}
    )
    db.commit()
    db.refresh(enrollment)

    logger.info(f"User {current_admin.id} enrolled student {student.id} in course {course.id}")
    return enrollment_to_dict(enrollment)
