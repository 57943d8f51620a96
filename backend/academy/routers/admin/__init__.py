"""
Staff-only API.

Everything mounted here requires an admin or owner token. Course,
content, test, enrollment and user management live in the sub-modules;
the dashboard, runtime settings and the audit log are served below.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from academy.core.database import get_db
from academy.models.user import User
from academy.models.course import Course
from academy.models.enrollment import (
    Enrollment, EnrollmentRequest, Payment, PaymentStatus, RequestStatus
)
from academy.models.admin import AdminLog, AdminAction, SystemSettings
from academy.schemas.admin import SettingUpdate

from .deps import get_current_admin_user, log_admin_action
from .courses import router as courses_router
from .topics import router as topics_router
from .tests import router as tests_router
from .enrollments import router as enrollments_router
from .users import router as users_router


admin_router = APIRouter(dependencies=[Depends(get_current_admin_user)])

for sub_router, prefix, tag in (
    (courses_router, "/courses", "admin-courses"),
    (topics_router, "", "admin-content"),
    (tests_router, "", "admin-tests"),
    (enrollments_router, "", "admin-enrollments"),
    (users_router, "", "admin-users"),
):
    admin_router.include_router(sub_router, prefix=prefix, tags=[tag])


def _count_by(db: Session, column, id_column) -> dict:
    return dict(db.query(column, func.count(id_column)).group_by(column).all())


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _setting_row(setting: SystemSettings) -> dict:
    return {
        "id": setting.id,
        "key": setting.key,
        "value": setting.get_typed_value(),
        "value_type": setting.value_type,
        "description": setting.description,
        "is_editable": setting.is_editable,
        "validation_rules": setting.validation_rules
    }


def _log_row(log: AdminLog) -> dict:
    return {
        "id": log.id,
        "user_id": log.user_id,
        "action": log.action,
        "entity_type": log.entity_type,
        "entity_id": log.entity_id,
        "details": log.details,
        "ip_address": log.ip_address,
        "created_at": _isoformat(log.created_at)
    }


@admin_router.get("/dashboard")
async def get_admin_dashboard(
    db: Session = Depends(get_db)
) -> dict:
    """
    Headline numbers for the staff home page.

    Users, courses and enrollments are broken down by role or status;
    revenue is the sum of PAID payments.
    """
    users_by_role = _count_by(db, User.role, User.id)
    courses_by_status = _count_by(db, Course.status, Course.id)
    enrollments_by_status = _count_by(db, Enrollment.status, Enrollment.id)

    pending_requests = db.query(EnrollmentRequest).filter(
        EnrollmentRequest.status == RequestStatus.PENDING.value
    ).count()
    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status == PaymentStatus.PAID.value
    ).scalar()

    top_courses = db.query(Course).order_by(Course.enrolled_count.desc(), Course.id).limit(5).all()
    recent_users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).limit(5).all()

    return {
        "statistics": {
            "users": {"total": sum(users_by_role.values()), "by_role": users_by_role},
            "courses": {"total": sum(courses_by_status.values()), "by_status": courses_by_status},
            "enrollments": {"total": sum(enrollments_by_status.values()), "by_status": enrollments_by_status},
            "pending_requests": pending_requests,
            "revenue": float(revenue or 0)
        },
        "top_courses": [
            {
                "id": course.id,
                "title": course.title,
                "status": course.status,
                "enrolled_count": course.enrolled_count
            }
            for course in top_courses
        ],
        "recent_users": [user.to_dict() for user in recent_users]
    }


@admin_router.get("/settings")
async def get_system_settings(
    db: Session = Depends(get_db)
) -> dict:
    """Every setting, grouped by category and sorted by key."""
    grouped: dict = {}
    for setting in db.query(SystemSettings).order_by(SystemSettings.key):
        grouped.setdefault(setting.category, []).append(_setting_row(setting))
    return grouped


@admin_router.put("/settings/{setting_key}")
async def update_system_setting(
    setting_key: str,
    update: SettingUpdate,
    request: Request,
    admin_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> dict:
    setting = db.query(SystemSettings).filter(SystemSettings.key == setting_key).first()
    if setting is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
    if not setting.is_editable:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This setting cannot be edited")

    problems = setting.validate_value(update.value)
    if problems:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid setting value", "issues": problems}
        )

    previous = setting.get_typed_value()
    setting.set_typed_value(update.value)
    setting.last_modified_by = admin_user.id

    log_admin_action(
        db, request, admin_user, AdminAction.SETTINGS_CHANGE, "system_settings", setting.id,
        {"setting_key": setting_key, "old_value": previous, "new_value": setting.get_typed_value()}
    )
    db.commit()
    db.refresh(setting)

    return {
        "message": "Setting updated successfully",
        "setting": {
            "key": setting.key,
            "value": setting.get_typed_value(),
            "updated_at": _isoformat(setting.updated_at)
        }
    }


@admin_router.get("/logs")
async def get_admin_logs(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    db: Session = Depends(get_db)
) -> dict:
    """Audit trail, newest first, optionally narrowed by action or entity type."""
    query = db.query(AdminLog)
    if action:
        query = query.filter(AdminLog.action == action)
    if entity_type:
        query = query.filter(AdminLog.entity_type == entity_type)

    total = query.count()
    logs = query.order_by(AdminLog.created_at.desc(), AdminLog.id.desc()).offset(skip).limit(limit)

    return {
        "total": total,
        "skip": skip,
        "limit": limit,
        "logs": [_log_row(log) for log in logs]
    }


__all__ = ["admin_router", "get_current_admin_user"]
