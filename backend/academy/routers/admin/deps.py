"""
Shared dependencies for the admin routers.
"""

from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from academy.models.user import User, UserRole
from academy.models.admin import AdminLog, AdminAction
from academy.routers.auth import get_current_user


# Dependency to verify staff access
async def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Verify that the current user is an owner or an admin.
    """
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def log_admin_action(
    db: Session,
    request: Request,
    admin_user: User,
    action: AdminAction,
    entity_type: str,
    entity_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None
) -> AdminLog:
    """Add an audit entry to the session. The caller commits."""
    admin_log = AdminLog.log_action(
        user_id=admin_user.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip_address=request.client.host if request.client else None
    )
    db.add(admin_log)
    return admin_log


def get_tutor_or_400(db: Session, tutor_id: int) -> User:
    tutor = db.query(User).filter(User.id == tutor_id).first()
    if not tutor or tutor.role != UserRole.TUTOR.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tutor not found or user is not a tutor"
        )
    return tutor
