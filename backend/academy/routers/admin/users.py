"""
Admin users router for the Academy backend.

Handles listing users, changing roles and activation, and creating tutor
accounts.
"""

from typing import Optional, Dict, Any
import logging

from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy import or_

from academy.core.database import get_db
from academy.core.errors import not_found
from academy.core.security import get_password_hash, generate_temp_password
from academy.models.user import User, UserRole, STAFF_ROLES
from academy.models.admin import AdminAction
from academy.schemas.admin import UserAdminUpdate, TutorCreate
from .deps import get_current_admin_user, log_admin_action


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/users")
async def list_users(
    role: Optional[str] = Query(None, pattern="^(OWNER|ADMIN|TUTOR|STUDENT)$"),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    query = db.query(User)

    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                User.email.ilike(search_term),
                User.full_name.ilike(search_term),
                User.phone.ilike(search_term)
            )
        )

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit).all()

    return {
        "total": total,
        "skip": skip,
        "limit": limit,
        "users": [
            dict(
                user.to_dict(),
                phone=user.phone,
                created_at=user.created_at.isoformat() if user.created_at else None,
                last_login_at=user.last_login_at.isoformat() if user.last_login_at else None
            )
            for user in users
        ]
    }


@router.patch("/users/{user_id}")
async def update_user(
    user_id: int,
    user_update: UserAdminUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Change a user's role or activation.

    Owners can be neither demoted nor deactivated, and only an owner may
    grant staff roles.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise not_found("User")

    update_data = user_update.model_dump(exclude_unset=True)
    new_role = update_data.get("role")

    if user.role == UserRole.OWNER.value:
        if (new_role is not None and new_role != UserRole.OWNER) or update_data.get("is_active") is False:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The owner account cannot be demoted or deactivated"
            )

    if new_role is not None and new_role.value in STAFF_ROLES and current_admin.role != UserRole.OWNER.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner can grant staff roles"
        )

    old_values = {"role": user.role, "is_active": user.is_active}
    if new_role is not None:
        user.role = new_role.value
    if update_data.get("is_active") is not None:
        user.is_active = update_data["is_active"]

    log_admin_action(
        db, request, current_admin, AdminAction.USER_MANAGEMENT, "user", user.id,
        {"old": old_values, "new": {"role": user.role, "is_active": user.is_active}}
    )
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} updated by {current_admin.id}: role={user.role} active={user.is_active}")
    return user.to_dict()


@router.post("/tutors", status_code=status.HTTP_201_CREATED)
async def create_tutor(
    tutor_data: TutorCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Create a tutor account. The temporary password is returned only here.
    """
    email = tutor_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    temp_password = generate_temp_password()
    tutor = User(
        email=email,
        full_name=tutor_data.full_name,
        phone=tutor_data.phone,
        bio=tutor_data.bio,
        hashed_password=get_password_hash(temp_password),
        role=UserRole.TUTOR.value,
        is_active=True
    )
    db.add(tutor)
    db.flush()

    log_admin_action(
        db, request, current_admin, AdminAction.USER_MANAGEMENT, "user", tutor.id,
        {"action": "tutor_created", "email": tutor.email}
    )
    db.commit()
    db.refresh(tutor)

    logger.info(f"Tutor {tutor.id} created by user {current_admin.id}")
    return {
        "user": tutor.to_dict(),
        "temporary_password": temp_password
    }
