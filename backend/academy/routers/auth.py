"""
Authentication router for the Academy backend.

Handles student sign-up, login, the caller's own profile and the identity
dependencies used by every other router.
"""

from datetime import datetime
from typing import Optional, Dict, Any, Callable
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from academy.core.database import get_db
from academy.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    token_user_id,
    check_password_strength
)
from academy.core.config import settings
from academy.models.user import User, UserRole
from academy.models.admin import SystemSettings
from academy.models.gamification import UserPoints
from academy.schemas.auth import UserSignup, Token, UserResponse, ProfileUpdate


logger = logging.getLogger(__name__)

router = APIRouter()

# OAuth2 scheme for token authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False
)


def _user_from_token(token: str, db: Session) -> Optional[User]:
    user_id = token_user_id(token)
    if user_id is None:
        return None
    return db.query(User).filter(User.id == user_id).first()


# Dependencies
def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from JWT token.
    """
    user = _user_from_token(token, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return user


def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Current user when a valid token is sent, None otherwise.
    """
    if not token:
        return None
    user = _user_from_token(token, db)
    if user is None or not user.is_active:
        return None
    return user


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """
    Build a dependency that only lets users with one of ``roles`` through.
    """
    allowed = {role.value if isinstance(role, UserRole) else role for role in roles}

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(f"User {current_user.id} with role {current_user.role} denied access")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action"
            )
        return current_user

    return dependency


def issue_token(user: User) -> str:
    return create_access_token(user.id, role=user.role)


# Endpoints
@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserSignup,
    db: Session = Depends(get_db)
) -> User:
    """
    Register a new student.
    """
    if not SystemSettings.get_value(db, "enable_registration", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User registration is currently disabled"
        )

    email = user_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    password_check = check_password_strength(user_data.password)
    if not password_check["valid"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Password does not meet requirements",
                "issues": password_check["issues"]
            }
        )

    new_user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        phone=user_data.phone,
        role=UserRole.STUDENT.value,
        is_active=True
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"Student registered: {new_user.email}")
    return new_user


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    OAuth2 compatible login endpoint. The username field carries the email.
    """
    user = db.query(User).filter(User.email == form_data.username.lower()).first()

    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login for {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    now = datetime.utcnow()
    user.last_login_at = now

    # Daily activity streak
    points = user.points
    if points is None:
        points = UserPoints(user_id=user.id, points=0, experience=0, streak=0, longest_streak=0)
        db.add(points)
    points.record_activity(now)

    db.commit()

    return {
        "access_token": issue_token(user),
        "token_type": "bearer",
        "user": user.to_dict()
    }


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current user information.
    """
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> User:
    """
    Update the caller's own profile. Omitted fields keep their value.
    """
    changes = profile.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)

    logger.info(f"User {current_user.id} updated profile fields {sorted(changes)}")
    return current_user
