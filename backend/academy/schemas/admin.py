"""
Schemas for admin user management and system settings.
"""

from typing import Any, Optional
from pydantic import BaseModel, EmailStr, Field

from academy.models.user import UserRole
from academy.schemas.base import PartialUpdate


class UserAdminUpdate(PartialUpdate):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class TutorCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = None


class SettingUpdate(BaseModel):
    value: Any
