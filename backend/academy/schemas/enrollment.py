"""
Enrollment, enrollment request and material progress schemas.
"""

from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field

from academy.models.enrollment import ProgressStatus


ContactMethod = Literal["KASPI", "CARD", "BANK_TRANSFER"]


class EnrollmentCreate(BaseModel):
    course_id: int
    tutor_id: Optional[int] = None


class EnrollmentRequestCreate(BaseModel):
    course_id: int
    tutor_id: Optional[int] = None
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    preferred_contact: ContactMethod = "KASPI"
    message: Optional[str] = Field(None, max_length=2000)


class RequestDecision(BaseModel):
    notes: Optional[str] = None


class EnrollmentOverride(BaseModel):
    student_id: int
    course_id: int
    tutor_id: Optional[int] = None


class MaterialProgressUpdate(BaseModel):
    status: ProgressStatus
    time_spent: int = Field(0, ge=0)  # seconds spent since the last update
