"""
Enrollment models for the Academy backend.

Defines Enrollment, EnrollmentRequest, Payment and MaterialProgress models
linking students to courses, tutors and content.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from enum import Enum
from sqlalchemy import (
    Integer, String, DateTime, Text, Numeric,
    ForeignKey, UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from academy.core.database import Base


class EnrollmentStatus(str, Enum):
    """Status of a student's enrollment in a course."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Status of a payment or of an enrollment's payment."""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    """How a student pays or prefers to be contacted about payment."""
    KASPI = "KASPI"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    MANUAL = "MANUAL"


class RequestStatus(str, Enum):
    """Status of a manual enrollment request."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ProgressStatus(str, Enum):
    """Status of a student's progress through a material."""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Enrollment(Base):
    """
    A row linking a student, a course and a tutor with status and payment fields.
    """
    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    tutor_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=EnrollmentStatus.ACTIVE.value,
        nullable=False
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False
    )

    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    # Relationships
    course = relationship("Course", back_populates="enrollments")
    student = relationship("User", foreign_keys=[student_id], back_populates="enrollments")
    tutor = relationship("User", foreign_keys=[tutor_id])
    payments = relationship("Payment", back_populates="enrollment", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_enrollment_course_student"),
        CheckConstraint(
            "status IN ('PENDING', 'ACTIVE', 'COMPLETED', 'CANCELLED')",
            name="check_enrollment_status"
        ),
        Index("idx_enrollment_student_status", "student_id", "status"),
        Index("idx_enrollment_tutor_status", "tutor_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Enrollment(id={self.id}, course_id={self.course_id}, student_id={self.student_id}, status='{self.status}')>"

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE.value


class EnrollmentRequest(Base):
    """
    A student's request to join a paid course, settled manually by staff.

    Course title and price are snapshotted at request time.
    """
    __tablename__ = "enrollment_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), nullable=False)
    tutor_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)

    # Contact details
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    preferred_contact: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Snapshot
    course_title: Mapped[str] = mapped_column(String(255), nullable=False)
    course_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Processing
    status: Mapped[str] = mapped_column(
        String(20),
        default=RequestStatus.PENDING.value,
        nullable=False
    )
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    student = relationship("User", foreign_keys=[student_id])
    tutor = relationship("User", foreign_keys=[tutor_id])
    course = relationship("Course")

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="check_enrollment_request_status"
        ),
        Index("idx_enrollment_request_status", "status", "created_at"),
        Index("idx_enrollment_request_student", "student_id", "course_id"),
    )

    def __repr__(self) -> str:
        return f"<EnrollmentRequest(id={self.id}, student_id={self.student_id}, course_id={self.course_id}, status='{self.status}')>"


class Payment(Base):
    """
    A payment recorded against an enrollment.
    """
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    enrollment_id: Mapped[int] = mapped_column(Integer, ForeignKey("enrollments.id"), nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    enrollment = relationship("Enrollment", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_payment_amount_positive"),
        Index("idx_payment_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, enrollment_id={self.enrollment_id}, amount={self.amount}, status='{self.status}')>"


class MaterialProgress(Base):
    """
    Tracks a student's progress through one material.
    """
    __tablename__ = "material_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    material_id: Mapped[int] = mapped_column(Integer, ForeignKey("materials.id"), nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=ProgressStatus.NOT_STARTED.value,
        nullable=False
    )
    time_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # in seconds
    last_accessed: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    material = relationship("Material", back_populates="progress_records")

    __table_args__ = (
        UniqueConstraint("material_id", "student_id", name="uq_material_progress_student"),
        CheckConstraint("time_spent >= 0", name="check_material_time_positive"),
        Index("idx_material_progress_student", "student_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<MaterialProgress(material_id={self.material_id}, student_id={self.student_id}, status='{self.status}')>"
