"""
Audit trail and runtime settings.

AdminLog records every staff mutation. SystemSettings stores typed
key/value pairs that staff can edit without a redeploy.
"""

import json
from datetime import datetime
from typing import Optional, Dict, Any, List, Callable
from enum import Enum
from sqlalchemy import (
    Boolean, Integer, String, DateTime, Text,
    ForeignKey, Index, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from academy.core.database import Base


class AdminAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    STATUS_CHANGE = "status_change"
    APPROVE = "approve"
    REJECT = "reject"
    SETTINGS_CHANGE = "settings_change"
    USER_MANAGEMENT = "user_management"


TRUTHY = ("true", "1", "yes", "on")

_READERS: Dict[str, Callable[[str], Any]] = {
    "integer": int,
    "float": float,
    "boolean": lambda raw: raw.lower() in TRUTHY,
    "json": json.loads,
}

_WRITERS: Dict[str, Callable[[Any], str]] = {
    "integer": lambda value: str(int(float(value))),
    "float": lambda value: str(float(value)),
    "json": json.dumps,
    "boolean": lambda value: "true" if str(value).lower() in TRUTHY else "false",
}


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    # course, topic, material, test, question, user, enrollment_request ...
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user = relationship("User", back_populates="admin_logs")

    __table_args__ = (
        Index("idx_admin_log_actor", "user_id", "action"),
        Index("idx_admin_log_target", "entity_type", "entity_id"),
        Index("idx_admin_log_time", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog {self.action} {self.entity_type}:{self.entity_id} by {self.user_id}>"

    @classmethod
    def log_action(
        cls,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None
    ) -> "AdminLog":
        """Build an unsaved log entry; the caller adds it to the session."""
        if isinstance(action, AdminAction):
            action = action.value
        return cls(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
            ip_address=ip_address
        )


class SystemSettings(Base):
    """
    A single runtime setting.

    ``value`` is always stored as text and decoded according to
    ``value_type`` (string, integer, float, boolean or json).
    """
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    default_value: Mapped[str] = mapped_column(Text, nullable=False)
    validation_rules: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_editable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_modified_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<SystemSettings {self.category}/{self.key}>"

    def get_typed_value(self) -> Any:
        reader = _READERS.get(self.value_type)
        return reader(self.value) if reader else self.value

    def set_typed_value(self, value: Any) -> None:
        writer = _WRITERS.get(self.value_type, str)
        self.value = writer(value)

    def validate_value(self, value: Any) -> List[str]:
        """Problems with a candidate value; empty when it can be stored."""
        if self.value_type == "boolean":
            return [] if isinstance(value, bool) else ["Value must be a boolean"]
        if self.value_type == "string":
            return [] if isinstance(value, str) else ["Value must be a string"]
        if self.value_type not in ("integer", "float"):
            return []

        type_error = [f"Value must be of type {self.value_type}"]
        if isinstance(value, bool):
            return type_error
        try:
            number = float(value)
        except (TypeError, ValueError):
            return type_error
        if self.value_type == "integer":
            if not number.is_integer():
                return type_error
            number = int(number)

        rules = self.validation_rules or {}
        errors = []
        if "min" in rules and number < rules["min"]:
            errors.append(f"Value must be at least {rules['min']}")
        if "max" in rules and number > rules["max"]:
            errors.append(f"Value must be at most {rules['max']}")
        return errors

    @classmethod
    def get_value(cls, db, key: str, default: Any = None) -> Any:
        """Typed value of a stored setting, ``default`` when the key is absent."""
        setting = db.query(cls).filter(cls.key == key).first()
        return default if setting is None else setting.get_typed_value()

    @staticmethod
    def _default(
        key: str,
        value: str,
        value_type: str,
        category: str,
        description: str,
        is_public: bool = True,
        rules: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        row = {
            "key": key,
            "value": value,
            "default_value": value,
            "value_type": value_type,
            "category": category,
            "description": description,
            "is_public": is_public,
            "is_editable": True,
        }
        if rules is not None:
            row["validation_rules"] = rules
        return row

    @classmethod
    def get_default_settings(cls) -> List[Dict[str, Any]]:
        """Rows seeded by init_db."""
        return [
            cls._default("site_name", "Academy", "string", "general",
                         "The name of the academy"),
            cls._default("manager_phone", "", "string", "general",
                         "Contact number shown to students who request enrollment"),
            cls._default("enable_registration", "true", "boolean", "features",
                         "Allow new student sign-ups"),
            cls._default("enable_direct_enrollment", "true", "boolean", "features",
                         "Allow students to enroll in free courses without a request"),
            cls._default("max_enrollments_per_student", "10", "integer", "enrollment",
                         "Active enrollments a single student may hold",
                         is_public=False, rules={"min": 1, "max": 50}),
        ]
