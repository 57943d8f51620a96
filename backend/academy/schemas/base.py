"""
Shared base for partial update payloads.
"""

from typing import Any, ClassVar, FrozenSet

from pydantic import BaseModel, ValidationInfo, field_validator


class PartialUpdate(BaseModel):
    """
    A payload where omitted fields are left untouched.

    Sending ``null`` clears a field only when it is listed in
    ``nullable_fields``; for any other field it is a validation error.
    """
    nullable_fields: ClassVar[FrozenSet[str]] = frozenset()

    @field_validator("*")
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name not in cls.nullable_fields:
            raise ValueError(f"{info.field_name} cannot be null")
        return value
