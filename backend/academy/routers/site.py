"""
Settings every visitor may read, such as the academy name and the
manager's contact number.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.core.database import get_db
from academy.models.admin import SystemSettings


router = APIRouter()


@router.get("/public")
async def public_settings(
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Typed values of the settings flagged public, keyed by setting key."""
    rows = db.query(SystemSettings).filter(
        SystemSettings.is_public == True
    ).order_by(SystemSettings.key).all()
    return {setting.key: setting.get_typed_value() for setting in rows}
