"""
Admin topics router for the Academy backend.

Handles editing topics and managing the materials inside them.
"""

from typing import Dict, Any
from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session

from academy.core.database import get_db
from academy.core.errors import not_found
from academy.models.user import User
from academy.models.course import Topic, Material
from academy.models.admin import AdminAction
from academy.schemas.course import TopicUpdate, MaterialCreate, MaterialUpdate
from .deps import get_current_admin_user, log_admin_action


router = APIRouter()


def get_topic_or_404(db: Session, topic_id: int) -> Topic:
    topic = db.query(Topic).filter(Topic.id == topic_id).first()
    if not topic:
        raise not_found("Topic")
    return topic


def get_material_or_404(db: Session, material_id: int) -> Material:
    material = db.query(Material).filter(Material.id == material_id).first()
    if not material:
        raise not_found("Material")
    return material


@router.put("/topics/{topic_id}")
async def update_topic(
    topic_id: int,
    topic_update: TopicUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    topic = get_topic_or_404(db, topic_id)
    update_data = topic_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(topic, field, value)

    log_admin_action(
        db, request, current_admin, AdminAction.UPDATE, "topic", topic.id,
        {"updated_fields": sorted(update_data.keys())}
    )
    db.commit()
    db.refresh(topic)

    return {
        "id": topic.id,
        "course_id": topic.course_id,
        "title": topic.title,
        "description": topic.description,
        "order_index": topic.order_index
    }


@router.delete("/topics/{topic_id}")
async def delete_topic(
    topic_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    """
    Delete a topic together with its materials and tests.
    """
    topic = get_topic_or_404(db, topic_id)
    log_admin_action(
        db, request, current_admin, AdminAction.DELETE, "topic", topic.id,
        {"course_id": topic.course_id, "title": topic.title}
    )
    db.delete(topic)
    db.commit()
    return {"message": "Topic deleted successfully"}


@router.post("/topics/{topic_id}/materials", status_code=status.HTTP_201_CREATED)
async def create_material(
    topic_id: int,
    material_data: MaterialCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    topic = get_topic_or_404(db, topic_id)

    material = Material(
        topic_id=topic.id,
        **material_data.model_dump(exclude={"type"}),
        type=material_data.type.value
    )
    db.add(material)
    db.flush()

    log_admin_action(
        db, request, current_admin, AdminAction.CREATE, "material", material.id,
        {"topic_id": topic.id, "title": material.title, "type": material.type}
    )
    db.commit()
    db.refresh(material)
    return material.to_dict()


@router.put("/materials/{material_id}")
async def update_material(
    material_id: int,
    material_update: MaterialUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    material = get_material_or_404(db, material_id)
    update_data = material_update.model_dump(exclude_unset=True)
    if update_data.get("type") is not None:
        update_data["type"] = update_data["type"].value

    for field, value in update_data.items():
        setattr(material, field, value)

    log_admin_action(
        db, request, current_admin, AdminAction.UPDATE, "material", material.id,
        {"updated_fields": sorted(update_data.keys())}
    )
    db.commit()
    db.refresh(material)
    return material.to_dict()


@router.delete("/materials/{material_id}")
async def delete_material(
    material_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    material = get_material_or_404(db, material_id)
    log_admin_action(
        db, request, current_admin, AdminAction.DELETE, "material", material.id,
        {"topic_id": material.topic_id, "title": material.title}
    )
    db.delete(material)
    db.commit()
    return {"message": "Material deleted successfully"}
