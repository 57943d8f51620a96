"""
Admin tests router for the Academy backend.

Handles tests attached to topics and the questions inside them.
"""

from typing import Dict, Any
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session

from academy.core.database import get_db
from academy.core.errors import not_found
from academy.models.user import User
from academy.models.assessment import Test, Question
from academy.models.admin import AdminAction
from academy.schemas.assessment import (
    TestCreate, TestUpdate, QuestionCreate, QuestionUpdate, check_question_options
)
from .deps import get_current_admin_user, log_admin_action
from .topics import get_topic_or_404


router = APIRouter()


def get_test_or_404(db: Session, test_id: int) -> Test:
    test = db.query(Test).filter(Test.id == test_id).first()
    if not test:
        raise not_found("Test")
    return test


def get_question_or_404(db: Session, question_id: int) -> Question:
    question = db.query(Question).filter(Question.id == question_id).first()
    if not question:
        raise not_found("Question")
    return question


def test_detail(test: Test) -> Dict[str, Any]:
    test_dict = test.to_dict()
    test_dict["questions"] = [question.to_dict() for question in test.questions]
    return test_dict


@router.post("/topics/{topic_id}/tests", status_code=status.HTTP_201_CREATED)
async def create_test(
    topic_id: int,
    test_data: TestCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    topic = get_topic_or_404(db, topic_id)

    test = Test(topic_id=topic.id, **test_data.model_dump())
    db.add(test)
    db.flush()

    log_admin_action(
        db, request, current_admin, AdminAction.CREATE, "test", test.id,
        {"topic_id": topic.id, "title": test.title}
    )
    db.commit()
    db.refresh(test)
    return test_detail(test)


@router.get("/tests/{test_id}")
async def get_test(
    test_id: int,
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    A test with its questions and answer keys.
    """
    return test_detail(get_test_or_404(db, test_id))


@router.put("/tests/{test_id}")
async def update_test(
    test_id: int,
    test_update: TestUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Update test rules. Attempts already started keep the time limit they began with.
    """
    test = get_test_or_404(db, test_id)
    update_data = test_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(test, field, value)

    log_admin_action(
        db, request, current_admin, AdminAction.UPDATE, "test", test.id,
        {"updated_fields": sorted(update_data.keys())}
    )
    db.commit()
    db.refresh(test)
    return test_detail(test)


@router.delete("/tests/{test_id}")
async def delete_test(
    test_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    test = get_test_or_404(db, test_id)
    log_admin_action(
        db, request, current_admin, AdminAction.DELETE, "test", test.id,
        {"title": test.title, "attempts": len(test.attempts)}
    )
    db.delete(test)
    db.commit()
    return {"message": "Test deleted successfully"}


@router.post("/tests/{test_id}/questions", status_code=status.HTTP_201_CREATED)
async def create_question(
    test_id: int,
    question_data: QuestionCreate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    test = get_test_or_404(db, test_id)

    question = Question(
        test_id=test.id,
        **question_data.model_dump(exclude={"type"}),
        type=question_data.type.value
    )
    db.add(question)
    db.flush()

    log_admin_action(
        db, request, current_admin, AdminAction.CREATE, "question", question.id,
        {"test_id": test.id, "type": question.type}
    )
    db.commit()
    db.refresh(question)
    return question.to_dict()


@router.put("/questions/{question_id}")
async def update_question(
    question_id: int,
    question_update: QuestionUpdate,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Update a question. The merged result must still have a valid answer key.
    """
    question = get_question_or_404(db, question_id)
    update_data = question_update.model_dump(exclude_unset=True)
    if update_data.get("type") is not None:
        update_data["type"] = update_data["type"].value

    question_type = update_data.get("type", question.type)
    options = update_data.get("options", question.options or [])
    correct_answer = update_data.get("correct_answer", question.correct_answer)
    try:
        update_data["options"] = check_question_options(question_type, options or [], correct_answer)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    for field, value in update_data.items():
        setattr(question, field, value)

    log_admin_action(
        db, request, current_admin, AdminAction.UPDATE, "question", question.id,
        {"updated_fields": sorted(question_update.model_dump(exclude_unset=True).keys())}
    )
    db.commit()
    db.refresh(question)
    return question.to_dict()


@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: int,
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    question = get_question_or_404(db, question_id)
    log_admin_action(
        db, request, current_admin, AdminAction.DELETE, "question", question.id,
        {"test_id": question.test_id}
    )
    db.delete(question)
    db.commit()
    return {"message": "Question deleted successfully"}
