"""
Schemas for tests, questions and test attempts.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator

from academy.models.assessment import CHOICE_QUESTION_TYPES, QuestionType
from academy.schemas.base import PartialUpdate


TRUE_FALSE_OPTIONS = ["True", "False"]


class TestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = Field(None, ge=1)
    max_attempts: int = Field(1, ge=1)
    passing_score: int = Field(60, ge=0, le=100)
    is_active: bool = True


class TestUpdate(PartialUpdate):
    nullable_fields = frozenset({"description", "time_limit_minutes"})

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = Field(None, ge=1)
    max_attempts: Optional[int] = Field(None, ge=1)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


def check_question_options(
    question_type: str,
    options: List[str],
    correct_answer: Optional[str]
) -> List[str]:
    """
    Normalise options for a question type and check the answer key.

    Raises:
        ValueError: When a choice question's answer is not one of its options
    """
    if question_type not in CHOICE_QUESTION_TYPES:
        return []

    if question_type == QuestionType.TRUE_FALSE.value and not options:
        options = list(TRUE_FALSE_OPTIONS)

    if len(options) < 2:
        raise ValueError("Choice questions need at least two options")
    if correct_answer is None or correct_answer.strip() not in [option.strip() for option in options]:
        raise ValueError("Correct answer must be one of the options")
    return options


class QuestionCreate(BaseModel):
    text: str = Field(..., min_length=1)
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: List[str] = []
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    points: int = Field(1, ge=0)
    order_index: int = Field(0, ge=0)

    @model_validator(mode="after")
    def validate_answer_key(self) -> "QuestionCreate":
        self.options = check_question_options(self.type.value, self.options, self.correct_answer)
        return self


class QuestionUpdate(PartialUpdate):
    nullable_fields = frozenset({"correct_answer", "explanation"})

    text: Optional[str] = Field(None, min_length=1)
    type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    points: Optional[int] = Field(None, ge=0)
    order_index: Optional[int] = Field(None, ge=0)


class AnswersSave(BaseModel):
    answers: Dict[str, Any] = {}
    current_question_index: Optional[int] = Field(None, ge=0)


class AttemptSubmit(BaseModel):
    # Any time reported by the client is ignored; the server clock decides
    answers: Dict[str, Any] = {}
