"""
Test-taking router for the Academy backend.

The server owns the clock of every attempt. Each request that touches an
attempt first checks whether it has run past its deadline and, if so,
submits it with the answers saved so far.
"""

from datetime import datetime
from typing import Dict, Any, List
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.core.database import get_db
from academy.core.errors import not_found
from academy.models.user import User
from academy.models.assessment import Test, TestAttempt, AttemptStatus
from academy.routers.auth import get_current_user
from academy.schemas.assessment import AnswersSave, AttemptSubmit
from academy.utils import test_timer
from academy.utils.access import ensure_course_access, ensure_active_enrollment
from academy.utils.test_timer import AttemptStateError, PauseLimitError


logger = logging.getLogger(__name__)

router = APIRouter()


def get_test_or_404(db: Session, test_id: int) -> Test:
    test = db.query(Test).filter(Test.id == test_id).first()
    if not test:
        raise not_found("Test")
    return test


def get_own_attempt(db: Session, attempt_id: int, user: User, lock: bool = False) -> TestAttempt:
    query = db.query(TestAttempt).filter(
        TestAttempt.id == attempt_id,
        TestAttempt.student_id == user.id
    )
    if lock:
        query = query.with_for_update()
    attempt = query.first()
    if not attempt:
        raise not_found("Attempt")
    return attempt


def attempt_result(attempt: TestAttempt) -> Dict[str, Any]:
    """The stored outcome of a submitted attempt."""
    results = attempt.results or []
    return {
        "attempt_id": attempt.id,
        "test_id": attempt.test_id,
        "attempt_number": attempt.attempt_number,
        "status": attempt.status,
        "score": attempt.score,
        "max_score": attempt.max_score,
        "percentage": attempt.percentage,
        "passed": attempt.passed,
        "time_spent": attempt.time_spent,
        "auto_submitted": attempt.auto_submitted,
        "submitted_at": attempt.submitted_at.isoformat() if attempt.submitted_at else None,
        "correct_answers": len([r for r in results if r.get("is_correct")]),
        "total_questions": len(results),
        "needs_review": any(r.get("needs_review") for r in results),
    }


def attempt_state(attempt: TestAttempt, now: datetime) -> Dict[str, Any]:
    """Current state of an attempt as seen by the student taking it."""
    if not attempt.is_open:
        state = attempt_result(attempt)
        state["remaining_seconds"] = test_timer.remaining_seconds(attempt, now)
        return state

    return {
        "attempt_id": attempt.id,
        "test_id": attempt.test_id,
        "attempt_number": attempt.attempt_number,
        "status": attempt.status,
        "started_at": attempt.started_at.isoformat(),
        "time_limit_seconds": attempt.time_limit_seconds,
        "elapsed_seconds": test_timer.elapsed_seconds(attempt, now),
        "remaining_seconds": test_timer.remaining_seconds(attempt, now),
        "pause_count": attempt.pause_count,
        "pauses_left": max(settings.TEST_MAX_PAUSES - attempt.pause_count, 0),
        "answers": attempt.answers or {},
        "current_question_index": attempt.current_question_index,
        "questions": [question.to_public_dict() for question in attempt.test.questions],
    }


def conflict(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)


@router.get("/tests/{test_id}")
async def get_test(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Test rules and the caller's attempts. Questions stay hidden until an attempt starts.
    """
    test = get_test_or_404(db, test_id)
    ensure_course_access(db, current_user, test.topic.course)

    now = test_timer.utcnow()
    attempts = db.query(TestAttempt).filter(
        TestAttempt.test_id == test.id,
        TestAttempt.student_id == current_user.id
    ).order_by(TestAttempt.attempt_number).all()
    for attempt in attempts:
        test_timer.expire_stale(db, attempt, now)

    submitted = [attempt for attempt in attempts if not attempt.is_open]
    open_attempt = next((attempt for attempt in attempts if attempt.is_open), None)

    test_dict = test.to_dict()
    test_dict.update({
        "course_id": test.topic.course_id,
        "attempts": [attempt_result(attempt) for attempt in submitted],
        "attempts_remaining": max(test.max_attempts - len(submitted), 0),
        "open_attempt_id": open_attempt.id if open_attempt else None,
    })
    return test_dict


@router.post("/tests/{test_id}/start")
async def start_test(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Start an attempt, or return the attempt already in progress.
    """
    test = get_test_or_404(db, test_id)
    ensure_active_enrollment(db, current_user, test.topic.course_id)

    if not test.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Test is not available"
        )
    if not test.questions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Test has no questions"
        )

    now = test_timer.utcnow()
    attempts: List[TestAttempt] = db.query(TestAttempt).filter(
        TestAttempt.test_id == test.id,
        TestAttempt.student_id == current_user.id
    ).order_by(TestAttempt.attempt_number).all()

    for attempt in attempts:
        if attempt.is_open and not test_timer.expire_stale(db, attempt, now):
            return attempt_state(attempt, now)

    if len(attempts) >= test.max_attempts:
        raise conflict("Maximum number of attempts reached")

    attempt = test_timer.start_attempt(test, current_user.id, len(attempts) + 1, now)
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request created this attempt number first
        db.rollback()
        winner = db.query(TestAttempt).filter(
            TestAttempt.test_id == test.id,
            TestAttempt.student_id == current_user.id,
            TestAttempt.status != AttemptStatus.SUBMITTED.value
        ).order_by(TestAttempt.attempt_number.desc()).first()
        if winner is None:
            raise conflict("Maximum number of attempts reached")
        return attempt_state(winner, now)
    db.refresh(attempt)

    logger.info(f"User {current_user.id} started attempt {attempt.attempt_number} on test {test.id}")
    return attempt_state(attempt, now)


@router.get("/attempts/{attempt_id}")
async def get_attempt(
    attempt_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    attempt = get_own_attempt(db, attempt_id, current_user)
    now = test_timer.utcnow()
    test_timer.expire_stale(db, attempt, now)
    return attempt_state(attempt, now)


@router.put("/attempts/{attempt_id}/answers")
async def save_answers(
    attempt_id: int,
    answers_data: AnswersSave,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Save work in progress on a running attempt.
    """
    attempt = get_own_attempt(db, attempt_id, current_user, lock=True)
    now = test_timer.utcnow()
    if test_timer.expire_stale(db, attempt, now):
        raise conflict("Time is up. The attempt has been submitted")

    try:
        test_timer.save_answers(attempt, answers_data.answers, answers_data.current_question_index)
    except AttemptStateError as e:
        raise conflict(str(e))

    db.commit()
    db.refresh(attempt)
    return attempt_state(attempt, now)


@router.post("/attempts/{attempt_id}/pause")
async def pause_attempt(
    attempt_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    attempt = get_own_attempt(db, attempt_id, current_user, lock=True)
    now = test_timer.utcnow()
    if test_timer.expire_stale(db, attempt, now):
        raise conflict("Time is up. The attempt has been submitted")

    try:
        test_timer.pause(attempt, now)
    except PauseLimitError as e:
        logger.warning(f"Attempt {attempt.id}: {e}")
        raise conflict(str(e))
    except AttemptStateError as e:
        raise conflict(str(e))

    db.commit()
    db.refresh(attempt)
    return attempt_state(attempt, now)


@router.post("/attempts/{attempt_id}/resume")
async def resume_attempt(
    attempt_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    attempt = get_own_attempt(db, attempt_id, current_user, lock=True)
    now = test_timer.utcnow()
    if test_timer.expire_stale(db, attempt, now):
        raise conflict("Time is up. The attempt has been submitted")

    try:
        test_timer.resume(attempt, now)
    except AttemptStateError as e:
        raise conflict(str(e))

    db.commit()
    db.refresh(attempt)
    return attempt_state(attempt, now)


@router.post("/attempts/{attempt_id}/submit")
async def submit_attempt(
    attempt_id: int,
    submission: AttemptSubmit,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Submit an attempt. Repeating the call returns the recorded result.

    A submission arriving after the deadline but within the grace window
    keeps its answers. Past the grace window the attempt is closed with
    the answers last saved on the server.
    """
    attempt = get_own_attempt(db, attempt_id, current_user, lock=True)

    if not attempt.is_open:
        return attempt_result(attempt)

    now = test_timer.utcnow()
    if not test_timer.expire_stale(db, attempt, now):
        test_timer.finalize(attempt, attempt.test, now, answers=submission.answers, auto=False)
        db.commit()
        db.refresh(attempt)

    return attempt_result(attempt)


@router.get("/tests/{test_id}/results")
async def get_test_results(
    test_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    The caller's latest submitted attempt with a per-question breakdown.
    """
    test = get_test_or_404(db, test_id)

    now = test_timer.utcnow()
    attempts = db.query(TestAttempt).filter(
        TestAttempt.test_id == test.id,
        TestAttempt.student_id == current_user.id
    ).order_by(TestAttempt.attempt_number.desc()).all()
    for attempt in attempts:
        test_timer.expire_stale(db, attempt, now)

    latest = next((attempt for attempt in attempts if not attempt.is_open), None)
    if latest is None:
        raise not_found("Submitted attempt")

    outcomes = {str(result["question_id"]): result for result in latest.results or []}
    breakdown = []
    for question in test.questions:
        outcome = outcomes.get(str(question.id), {})
        breakdown.append({
            "question_id": question.id,
            "text": question.text,
            "type": question.type,
            "options": question.options or [],
            "your_answer": outcome.get("answer"),
            "correct_answer": question.correct_answer,
            "explanation": question.explanation,
            "is_correct": outcome.get("is_correct", False),
            "points_earned": outcome.get("points_earned", 0),
            "points": question.points,
            "needs_review": outcome.get("needs_review", False),
        })

    result = attempt_result(latest)
    result.update({
        "test_title": test.title,
        "passing_score": test.passing_score,
        "questions": breakdown,
    })
    return result
