"""
Server-side clock and state transitions for timed test attempts.

An attempt moves IN_PROGRESS <-> PAUSED and ends in SUBMITTED. The time a
student has used is always derived from timestamps stored on the attempt,
never from a value reported by the client:

    elapsed = (now - started_at) - paused_seconds - (now - paused_at, while paused)

Every function takes ``now`` explicitly so callers decide the clock.
"""

from datetime import datetime
from typing import Any, Dict, Optional
import logging

from sqlalchemy.orm import Session

from academy.core.config import settings
from academy.models.assessment import AttemptStatus, Test, TestAttempt
from academy.utils.grading import grade_test


logger = logging.getLogger(__name__)


class AttemptStateError(Exception):
    """Raised when a transition is not allowed from the attempt's current status."""


class PauseLimitError(AttemptStateError):
    """Raised when an attempt has used all of its pauses."""


def utcnow() -> datetime:
    return datetime.utcnow()


def elapsed_seconds(attempt: TestAttempt, now: datetime) -> int:
    """Seconds of running time used by the attempt."""
    if attempt.status == AttemptStatus.SUBMITTED.value:
        return attempt.time_spent

    end = now
    if attempt.status == AttemptStatus.PAUSED.value and attempt.paused_at is not None:
        end = attempt.paused_at

    elapsed = (end - attempt.started_at).total_seconds() - (attempt.paused_seconds or 0)
    return max(int(elapsed), 0)


def remaining_seconds(attempt: TestAttempt, now: datetime) -> Optional[int]:
    """Seconds left on the clock, or None for an untimed test."""
    if attempt.time_limit_seconds is None:
        return None
    return max(attempt.time_limit_seconds - elapsed_seconds(attempt, now), 0)


def is_expired(attempt: TestAttempt, now: datetime, grace: int = 0) -> bool:
    """True once an open attempt has run past its limit plus ``grace`` seconds."""
    if attempt.time_limit_seconds is None or not attempt.is_open:
        return False
    return elapsed_seconds(attempt, now) > attempt.time_limit_seconds + grace


def start_attempt(test: Test, student_id: int, attempt_number: int, now: datetime) -> TestAttempt:
    """Create a running attempt, snapshotting the test's time limit."""
    return TestAttempt(
        test_id=test.id,
        student_id=student_id,
        attempt_number=attempt_number,
        status=AttemptStatus.IN_PROGRESS.value,
        started_at=now,
        paused_seconds=0,
        pause_count=0,
        time_limit_seconds=test.time_limit_seconds,
        answers={},
        current_question_index=0,
    )


def pause(attempt: TestAttempt, now: datetime, max_pauses: Optional[int] = None) -> None:
    """Freeze the clock of a running attempt."""
    if attempt.status != AttemptStatus.IN_PROGRESS.value:
        raise AttemptStateError(f"Cannot pause an attempt that is {attempt.status.lower()}")

    max_pauses = settings.TEST_MAX_PAUSES if max_pauses is None else max_pauses
    if attempt.pause_count >= max_pauses:
        raise PauseLimitError(f"Pause limit reached ({max_pauses} per attempt)")

    attempt.status = AttemptStatus.PAUSED.value
    attempt.paused_at = now
    attempt.pause_count += 1


def _close_pause(attempt: TestAttempt, now: datetime) -> None:
    if attempt.paused_at is not None:
        paused_for = max(int((now - attempt.paused_at).total_seconds()), 0)
        attempt.paused_seconds = (attempt.paused_seconds or 0) + paused_for
    attempt.paused_at = None


def resume(attempt: TestAttempt, now: datetime) -> None:
    """Restart the clock of a paused attempt."""
    if attempt.status != AttemptStatus.PAUSED.value:
        raise AttemptStateError(f"Cannot resume an attempt that is {attempt.status.lower()}")

    _close_pause(attempt, now)
    attempt.status = AttemptStatus.IN_PROGRESS.value


def save_answers(
    attempt: TestAttempt,
    answers: Dict[str, Any],
    current_question_index: Optional[int] = None
) -> None:
    """Merge answers into the attempt's saved work. Only a running attempt accepts answers."""
    if attempt.status != AttemptStatus.IN_PROGRESS.value:
        raise AttemptStateError(f"Cannot save answers while the attempt is {attempt.status.lower()}")

    merged = dict(attempt.answers or {})
    merged.update({str(question_id): answer for question_id, answer in answers.items()})
    # Reassign so the JSON column is flagged dirty
    attempt.answers = merged

    if current_question_index is not None:
        attempt.current_question_index = max(current_question_index, 0)


def finalize(
    attempt: TestAttempt,
    test: Test,
    now: datetime,
    answers: Optional[Dict[str, Any]] = None,
    auto: bool = False
) -> Dict[str, Any]:
    """
    Grade and close the attempt. SUBMITTED is terminal.

    Args:
        attempt: The open attempt
        test: The test being taken, with its questions
        now: Submission time
        answers: Final answers from the client, merged over the saved ones
        auto: True when the server closes the attempt on expiry

    Returns:
        The grading summary
    """
    if attempt.status == AttemptStatus.SUBMITTED.value:
        raise AttemptStateError("Attempt has already been submitted")

    final_answers = dict(attempt.answers or {})
    if answers:
        final_answers.update({str(question_id): answer for question_id, answer in answers.items()})

    time_used = elapsed_seconds(attempt, now)
    if attempt.time_limit_seconds is not None:
        time_used = min(time_used, attempt.time_limit_seconds)

    if attempt.status == AttemptStatus.PAUSED.value:
        _close_pause(attempt, now)

    summary = grade_test(test.questions, final_answers, test.passing_score)

    attempt.answers = final_answers
    attempt.status = AttemptStatus.SUBMITTED.value
    attempt.submitted_at = now
    attempt.time_spent = time_used
    attempt.score = summary["score"]
    attempt.max_score = summary["max_score"]
    attempt.percentage = summary["percentage"]
    attempt.passed = summary["passed"]
    attempt.auto_submitted = auto
    attempt.results = summary["results"]

    logger.info(
        f"Attempt {attempt.id} for test {test.id} submitted "
        f"({'auto' if auto else 'manual'}): {attempt.score}/{attempt.max_score}"
    )
    return summary


def expire_if_due(
    attempt: TestAttempt,
    test: Test,
    now: datetime,
    grace: Optional[int] = None
) -> bool:
    """Auto-submit an attempt with its saved answers once it is past its deadline."""
    grace = settings.TEST_SUBMIT_GRACE_SECONDS if grace is None else grace
    if not is_expired(attempt, now, grace):
        return False
    finalize(attempt, test, now, answers=None, auto=True)
    return True


def expire_stale(db: Session, attempt: TestAttempt, now: datetime) -> bool:
    """Auto-submit ``attempt`` when its deadline has passed and persist the result."""
    if expire_if_due(attempt, attempt.test, now):
        db.commit()
        db.refresh(attempt)
        return True
    return False


def expire_open_attempts(db: Session, *criteria, now: Optional[datetime] = None) -> int:
    """
    Close every open attempt matching ``criteria`` whose deadline has passed.

    Readers call this before listing attempts so that an attempt abandoned
    past its deadline shows up as submitted.

    Returns:
        The number of attempts auto-submitted
    """
    now = now or utcnow()
    open_attempts = db.query(TestAttempt).filter(
        TestAttempt.status != AttemptStatus.SUBMITTED.value,
        TestAttempt.time_limit_seconds.isnot(None),
        *criteria
    ).with_for_update().all()

    expired = [attempt for attempt in open_attempts if expire_if_due(attempt, attempt.test, now)]
    if expired:
        db.commit()
    return len(expired)
