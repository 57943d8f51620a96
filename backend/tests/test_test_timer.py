from datetime import datetime, timedelta

import pytest

from academy.models.assessment import AttemptStatus, Question, Test
from academy.utils import test_timer
from academy.utils.test_timer import AttemptStateError, PauseLimitError


START = datetime(2024, 1, 1, 12, 0, 0)


def at(seconds):
    return START + timedelta(seconds=seconds)


def make_test(time_limit_minutes=1):
    return Test(
        id=1,
        title="Quiz",
        time_limit_minutes=time_limit_minutes,
        max_attempts=1,
        passing_score=50,
        questions=[
            Question(id=1, text="Pick b", type="MULTIPLE_CHOICE", options=["a", "b"], correct_answer="b", points=1),
            Question(id=2, text="Say yes", type="SHORT_ANSWER", options=[], correct_answer="yes", points=1),
        ]
    )


def make_attempt(time_limit_minutes=1):
    test = make_test(time_limit_minutes)
    return test, test_timer.start_attempt(test, student_id=7, attempt_number=1, now=START)


def test_started_attempt_runs_with_full_time():
    _, attempt = make_attempt()
    assert attempt.status == AttemptStatus.IN_PROGRESS.value
    assert test_timer.elapsed_seconds(attempt, START) == 0
    assert test_timer.remaining_seconds(attempt, at(15)) == 45


def test_remaining_never_goes_negative():
    _, attempt = make_attempt()
    assert test_timer.remaining_seconds(attempt, at(500)) == 0


def test_untimed_attempt_has_no_remaining_and_never_expires():
    _, attempt = make_attempt(time_limit_minutes=None)
    assert test_timer.remaining_seconds(attempt, at(10_000)) is None
    assert not test_timer.is_expired(attempt, at(10_000))


def test_clock_is_frozen_while_paused():
    _, attempt = make_attempt()
    test_timer.pause(attempt, at(10))
    assert attempt.status == AttemptStatus.PAUSED.value
    assert test_timer.elapsed_seconds(attempt, at(300)) == 10
    assert not test_timer.is_expired(attempt, at(300))


def test_resume_adds_paused_span():
    _, attempt = make_attempt()
    test_timer.pause(attempt, at(10))
    test_timer.resume(attempt, at(40))

    assert attempt.status == AttemptStatus.IN_PROGRESS.value
    assert attempt.paused_seconds == 30
    assert attempt.paused_at is None
    assert test_timer.elapsed_seconds(attempt, at(50)) == 20


def test_pause_limit():
    _, attempt = make_attempt()
    for i in range(3):
        test_timer.pause(attempt, at(i * 2), max_pauses=3)
        test_timer.resume(attempt, at(i * 2 + 1))

    with pytest.raises(PauseLimitError):
        test_timer.pause(attempt, at(10), max_pauses=3)
    assert attempt.status == AttemptStatus.IN_PROGRESS.value


def test_invalid_transitions():
    test, attempt = make_attempt()
    with pytest.raises(AttemptStateError):
        test_timer.resume(attempt, at(1))

    test_timer.pause(attempt, at(1))
    with pytest.raises(AttemptStateError):
        test_timer.pause(attempt, at(2))
    with pytest.raises(AttemptStateError):
        test_timer.save_answers(attempt, {"1": "a"})

    test_timer.finalize(attempt, test, at(3))
    with pytest.raises(AttemptStateError):
        test_timer.finalize(attempt, test, at(4))


def test_save_answers_merges():
    _, attempt = make_attempt()
    test_timer.save_answers(attempt, {"1": "a"}, current_question_index=1)
    test_timer.save_answers(attempt, {2: "yes"})
    test_timer.save_answers(attempt, {"1": "b"})

    assert attempt.answers == {"1": "b", "2": "yes"}
    assert attempt.current_question_index == 1


def test_finalize_grades_and_records_server_time():
    test, attempt = make_attempt()
    test_timer.save_answers(attempt, {"1": "b"})
    summary = test_timer.finalize(attempt, test, at(42), answers={"2": " YES "})

    assert summary["score"] == 2
    assert attempt.status == AttemptStatus.SUBMITTED.value
    assert attempt.percentage == 100
    assert attempt.passed is True
    assert attempt.time_spent == 42
    assert attempt.submitted_at == at(42)
    assert attempt.auto_submitted is False
    assert attempt.answers == {"1": "b", "2": " YES "}


def test_time_spent_is_capped_at_limit():
    test, attempt = make_attempt()
    test_timer.finalize(attempt, test, at(63))
    assert attempt.time_spent == 60


def test_finalize_while_paused_closes_pause():
    test, attempt = make_attempt()
    test_timer.pause(attempt, at(20))
    test_timer.finalize(attempt, test, at(50))

    assert attempt.time_spent == 20
    assert attempt.paused_at is None
    assert attempt.paused_seconds == 30


def test_expiry_respects_grace_window():
    test, attempt = make_attempt()
    assert not test_timer.is_expired(attempt, at(60))
    assert test_timer.is_expired(attempt, at(61))
    assert not test_timer.is_expired(attempt, at(64), grace=5)

    assert not test_timer.expire_if_due(attempt, test, at(65), grace=5)
    assert attempt.is_open


def test_expire_if_due_submits_saved_answers():
    test, attempt = make_attempt()
    test_timer.save_answers(attempt, {"1": "b"})

    assert test_timer.expire_if_due(attempt, test, at(120), grace=5)
    assert attempt.status == AttemptStatus.SUBMITTED.value
    assert attempt.auto_submitted is True
    assert attempt.score == 1
    assert attempt.time_spent == 60
