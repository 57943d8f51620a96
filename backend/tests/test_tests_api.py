import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import object_session

from academy.models import TestAttempt
from academy.utils import test_timer

from conftest import auth_headers


@pytest.fixture
def question_ids(quiz):
    mc, tf, short = sorted(quiz.questions, key=lambda q: q.order_index)
    return {"mc": str(mc.id), "tf": str(tf.id), "short": str(short.id)}


def start(client, quiz, headers):
    response = client.post(f"/api/tests/{quiz.id}/start", headers=headers)
    assert response.status_code == 200
    return response.json()


def test_start_requires_active_enrollment(client, quiz, student_headers, clock):
    response = client.post(f"/api/tests/{quiz.id}/start", headers=student_headers)
    assert response.status_code == 403


def test_test_metadata_hides_questions(client, quiz, enrolled_student, student_headers, clock):
    body = client.get(f"/api/tests/{quiz.id}", headers=student_headers).json()
    assert body["question_count"] == 3
    assert body["attempts_remaining"] == 2
    assert body["open_attempt_id"] is None
    assert "questions" not in body


def test_start_is_idempotent(client, quiz, enrolled_student, student_headers, clock):
    first = start(client, quiz, student_headers)
    assert first["status"] == "IN_PROGRESS"
    assert first["remaining_seconds"] == 600
    assert len(first["questions"]) == 3
    assert all("correct_answer" not in q for q in first["questions"])

    clock.advance(seconds=30)
    second = start(client, quiz, student_headers)
    assert second["attempt_id"] == first["attempt_id"]
    assert second["remaining_seconds"] == 570


def test_answers_are_saved_and_restored(client, quiz, enrolled_student, student_headers, clock, question_ids):
    attempt = start(client, quiz, student_headers)

    response = client.put(
        f"/api/attempts/{attempt['attempt_id']}/answers",
        headers=student_headers,
        json={"answers": {question_ids["mc"]: "4"}, "current_question_index": 1}
    )
    assert response.status_code == 200

    state = client.get(f"/api/attempts/{attempt['attempt_id']}", headers=student_headers).json()
    assert state["answers"] == {question_ids["mc"]: "4"}
    assert state["current_question_index"] == 1


def test_pause_freezes_the_clock(client, quiz, enrolled_student, student_headers, clock):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]

    clock.advance(seconds=100)
    paused = client.post(f"/api/attempts/{attempt_id}/pause", headers=student_headers).json()
    assert paused["status"] == "PAUSED"
    assert paused["remaining_seconds"] == 500
    assert paused["pauses_left"] == 2

    clock.advance(hours=2)
    state = client.get(f"/api/attempts/{attempt_id}", headers=student_headers).json()
    assert state["status"] == "PAUSED"
    assert state["remaining_seconds"] == 500

    save = client.put(f"/api/attempts/{attempt_id}/answers", headers=student_headers, json={"answers": {}})
    assert save.status_code == 409

    resumed = client.post(f"/api/attempts/{attempt_id}/resume", headers=student_headers).json()
    assert resumed["status"] == "IN_PROGRESS"
    assert resumed["remaining_seconds"] == 500


def test_pause_limit(client, quiz, enrolled_student, student_headers, clock):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]
    for _ in range(3):
        assert client.post(f"/api/attempts/{attempt_id}/pause", headers=student_headers).status_code == 200
        assert client.post(f"/api/attempts/{attempt_id}/resume", headers=student_headers).status_code == 200

    response = client.post(f"/api/attempts/{attempt_id}/pause", headers=student_headers)
    assert response.status_code == 409
    assert "Pause limit" in response.json()["error"]


def test_resume_running_attempt_conflicts(client, quiz, enrolled_student, student_headers, clock):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]
    assert client.post(f"/api/attempts/{attempt_id}/resume", headers=student_headers).status_code == 409


def test_submit_grades_with_server_time(client, quiz, enrolled_student, student_headers, clock, question_ids):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]
    clock.advance(seconds=95)

    response = client.post(f"/api/attempts/{attempt_id}/submit", headers=student_headers, json={
        "answers": {question_ids["mc"]: "4", question_ids["tf"]: "false", question_ids["short"]: " paris "},
        "time_spent": 1
    })
    assert response.status_code == 200
    result = response.json()
    assert result["status"] == "SUBMITTED"
    assert result["score"] == 3
    assert result["max_score"] == 4
    assert result["percentage"] == 75
    assert result["passed"] is True
    assert result["time_spent"] == 95
    assert result["auto_submitted"] is False

    clock.advance(seconds=30)
    again = client.post(f"/api/attempts/{attempt_id}/submit", headers=student_headers, json={"answers": {}})
    assert again.json() == result


def test_late_submit_within_grace_keeps_answers(client, quiz, enrolled_student, student_headers, clock, question_ids):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]
    client.put(
        f"/api/attempts/{attempt_id}/answers",
        headers=student_headers,
        json={"answers": {question_ids["mc"]: "4"}}
    )

    clock.advance(seconds=603)
    response = client.post(f"/api/attempts/{attempt_id}/submit", headers=student_headers, json={
        "answers": {question_ids["short"]: "Paris"}
    })
    result = response.json()
    assert result["auto_submitted"] is False
    assert result["score"] == 3
    assert result["time_spent"] == 600


def test_expired_attempt_is_submitted_with_saved_answers(client, quiz, enrolled_student, student_headers, clock, question_ids):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]
    client.put(
        f"/api/attempts/{attempt_id}/answers",
        headers=student_headers,
        json={"answers": {question_ids["mc"]: "4"}}
    )

    clock.advance(minutes=15)
    save = client.put(
        f"/api/attempts/{attempt_id}/answers",
        headers=student_headers,
        json={"answers": {question_ids["tf"]: "True"}}
    )
    assert save.status_code == 409

    result = client.post(f"/api/attempts/{attempt_id}/submit", headers=student_headers, json={
        "answers": {question_ids["short"]: "Paris"}
    }).json()
    assert result["auto_submitted"] is True
    assert result["score"] == 2
    assert result["time_spent"] == 600


def test_max_attempts(client, quiz, enrolled_student, student_headers, clock):
    for _ in range(2):
        attempt_id = start(client, quiz, student_headers)["attempt_id"]
        client.post(f"/api/attempts/{attempt_id}/submit", headers=student_headers, json={"answers": {}})

    response = client.post(f"/api/tests/{quiz.id}/start", headers=student_headers)
    assert response.status_code == 409

    body = client.get(f"/api/tests/{quiz.id}", headers=student_headers).json()
    assert body["attempts_remaining"] == 0
    assert [a["attempt_number"] for a in body["attempts"]] == [1, 2]


def test_results_breakdown(client, quiz, enrolled_student, student_headers, clock, question_ids):
    assert client.get(f"/api/tests/{quiz.id}/results", headers=student_headers).status_code == 404

    attempt_id = start(client, quiz, student_headers)["attempt_id"]
    client.post(f"/api/attempts/{attempt_id}/submit", headers=student_headers, json={
        "answers": {question_ids["mc"]: "5"}
    })

    results = client.get(f"/api/tests/{quiz.id}/results", headers=student_headers).json()
    assert results["test_title"] == "Quiz 1"
    assert results["passed"] is False
    first = results["questions"][0]
    assert first["your_answer"] == "5"
    assert first["correct_answer"] == "4"
    assert first["is_correct"] is False
    assert results["questions"][2]["your_answer"] is None


def test_other_students_attempt_is_not_found(client, db, quiz, enrolled_student, student_headers, other_student, clock):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]
    response = client.get(f"/api/attempts/{attempt_id}", headers=auth_headers(other_student))
    assert response.status_code == 404


def test_resume_after_deadline_submits_the_attempt(client, quiz, enrolled_student, student_headers, clock):
    attempt_id = start(client, quiz, student_headers)["attempt_id"]

    clock.advance(minutes=15)
    response = client.post(f"/api/attempts/{attempt_id}/resume", headers=student_headers)
    assert response.status_code == 409
    assert response.json() == {"error": "Time is up. The attempt has been submitted"}

    state = client.get(f"/api/attempts/{attempt_id}", headers=student_headers).json()
    assert state["status"] == "SUBMITTED"
    assert state["auto_submitted"] is True


def test_start_returns_attempt_created_concurrently(client, db, quiz, enrolled_student, student_headers, clock, monkeypatch):
    original = test_timer.start_attempt
    rivals = []

    def start_after_rival(test, student_id, attempt_number, now):
        # Another request commits the same attempt number first
        session = object_session(test)
        rival = original(test, student_id, attempt_number, now)
        session.add(rival)
        session.commit()
        rivals.append(rival.id)
        return original(test, student_id, attempt_number, now)

    monkeypatch.setattr(test_timer, "start_attempt", start_after_rival)

    body = start(client, quiz, student_headers)
    assert body["attempt_id"] == rivals[0]
    assert body["status"] == "IN_PROGRESS"
    assert db.query(TestAttempt).filter(TestAttempt.test_id == quiz.id).count() == 1


def test_attempt_numbers_are_unique_per_student(db, quiz, enrolled_student, clock):
    db.add(test_timer.start_attempt(quiz, enrolled_student.id, 1, clock.now))
    db.commit()
    db.add(test_timer.start_attempt(quiz, enrolled_student.id, 1, clock.now))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def abandon_attempt(client, quiz, headers, clock, question_ids):
    attempt_id = start(client, quiz, headers)["attempt_id"]
    client.put(
        f"/api/attempts/{attempt_id}/answers",
        headers=headers,
        json={"answers": {question_ids["mc"]: "4"}}
    )
    clock.advance(hours=2)
    return attempt_id


def test_tutor_sees_abandoned_attempt_as_submission(client, quiz, enrolled_student, student_headers,
                                                    tutor_headers, clock, question_ids):
    abandon_attempt(client, quiz, student_headers, clock, question_ids)

    submissions = client.get(f"/api/tutor/tests/{quiz.id}/submissions", headers=tutor_headers).json()["submissions"]
    assert len(submissions) == 1
    assert submissions[0]["auto_submitted"] is True
    assert submissions[0]["score"] == 2


def test_course_progress_counts_abandoned_attempt(client, course, quiz, enrolled_student, student_headers,
                                                  clock, question_ids):
    abandon_attempt(client, quiz, student_headers, clock, question_ids)

    body = client.get(f"/api/courses/{course.id}/progress", headers=student_headers).json()
    assert body["topics"][0]["tests"][0]["attempts"] == 1


def test_course_content_reports_abandoned_attempt_as_submitted(client, course, quiz, enrolled_student,
                                                               student_headers, clock, question_ids):
    abandon_attempt(client, quiz, student_headers, clock, question_ids)

    content = client.get(f"/api/courses/{course.id}/content", headers=student_headers).json()
    test_entry = content["topics"][0]["tests"][0]
    assert test_entry["latest_status"] == "SUBMITTED"
    assert test_entry["best_percentage"] == 50


def test_score_leaderboard_includes_abandoned_attempt(client, quiz, enrolled_student, student_headers,
                                                      clock, question_ids):
    abandon_attempt(client, quiz, student_headers, clock, question_ids)

    entries = client.get("/api/gamification/leaderboard", params={"category": "test_scores"}).json()["entries"]
    assert [(entry["user_id"], entry["value"]) for entry in entries] == [(enrolled_student.id, 50.0)]
