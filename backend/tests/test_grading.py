from academy.models.assessment import Question
from academy.utils.grading import grade_question, grade_test
from academy.utils.levels import calculate_level, experience_to_next_level, level_progress_percentage
from academy.utils.ranking import assign_ranks


def question(qid, qtype, correct, points=1, options=None):
    return Question(id=qid, text=f"Q{qid}", type=qtype, options=options or [], correct_answer=correct, points=points)


def test_multiple_choice_is_exact_after_trimming():
    q = question(1, "MULTIPLE_CHOICE", "Blue", options=["Blue", "Red"])
    assert grade_question(q, " Blue ")["is_correct"]
    assert not grade_question(q, "blue")["is_correct"]


def test_true_false_ignores_case():
    q = question(1, "TRUE_FALSE", "True", options=["True", "False"])
    assert grade_question(q, "true")["is_correct"]
    assert not grade_question(q, "False")["is_correct"]


def test_short_answer_normalises_whitespace_and_case():
    q = question(1, "SHORT_ANSWER", "New  York", points=3)
    result = grade_question(q, "  new york ")
    assert result["is_correct"]
    assert result["points_earned"] == 3


def test_essay_needs_review_and_scores_zero():
    q = question(1, "ESSAY", None, points=5)
    result = grade_question(q, "A long answer")
    assert result["needs_review"]
    assert result["points_earned"] == 0


def test_unanswered_scores_zero():
    q = question(1, "SHORT_ANSWER", "x")
    assert grade_question(q, None)["points_earned"] == 0
    assert grade_question(q, "   ")["points_earned"] == 0


def test_grade_test_rounds_half_up_and_ignores_unknown_ids():
    questions = [
        question(1, "SHORT_ANSWER", "a"),
        question(2, "SHORT_ANSWER", "b"),
        question(3, "SHORT_ANSWER", "c"),
        question(4, "SHORT_ANSWER", "d"),
        question(5, "SHORT_ANSWER", "e"),
        question(6, "SHORT_ANSWER", "f"),
        question(7, "SHORT_ANSWER", "g"),
        question(8, "SHORT_ANSWER", "h"),
    ]
    # 1 of 8 is 12.5%
    summary = grade_test(questions, {"1": "a", "99": "zzz"}, passing_score=13)
    assert summary["score"] == 1
    assert summary["max_score"] == 8
    assert summary["percentage"] == 13
    assert summary["passed"] is True
    assert summary["total_questions"] == 8


def test_grade_test_without_points():
    summary = grade_test([], {}, passing_score=0)
    assert summary["percentage"] == 0
    assert summary["max_score"] == 0


def test_levels():
    assert calculate_level(0) == 1
    assert calculate_level(999) == 1
    assert calculate_level(1000) == 2
    assert calculate_level(2500) == 3
    assert experience_to_next_level(2500) == 500
    assert level_progress_percentage(2500) == 50.0


def test_competition_ranking():
    entries = assign_ranks([{"value": 90}, {"value": 90}, {"value": 80}, {"value": 70}, {"value": 70}])
    assert [entry["rank"] for entry in entries] == [1, 1, 3, 4, 4]
