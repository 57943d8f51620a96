"""
Grading of test answers.

Choice and short answers are marked automatically; essays score zero
and are flagged for review by a tutor.
"""

from typing import Any, Dict, Iterable, List, Optional

from academy.models.assessment import Question, QuestionType


def _normalize(value: Any) -> str:
    return " ".join(str(value).split()).casefold()


def grade_question(question: Question, answer: Optional[Any]) -> Dict[str, Any]:
    """
    Grade a single answer.

    Returns:
        Dict with question_id, answer, is_correct, points_earned and needs_review
    """
    result = {
        "question_id": question.id,
        "answer": answer,
        "is_correct": False,
        "points_earned": 0,
        "points": question.points,
        "needs_review": False,
    }

    if question.type == QuestionType.ESSAY.value:
        result["needs_review"] = answer not in (None, "")
        return result

    if answer is None or str(answer).strip() == "" or question.correct_answer is None:
        return result

    if question.type == QuestionType.MULTIPLE_CHOICE.value:
        is_correct = str(answer).strip() == question.correct_answer.strip()
    else:
        # TRUE_FALSE and SHORT_ANSWER ignore case and spacing
        is_correct = _normalize(answer) == _normalize(question.correct_answer)

    if is_correct:
        result["is_correct"] = True
        result["points_earned"] = question.points
    return result


def grade_test(
    questions: Iterable[Question],
    answers: Dict[str, Any],
    passing_score: int = 0
) -> Dict[str, Any]:
    """
    Grade a full set of answers keyed by question id.

    Answers for question ids that are not part of the test are ignored.
    """
    results: List[Dict[str, Any]] = []
    score = 0
    max_score = 0
    correct = 0

    for question in questions:
        outcome = grade_question(question, answers.get(str(question.id)))
        results.append(outcome)
        score += outcome["points_earned"]
        max_score += question.points
        if outcome["is_correct"]:
            correct += 1

    # Half-up rounding on integers
    percentage = (score * 200 + max_score) // (2 * max_score) if max_score > 0 else 0

    return {
        "score": score,
        "max_score": max_score,
        "percentage": percentage,
        "passed": percentage >= passing_score,
        "correct_answers": correct,
        "total_questions": len(results),
        "results": results,
    }
