"""
Exam scoring.

Pure functions: the same (exam, answers) pair always yields the same
Result, so finishing an attempt and re-displaying a stored result share
one implementation. No partial credit: a question earns its full points
or nothing.
"""

import math
from collections.abc import Mapping
from datetime import datetime

from exam_api.models.exams import (
    AnswerValue,
    Exam,
    Outcome,
    Question,
    QuestionResult,
    QuestionType,
    Result,
)


def is_unanswered(value: object) -> bool:
    """Missing, empty string and empty selection all count as unanswered."""
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, set)) and len(value) == 0:
        return True
    return False


def _as_id_set(value: object) -> set[str] | None:
    if isinstance(value, str):
        return {value}
    if isinstance(value, (list, tuple, set)) and all(isinstance(v, str) for v in value):
        return set(value)
    return None


def is_answer_correct(question: Question, answer: AnswerValue | None) -> bool:
    """
    Check a submitted answer against the question's correct answer.

    The answer shape is checked here, against the question type; a value of
    the wrong shape is simply incorrect.
    """
    if is_unanswered(answer):
        return False
    expected = question.correct_answer
    if expected is None:
        return False

    if question.type is QuestionType.MULTIPLE:
        submitted = _as_id_set(answer)
        correct = _as_id_set(expected)
        return submitted is not None and correct is not None and submitted == correct

    if question.type in (QuestionType.SINGLE, QuestionType.TRUE_FALSE):
        return isinstance(answer, str) and answer == expected

    if question.type is QuestionType.TEXT:
        if not isinstance(answer, str) or not isinstance(expected, str):
            return False
        return answer.strip().lower() == expected.strip().lower()

    return False


def grade_question(question: Question, answer: AnswerValue | None) -> QuestionResult:
    if is_unanswered(answer):
        outcome = Outcome.UNANSWERED
    elif is_answer_correct(question, answer):
        outcome = Outcome.CORRECT
    else:
        outcome = Outcome.INCORRECT
    earned = question.points if outcome is Outcome.CORRECT else 0.0
    return QuestionResult(
        question_id=question.id,
        outcome=outcome,
        points=question.points,
        earned=earned,
    )


def _percentage(score: float, total: float) -> int:
    if total <= 0:
        return 0
    # round half up
    return math.floor(score / total * 100 + 0.5)


def score_exam(
    exam: Exam,
    answers: Mapping[str, AnswerValue | None],
    completed_at: datetime | None = None,
) -> Result:
    """
    Score every question of the exam in order.

    Args:
        exam: Exam definition with its ordered questions.
        answers: Submitted answers keyed by question id.
        completed_at: Completion date recorded on the result.

    Returns:
        The aggregate Result with per-question details.
    """
    details = [grade_question(q, answers.get(q.id)) for q in exam.questions]

    score = sum(d.earned for d in details)
    total = sum(d.points for d in details)

    return Result(
        score=round(score, 2),
        total=total,
        correct_count=sum(1 for d in details if d.outcome is Outcome.CORRECT),
        incorrect_count=sum(1 for d in details if d.outcome is Outcome.INCORRECT),
        unanswered_count=sum(1 for d in details if d.outcome is Outcome.UNANSWERED),
        total_questions=len(details),
        percentage=_percentage(score, total),
        date=completed_at,
        details=details,
    )


def is_passed(result: Result, pass_percentage: int = 50) -> bool:
    """Whether the result reaches the pass mark."""
    return result.percentage >= pass_percentage
