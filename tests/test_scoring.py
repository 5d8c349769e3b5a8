from exam_api.models.exams import Exam, Option, Outcome, Question, QuestionType
from exam_api.services.scoring_service import (
    is_answer_correct,
    is_passed,
    score_exam,
)


def _mixed_exam() -> Exam:
    options = [Option(id=i, text=i.upper()) for i in ("a", "b", "c", "d")]
    return Exam(
        id=7,
        title="Mixed",
        duration="30m",
        questions=[
            Question(id="single", type=QuestionType.SINGLE, options=options, correct_answer="b"),
            Question(
                id="multi",
                type=QuestionType.MULTIPLE,
                options=options,
                correct_answer=["a", "c"],
                points=3,
            ),
            Question(id="tf", type=QuestionType.TRUE_FALSE, correct_answer="false", points=2),
            Question(id="text", type=QuestionType.TEXT, correct_answer="Paris", points=1.5),
        ],
    )


def test_total_is_sum_of_points() -> None:
    exam = _mixed_exam()
    expected = sum(q.points for q in exam.questions)
    assert score_exam(exam, {}).total == expected
    assert score_exam(exam, {"single": "b", "tf": "true"}).total == expected


def test_empty_answers_are_all_unanswered() -> None:
    exam = _mixed_exam()
    result = score_exam(exam, {})
    assert result.correct_count == 0
    assert result.unanswered_count == len(exam.questions)
    assert result.score == 0
    assert result.percentage == 0


def test_empty_values_count_as_unanswered() -> None:
    exam = _mixed_exam()
    result = score_exam(exam, {"single": "", "multi": [], "tf": None})
    assert result.unanswered_count == 4
    assert result.incorrect_count == 0


def test_multiple_choice_is_order_independent() -> None:
    question = _mixed_exam().questions[1]
    assert is_answer_correct(question, ["a", "c"])
    assert is_answer_correct(question, ["c", "a"])


def test_multiple_choice_has_no_partial_credit() -> None:
    exam = _mixed_exam()
    question = exam.questions[1]
    assert not is_answer_correct(question, ["a"])
    assert not is_answer_correct(question, ["a", "c", "d"])

    result = score_exam(exam, {"multi": ["a"]})
    assert result.score == 0
    assert result.incorrect_count == 1


def test_text_answer_ignores_case_and_whitespace() -> None:
    question = _mixed_exam().questions[3]
    assert is_answer_correct(question, "Paris")
    assert is_answer_correct(question, " paris ")
    assert not is_answer_correct(question, "Lyon")


def test_answer_of_wrong_shape_is_incorrect() -> None:
    exam = _mixed_exam()
    assert not is_answer_correct(exam.questions[0], ["b"])
    assert not is_answer_correct(exam.questions[2], ["false"])
    assert is_answer_correct(exam.questions[1], "a") is False


def test_mixed_result_aggregates() -> None:
    exam = _mixed_exam()
    answers = {"single": "b", "multi": ["c", "a"], "tf": "true"}
    result = score_exam(exam, answers)

    assert result.score == 4
    assert result.total == 7.5
    assert result.correct_count == 2
    assert result.incorrect_count == 1
    assert result.unanswered_count == 1
    assert result.total_questions == 4
    assert result.percentage == 53
    outcomes = {d.question_id: d.outcome for d in result.details}
    assert outcomes == {
        "single": Outcome.CORRECT,
        "multi": Outcome.CORRECT,
        "tf": Outcome.INCORRECT,
        "text": Outcome.UNANSWERED,
    }


def test_score_is_idempotent() -> None:
    exam = _mixed_exam()
    answers = {"single": "a", "text": "PARIS"}
    assert score_exam(exam, answers) == score_exam(exam, answers)
    assert score_exam(exam, answers).model_dump() == score_exam(exam, answers).model_dump()


def test_exam_without_questions() -> None:
    result = score_exam(Exam(id=1, title="Empty"), {})
    assert result.total == 0
    assert result.percentage == 0
    assert result.total_questions == 0


def test_is_passed() -> None:
    exam = _mixed_exam()
    assert not is_passed(score_exam(exam, {}))
    assert is_passed(score_exam(exam, {"single": "b", "multi": ["a", "c"]}))
