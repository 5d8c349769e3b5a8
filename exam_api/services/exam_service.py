"""Service layer for exams and their questions."""
import json
import logging
import random
from typing import Any, Callable, Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session as DBSession, joinedload, sessionmaker

from exam_api.models.db.exam import ExamPublication, ExamRow, QuestionRow, Subject
from exam_api.models.exams import Exam, Option, Question, QuestionType

logger = logging.getLogger(__name__)


class ExamProvider(Protocol):
    """Source of exam definitions consumed by exam sessions."""

    def get_exam_by_id(self, exam_id: int) -> Exam | None: ...


def decode_correct_answer(raw: str | None, question_type: str) -> Any:
    """
    Decode a stored correct answer.

    Answers are stored as JSON text ('"b"', '["a", "c"]', 'true'). Legacy rows
    hold the bare value ("b", "Paris"); anything that is not valid JSON is
    kept as the literal string.
    """
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        value = raw

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        # JSON "42" decodes to a number; the reference answer is the text
        return raw
    if question_type == QuestionType.MULTIPLE.value and isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, (dict, list)):
        return raw
    return value


def encode_correct_answer(value: Any) -> str | None:
    """Serialize a correct answer for storage."""
    if value is None:
        return None
    return json.dumps(value)


def question_from_row(row: QuestionRow) -> Question:
    """Build the domain question from a database row."""
    return Question(
        id=str(row.id),
        text=row.text or "",
        type=QuestionType(row.type),
        points=row.points or 1,
        options=[
            Option(id=str(opt.get("id")), text=str(opt.get("text", "")))
            for opt in row.options
            if isinstance(opt, dict) and opt.get("id") is not None
        ],
        correct_answer=decode_correct_answer(row.correct_answer, row.type),
    )


def exam_from_row(row: ExamRow) -> Exam:
    """Build the domain exam from a database row with questions loaded."""
    return Exam(
        id=row.id,
        title=row.title,
        description=row.description,
        duration=row.duration,
        subject_code=row.subject.code if row.subject else None,
        subject_name=row.subject.name if row.subject else None,
        questions=[question_from_row(q) for q in row.questions],
    )


def get_exam_by_id(db: DBSession, exam_id: int) -> Exam | None:
    """Get exam with its questions ordered by position."""
    row = db.execute(
        select(ExamRow)
        .options(joinedload(ExamRow.questions), joinedload(ExamRow.subject))
        .where(ExamRow.id == exam_id)
    ).unique().scalar_one_or_none()
    if row is None:
        return None
    return exam_from_row(row)


def list_exams(
    db: DBSession,
    subject_code: str | None = None,
    query: str | None = None,
) -> list[Exam]:
    """
    List published exams ordered by availability date.

    Args:
        subject_code: Only exams of this subject ("all" disables the filter).
        query: Case-insensitive search in title, subject name and description.
    """
    stmt = (
        select(ExamRow)
        .options(joinedload(ExamRow.questions), joinedload(ExamRow.subject))
        .outerjoin(Subject, ExamRow.subject_id == Subject.id)
        .where(ExamRow.status == ExamPublication.PUBLISHED.value)
    )

    if subject_code and subject_code != "all":
        stmt = stmt.where(Subject.code == subject_code)

    if query and query.strip():
        pattern = f"%{query.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(ExamRow.title).like(pattern),
                func.lower(Subject.name).like(pattern),
                func.lower(ExamRow.description).like(pattern),
            )
        )

    stmt = stmt.order_by(ExamRow.available_at, ExamRow.id)
    return [exam_from_row(row) for row in db.execute(stmt).unique().scalars().all()]


def get_or_create_subject(db: DBSession, code: str, name: str | None = None) -> Subject:
    """Get subject by code, creating it on first use."""
    subject = db.execute(select(Subject).where(Subject.code == code)).scalar_one_or_none()
    if subject:
        return subject
    subject = Subject(code=code, name=name or code)
    db.add(subject)
    db.flush()
    return subject


def create_exam(
    db: DBSession,
    title: str,
    questions: list[dict[str, Any]],
    duration: str | None = None,
    description: str | None = None,
    status: str = ExamPublication.PUBLISHED.value,
    subject_code: str | None = None,
    subject_name: str | None = None,
) -> Exam:
    """
    Create an exam with its questions.

    Each question dict carries text, type, points, options ([{id, text}])
    and correct_answer. Questions keep the order they are given in.
    """
    row = ExamRow(
        title=title,
        description=description,
        duration=duration,
        status=status,
    )
    if subject_code:
        row.subject = get_or_create_subject(db, subject_code, subject_name)

    for position, data in enumerate(questions):
        question_type = QuestionType(data.get("type", QuestionType.SINGLE.value))
        question = QuestionRow(
            position=position,
            text=data.get("text", ""),
            type=question_type.value,
            points=data.get("points") or 1,
            correct_answer=encode_correct_answer(data.get("correct_answer")),
        )
        question.options = data.get("options") or []
        row.questions.append(question)

    db.add(row)
    db.commit()
    logger.info("Created exam %s (%s) with %d questions", row.id, title, len(questions))
    return get_exam_by_id(db, row.id)


def shuffle_question_order(exam: Exam, rng: random.Random | None = None) -> list[str]:
    """Randomized question order, drawn once when an attempt is created."""
    order = exam.question_ids()
    (rng or random).shuffle(order)
    return order


def apply_question_order(exam: Exam, order: list[str] | None) -> Exam:
    """
    Replay a stored question order.

    Ids no longer in the exam are dropped; questions added after the order
    was frozen are appended in their original order.
    """
    if not order:
        return exam
    by_id = {q.id: q for q in exam.questions}
    ordered = [by_id[qid] for qid in order if qid in by_id]
    seen = {q.id for q in ordered}
    ordered.extend(q for q in exam.questions if q.id not in seen)
    return exam.model_copy(update={"questions": ordered})


class SqlExamProvider:
    """ExamProvider backed by the exams tables."""

    def __init__(self, session_factory: sessionmaker | Callable[[], DBSession]) -> None:
        self._session_factory = session_factory

    def get_exam_by_id(self, exam_id: int) -> Exam | None:
        db = self._session_factory()
        try:
            return get_exam_by_id(db, exam_id)
        finally:
            db.close()
