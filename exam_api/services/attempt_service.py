"""Service layer for exam attempts using the SQL database."""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession, sessionmaker

from exam_api.models.db.attempt import ExamAttempt
from exam_api.models.exams import (
    AnswerValue,
    AttemptRecord,
    ExamStatus,
    ProgressSnapshot,
    Result,
)

logger = logging.getLogger(__name__)


class AttemptGateway(Protocol):
    """Attempt storage consumed by exam sessions."""

    def find_incomplete_attempt(self, user_id: str, exam_id: int) -> AttemptRecord | None: ...

    def create_attempt(
        self, user_id: str, exam_id: int, question_order: list[str] | None
    ) -> AttemptRecord: ...

    def save_progress(self, user_id: str, exam_id: int, snapshot: ProgressSnapshot) -> None: ...

    def complete_attempt(
        self,
        user_id: str,
        exam_id: int,
        result: Result,
        answers: dict[str, AnswerValue | None],
    ) -> None: ...

    def find_completed_result(self, user_id: str, exam_id: int) -> Result | None: ...


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_record(attempt: ExamAttempt) -> AttemptRecord:
    """Convert a database row to the record handed to sessions."""
    stored_result = attempt.result
    return AttemptRecord(
        id=attempt.id,
        user_id=attempt.user_id,
        exam_id=attempt.exam_id,
        question_order=attempt.question_order,
        answers=attempt.answers,
        flags=attempt.flags,
        last_open_question=attempt.last_open_question or 0,
        time_left=attempt.time_left,
        timestamp=_as_utc(attempt.timestamp),
        started_at=_as_utc(attempt.started_at),
        completed_at=_as_utc(attempt.completed_at),
        result=Result.model_validate(stored_result) if stored_result else None,
    )


def _incomplete_query(user_id: str, exam_id: int):
    return (
        select(ExamAttempt)
        .where(
            ExamAttempt.user_id == user_id,
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.completed_at.is_(None),
        )
        .order_by(ExamAttempt.started_at.desc(), ExamAttempt.id.desc())
        .limit(1)
    )


def find_incomplete_attempt(db: DBSession, user_id: str, exam_id: int) -> ExamAttempt | None:
    """Get the attempt in progress for a user and exam."""
    return db.execute(_incomplete_query(user_id, exam_id)).scalar_one_or_none()


def create_attempt(
    db: DBSession,
    user_id: str,
    exam_id: int,
    question_order: list[str] | None = None,
) -> ExamAttempt:
    """
    Start a new attempt, or return the one already in progress.
    """
    existing = find_incomplete_attempt(db, user_id, exam_id)
    if existing:
        return existing

    attempt = ExamAttempt(user_id=user_id, exam_id=exam_id)
    attempt.question_order = question_order
    attempt.answers = {}

    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    logger.info("Started attempt %s for user %s on exam %s", attempt.id, user_id, exam_id)
    return attempt


def save_progress(
    db: DBSession,
    user_id: str,
    exam_id: int,
    answers: dict[str, Any],
    last_open_question: int,
    time_left: int | None,
    flags: list[int],
    timestamp: datetime,
) -> ExamAttempt | None:
    """
    Overwrite the progress of the attempt in progress.
    Creates the attempt when none exists yet, unless the exam is already
    completed: a late write is then ignored and None returned.
    """
    attempt = find_incomplete_attempt(db, user_id, exam_id)
    if attempt is None:
        if get_completed_attempt(db, user_id, exam_id) is not None:
            logger.warning(
                "Ignored progress for user %s on completed exam %s", user_id, exam_id
            )
            return None
        attempt = create_attempt(db, user_id, exam_id, None)

    attempt.answers = answers
    attempt.last_open_question = last_open_question
    attempt.time_left = time_left
    attempt.flags = flags
    attempt.timestamp = timestamp

    db.commit()
    db.refresh(attempt)
    return attempt


def complete_attempt(
    db: DBSession,
    user_id: str,
    exam_id: int,
    result: Result,
    answers: dict[str, Any],
) -> ExamAttempt:
    """
    Finish the attempt in progress and store its result.
    An attempt whose creation was never persisted is created on the spot.
    """
    attempt = find_incomplete_attempt(db, user_id, exam_id)
    if attempt is None:
        attempt = create_attempt(db, user_id, exam_id, None)

    attempt.completed_at = result.date or datetime.now(timezone.utc)
    attempt.score = result.score
    attempt.answers = answers
    attempt.result = result.model_dump(mode="json")

    db.commit()
    db.refresh(attempt)
    logger.info(
        "Completed attempt %s: %s/%s (%s%%)",
        attempt.id, result.score, result.total, result.percentage,
    )
    return attempt


def get_completed_attempt(db: DBSession, user_id: str, exam_id: int) -> ExamAttempt | None:
    """Get the latest completed attempt for a user and exam."""
    return db.execute(
        select(ExamAttempt)
        .where(
            ExamAttempt.user_id == user_id,
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.completed_at.is_not(None),
        )
        .order_by(ExamAttempt.completed_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def is_exam_completed(db: DBSession, user_id: str, exam_id: int) -> bool:
    """Check if the user completed the exam."""
    return get_completed_attempt(db, user_id, exam_id) is not None


def get_exam_status(db: DBSession, user_id: str, exam_id: int) -> ExamStatus:
    """Availability of an exam for the user."""
    if is_exam_completed(db, user_id, exam_id):
        return ExamStatus.COMPLETED
    if find_incomplete_attempt(db, user_id, exam_id) is not None:
        return ExamStatus.IN_PROGRESS
    return ExamStatus.AVAILABLE


def list_completed_attempts(db: DBSession, user_id: str) -> list[ExamAttempt]:
    """Get completed attempts for a user, most recent first."""
    return list(
        db.execute(
            select(ExamAttempt)
            .where(
                ExamAttempt.user_id == user_id,
                ExamAttempt.completed_at.is_not(None),
            )
            .order_by(ExamAttempt.completed_at.desc())
        ).scalars().all()
    )


def list_in_progress_attempts(db: DBSession, user_id: str) -> list[ExamAttempt]:
    """Get attempts in progress for a user, most recent first."""
    return list(
        db.execute(
            select(ExamAttempt)
            .where(
                ExamAttempt.user_id == user_id,
                ExamAttempt.completed_at.is_(None),
            )
            .order_by(ExamAttempt.started_at.desc())
        ).scalars().all()
    )


class SqlAttemptGateway:
    """AttemptGateway opening one database session per call."""

    def __init__(self, session_factory: sessionmaker | Callable[[], DBSession]) -> None:
        self._session_factory = session_factory

    def find_incomplete_attempt(self, user_id: str, exam_id: int) -> AttemptRecord | None:
        db = self._session_factory()
        try:
            attempt = find_incomplete_attempt(db, user_id, exam_id)
            return to_record(attempt) if attempt else None
        finally:
            db.close()

    def create_attempt(
        self, user_id: str, exam_id: int, question_order: list[str] | None
    ) -> AttemptRecord:
        db = self._session_factory()
        try:
            return to_record(create_attempt(db, user_id, exam_id, question_order))
        finally:
            db.close()

    def save_progress(self, user_id: str, exam_id: int, snapshot: ProgressSnapshot) -> None:
        db = self._session_factory()
        try:
            save_progress(
                db,
                user_id,
                exam_id,
                answers=snapshot.answers,
                last_open_question=snapshot.current_index,
                time_left=snapshot.time_left,
                flags=snapshot.flags,
                timestamp=snapshot.timestamp,
            )
        finally:
            db.close()

    def complete_attempt(
        self,
        user_id: str,
        exam_id: int,
        result: Result,
        answers: dict[str, AnswerValue | None],
    ) -> None:
        db = self._session_factory()
        try:
            complete_attempt(db, user_id, exam_id, result, answers)
        finally:
            db.close()

    def find_completed_result(self, user_id: str, exam_id: int) -> Result | None:
        db = self._session_factory()
        try:
            attempt = get_completed_attempt(db, user_id, exam_id)
            if attempt is None or attempt.result is None:
                return None
            return Result.model_validate(attempt.result)
        finally:
            db.close()
