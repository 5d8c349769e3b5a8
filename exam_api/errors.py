"""Domain exceptions raised by the exam core."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from exam_api.models.exams import Result


class ExamError(Exception):
    """Base class for exam session errors."""


class ExamNotFoundError(ExamError):
    """The requested exam does not exist."""

    def __init__(self, exam_id: int) -> None:
        super().__init__(f"Exam {exam_id} not found")
        self.exam_id = exam_id


class AttemptCompletedError(ExamError):
    """The user already completed this exam; carries the stored result."""

    def __init__(self, exam_id: int, result: Result) -> None:
        super().__init__(f"Exam {exam_id} has already been completed")
        self.exam_id = exam_id
        self.result = result


class SessionInactiveError(ExamError):
    """A mutation was requested on a session that no longer accepts input."""
