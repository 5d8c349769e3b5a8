"""Exam, attempt and result Pydantic models."""
from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field, field_validator

# Shape depends on the question type: an option id (single), a list of
# option ids (multiple), "true"/"false" (true-false) or free text (text).
AnswerValue = Union[str, list[str]]


class QuestionType(str, Enum):
    """Supported question variants."""

    SINGLE = "single"
    MULTIPLE = "multiple"
    TRUE_FALSE = "true-false"
    TEXT = "text"


class Outcome(str, Enum):
    """Scoring outcome of a single question."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNANSWERED = "unanswered"


class ExamStatus(str, Enum):
    """Availability of an exam for a given user."""

    AVAILABLE = "available"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Option(BaseModel):
    """Selectable option of a choice question."""

    id: str = Field(..., min_length=1)
    text: str = ""


class Question(BaseModel):
    """A question with its correct answer."""

    id: str = Field(..., min_length=1)
    text: str = ""
    type: QuestionType
    points: float = Field(default=1, gt=0)
    options: list[Option] = Field(default_factory=list)
    correct_answer: AnswerValue | None = None


class Exam(BaseModel):
    """An exam with its ordered questions."""

    id: int
    title: str
    description: str | None = None
    duration: str | None = None
    subject_code: str | None = None
    subject_name: str | None = None
    questions: list[Question] = Field(default_factory=list)

    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]


class QuestionResult(BaseModel):
    """Per-question scoring detail."""

    question_id: str
    outcome: Outcome
    points: float
    earned: float


class Result(BaseModel):
    """Derived scoring outcome of an attempt."""

    score: float
    total: float
    correct_count: int
    incorrect_count: int
    unanswered_count: int
    total_questions: int
    percentage: int
    date: datetime | None = None
    details: list[QuestionResult] = Field(default_factory=list)


class ProgressSnapshot(BaseModel):
    """Full session state written on every save."""

    answers: dict[str, AnswerValue | None] = Field(default_factory=dict)
    current_index: int = 0
    time_left: int | None = None
    flags: list[int] = Field(default_factory=list)
    timestamp: datetime

    @field_validator("flags")
    @classmethod
    def sort_flags(cls, v: list[int]) -> list[int]:
        return sorted(set(v))


class AttemptRecord(BaseModel):
    """Stored attempt as seen by the session controller."""

    id: int
    user_id: str
    exam_id: int
    question_order: list[str] | None = None
    answers: dict[str, AnswerValue | None] = Field(default_factory=dict)
    flags: list[int] = Field(default_factory=list)
    last_open_question: int = 0
    time_left: int | None = None
    timestamp: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: Result | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
