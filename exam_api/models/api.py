"""Request and response Pydantic models for the HTTP API."""
from datetime import datetime

from pydantic import BaseModel, Field

from exam_api.models.exams import (
    AnswerValue,
    ExamStatus,
    Option,
    QuestionType,
    Result,
)


class QuestionView(BaseModel):
    """Question as shown to a candidate (no correct answer)."""

    id: str
    text: str
    type: QuestionType
    points: float
    options: list[Option]


class ExamSummary(BaseModel):
    """Exam listing entry."""

    id: int
    title: str
    description: str | None = None
    duration: str | None = None
    duration_seconds: int
    subject_code: str | None = None
    subject_name: str | None = None
    question_count: int


class ExamDetail(ExamSummary):
    """Exam with its questions."""

    questions: list[QuestionView]


class ExamStatusResponse(BaseModel):
    exam_id: int
    status: ExamStatus


class SessionResponse(BaseModel):
    """Snapshot of a live exam session."""

    exam_id: int
    state: str
    resumed: bool
    current_index: int
    question_count: int
    current_question: QuestionView | None = None
    question_ids: list[str]
    answers: dict[str, AnswerValue | None]
    flags: list[int]
    answered_count: int
    progress: int
    time_left: int
    time_display: str
    low_time_warning: bool
    finish_reason: str | None = None
    result: Result | None = None


class AnswerRequest(BaseModel):
    """Answer submitted for one question."""

    question_id: str = Field(..., min_length=1)
    value: AnswerValue | None = None


class NavigateRequest(BaseModel):
    index: int


class FlagResponse(BaseModel):
    index: int
    flagged: bool


class ResultResponse(BaseModel):
    exam_id: int
    passed: bool
    result: Result


class AttemptSummary(BaseModel):
    """Attempt listing entry for the current user."""

    exam_id: int
    status: ExamStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    completed_on: str | None = None
    time_left: int | None = None
    result: Result | None = None


class QuestionCreate(BaseModel):
    """Question payload for exam creation."""

    text: str = Field(..., min_length=1)
    type: QuestionType
    points: float = Field(default=1, gt=0)
    options: list[Option] = Field(default_factory=list)
    correct_answer: AnswerValue


class ExamCreate(BaseModel):
    """Exam creation request (admin only)."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    duration: str | None = Field(None, max_length=32)
    status: str = Field("published", pattern="^(draft|published)$")
    subject_code: str | None = None
    subject_name: str | None = None
    questions: list[QuestionCreate] = Field(..., min_length=1)
