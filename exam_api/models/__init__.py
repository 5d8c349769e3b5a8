"""Pydantic models."""
from exam_api.models.api import (
    AnswerRequest,
    AttemptSummary,
    ExamCreate,
    ExamDetail,
    ExamStatusResponse,
    ExamSummary,
    FlagResponse,
    NavigateRequest,
    QuestionCreate,
    QuestionView,
    ResultResponse,
    SessionResponse,
)
from exam_api.models.exams import (
    AnswerValue,
    AttemptRecord,
    Exam,
    ExamStatus,
    Option,
    Outcome,
    ProgressSnapshot,
    Question,
    QuestionResult,
    QuestionType,
    Result,
)

__all__ = [
    "AnswerRequest",
    "AnswerValue",
    "AttemptRecord",
    "AttemptSummary",
    "Exam",
    "ExamCreate",
    "ExamDetail",
    "ExamStatus",
    "ExamStatusResponse",
    "ExamSummary",
    "FlagResponse",
    "NavigateRequest",
    "Option",
    "Outcome",
    "ProgressSnapshot",
    "Question",
    "QuestionCreate",
    "QuestionResult",
    "QuestionType",
    "Result",
    "ResultResponse",
    "SessionResponse",
]
