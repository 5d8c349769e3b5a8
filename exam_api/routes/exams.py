"""Exam browsing and result endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session as DbSession

from exam_api.dependencies.auth import CurrentUser, get_current_user
from exam_api.dependencies.sessions import get_db, get_session_registry
from exam_api.models.api import (
    AttemptSummary,
    ExamDetail,
    ExamStatusResponse,
    ExamSummary,
    QuestionView,
    ResultResponse,
)
from exam_api.models.exams import Exam, ExamStatus, Question, Result
from exam_api.services import attempt_service, exam_service
from exam_api.services.scoring_service import is_passed
from exam_api.services.session_registry import SessionRegistry
from exam_api.utils.time_utils import format_date, parse_duration

router = APIRouter(prefix="/api", tags=["exams"])


def question_view(question: Question) -> QuestionView:
    return QuestionView(
        id=question.id,
        text=question.text,
        type=question.type,
        points=question.points,
        options=question.options,
    )


def _summary_fields(exam: Exam) -> dict[str, object]:
    return {
        "id": exam.id,
        "title": exam.title,
        "description": exam.description,
        "duration": exam.duration,
        "duration_seconds": parse_duration(exam.duration),
        "subject_code": exam.subject_code,
        "subject_name": exam.subject_name,
        "question_count": len(exam.questions),
    }


@router.get("/exams", response_model=list[ExamSummary])
def list_exams(
    subject: str | None = Query(None, description="Subject code, or 'all'"),
    q: str | None = Query(None, description="Search in title, subject and description"),
    current_user: CurrentUser = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> list[ExamSummary]:
    """List published exams."""
    exams = exam_service.list_exams(db, subject_code=subject, query=q)
    return [ExamSummary(**_summary_fields(exam)) for exam in exams]


@router.get("/exams/{exam_id}", response_model=ExamDetail)
def get_exam(
    exam_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> ExamDetail:
    """Get an exam with its questions (without answers)."""
    exam = exam_service.get_exam_by_id(db, exam_id)
    if exam is None:
        raise HTTPException(status_code=404, detail="Exam not found")
    return ExamDetail(
        **_summary_fields(exam),
        questions=[question_view(q) for q in exam.questions],
    )


@router.get("/exams/{exam_id}/status", response_model=ExamStatusResponse)
def get_exam_status(
    exam_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> ExamStatusResponse:
    """Whether the exam is available, in progress or completed for the user."""
    status = attempt_service.get_exam_status(db, current_user.id, exam_id)
    return ExamStatusResponse(exam_id=exam_id, status=status)


@router.get("/exams/{exam_id}/result", response_model=ResultResponse)
def get_exam_result(
    exam_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
    db: DbSession = Depends(get_db),
) -> ResultResponse:
    """Result of the user's completed attempt."""
    result: Result | None = None
    session = registry.get(current_user.id, exam_id)
    if session is not None and session.result is not None:
        result = session.result
    else:
        attempt = attempt_service.get_completed_attempt(db, current_user.id, exam_id)
        if attempt is not None and attempt.result:
            result = Result.model_validate(attempt.result)

    if result is None:
        raise HTTPException(status_code=404, detail="No result for this exam")
    return ResultResponse(exam_id=exam_id, passed=is_passed(result), result=result)


@router.get("/me/attempts", response_model=list[AttemptSummary])
def list_my_attempts(
    current_user: CurrentUser = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> list[AttemptSummary]:
    """Attempts in progress followed by completed attempts, most recent first."""
    summaries = []
    for attempt in attempt_service.list_in_progress_attempts(db, current_user.id):
        summaries.append(AttemptSummary(
            exam_id=attempt.exam_id,
            status=ExamStatus.IN_PROGRESS,
            started_at=attempt.started_at,
            time_left=attempt.time_left,
        ))
    for attempt in attempt_service.list_completed_attempts(db, current_user.id):
        summaries.append(AttemptSummary(
            exam_id=attempt.exam_id,
            status=ExamStatus.COMPLETED,
            started_at=attempt.started_at,
            completed_at=attempt.completed_at,
            completed_on=format_date(attempt.completed_at),
            result=Result.model_validate(attempt.result) if attempt.result else None,
        ))
    return summaries
