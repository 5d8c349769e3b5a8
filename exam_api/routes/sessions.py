"""Exam session endpoints: start/resume, answer, flag, navigate, finish, quit."""
from fastapi import APIRouter, Depends, HTTPException, status

from exam_api.dependencies.auth import CurrentUser, get_current_user
from exam_api.dependencies.sessions import get_session_registry
from exam_api.errors import AttemptCompletedError, ExamNotFoundError, SessionInactiveError
from exam_api.models.api import (
    AnswerRequest,
    FlagResponse,
    NavigateRequest,
    ResultResponse,
    SessionResponse,
)
from exam_api.routes.exams import question_view
from exam_api.services.scoring_service import is_passed
from exam_api.services.session_controller import ExamSession
from exam_api.services.session_registry import SessionRegistry

router = APIRouter(prefix="/api/exams/{exam_id}/session", tags=["sessions"])


def _completed_conflict(exc: AttemptCompletedError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "message": "Exam already completed",
            "result": exc.result.model_dump(mode="json") if exc.result else None,
        },
    )


def _live_session(registry: SessionRegistry, user_id: str, exam_id: int) -> ExamSession:
    """Running session for the user, resumed from storage when needed."""
    try:
        return registry.get_or_start(user_id, exam_id)
    except ExamNotFoundError:
        raise HTTPException(status_code=404, detail="Exam not found")
    except AttemptCompletedError as exc:
        raise _completed_conflict(exc)


def session_response(session: ExamSession) -> SessionResponse:
    """Serialize the public state of a session."""
    current = session.current_question
    exam = session.exam
    return SessionResponse(
        exam_id=session.exam_id,
        state=session.state.value,
        resumed=session.resumed,
        current_index=session.current_index,
        question_count=session.question_count,
        current_question=question_view(current) if current else None,
        question_ids=exam.question_ids() if exam else [],
        answers=session.answers,
        flags=session.flags,
        answered_count=session.answered_count,
        progress=session.progress,
        time_left=session.time_left,
        time_display=session.time_display,
        low_time_warning=session.low_time_warning,
        finish_reason=session.finish_reason.value if session.finish_reason else None,
        result=session.result,
    )


@router.post("", response_model=SessionResponse)
def start_session(
    exam_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    """Start a new attempt or resume the one in progress."""
    return session_response(_live_session(registry, current_user.id, exam_id))


@router.get("", response_model=SessionResponse)
def get_session(
    exam_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    """Current state of the live session."""
    session = registry.get(current_user.id, exam_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No live session for this exam")
    return session_response(session)


@router.post("/answers", response_model=SessionResponse)
def submit_answer(
    exam_id: int,
    payload: AnswerRequest,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    """Record an answer for a question."""
    session = _live_session(registry, current_user.id, exam_id)
    try:
        session.submit_answer(payload.question_id, payload.value)
    except SessionInactiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return session_response(session)


@router.post("/flags/{index}", response_model=FlagResponse)
def toggle_flag(
    exam_id: int,
    index: int,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> FlagResponse:
    """Flag or unflag a question for review."""
    session = _live_session(registry, current_user.id, exam_id)
    try:
        flagged = session.toggle_flag(index)
    except SessionInactiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return FlagResponse(index=index, flagged=flagged)


@router.post("/navigate", response_model=SessionResponse)
def navigate(
    exam_id: int,
    payload: NavigateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    """Move to another question; out-of-range indices leave it unchanged."""
    session = _live_session(registry, current_user.id, exam_id)
    try:
        session.go_to(payload.index)
    except SessionInactiveError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return session_response(session)


@router.post("/finish", response_model=ResultResponse)
def finish_session(
    exam_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> ResultResponse:
    """Submit the attempt and return its result. Repeated calls return the same result."""
    try:
        session = registry.get_or_start(current_user.id, exam_id)
    except ExamNotFoundError:
        raise HTTPException(status_code=404, detail="Exam not found")
    except AttemptCompletedError as exc:
        result = exc.result
    else:
        try:
            result = session.finish()
        except SessionInactiveError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
    return ResultResponse(exam_id=exam_id, passed=is_passed(result), result=result)


@router.post("/quit")
def quit_session(
    exam_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict[str, object]:
    """Save progress and leave; the attempt can be resumed later."""
    left = registry.quit(current_user.id, exam_id)
    return {"status": "saved" if left else "no_session", "examId": exam_id}
