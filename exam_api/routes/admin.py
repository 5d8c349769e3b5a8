"""Admin endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session as DbSession

from exam_api.dependencies.auth import CurrentUser, require_admin
from exam_api.dependencies.sessions import get_db
from exam_api.models.api import ExamCreate, ExamDetail
from exam_api.routes.exams import get_exam
from exam_api.services import exam_service

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/exams", response_model=ExamDetail, status_code=status.HTTP_201_CREATED)
def create_exam(
    payload: ExamCreate,
    admin: CurrentUser = Depends(require_admin),
    db: DbSession = Depends(get_db),
) -> ExamDetail:
    """Create an exam with its questions."""
    exam = exam_service.create_exam(
        db,
        title=payload.title,
        questions=[q.model_dump(mode="json") for q in payload.questions],
        duration=payload.duration,
        description=payload.description,
        status=payload.status,
        subject_code=payload.subject_code,
        subject_name=payload.subject_name,
    )
    return get_exam(exam.id, current_user=admin, db=db)
