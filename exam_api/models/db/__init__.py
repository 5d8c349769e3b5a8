"""Database models."""
from exam_api.models.db.attempt import ExamAttempt
from exam_api.models.db.exam import ExamPublication, ExamRow, QuestionRow, Subject

__all__ = [
    "ExamAttempt",
    "ExamPublication",
    "ExamRow",
    "QuestionRow",
    "Subject",
]
