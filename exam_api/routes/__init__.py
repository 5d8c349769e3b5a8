"""API route modules."""
from exam_api.routes import admin, exams, sessions

__all__ = ["admin", "exams", "sessions"]
