"""Database and session registry dependencies."""
from collections.abc import Iterator

from fastapi import Request
from sqlalchemy.orm import Session as DbSession

from exam_api.services.session_registry import SessionRegistry


def get_db(request: Request) -> Iterator[DbSession]:
    """Dependency to get database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_session_registry(request: Request) -> SessionRegistry:
    """Registry of live exam sessions attached to the application."""
    return request.app.state.sessions
