"""FastAPI dependencies."""
from exam_api.dependencies.auth import (
    CurrentUser,
    get_access_policy,
    get_current_user,
    require_admin,
)
from exam_api.dependencies.sessions import get_db, get_session_registry

__all__ = [
    "CurrentUser",
    "get_access_policy",
    "get_current_user",
    "get_db",
    "get_session_registry",
    "require_admin",
]
