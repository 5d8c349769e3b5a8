"""Authentication dependencies for FastAPI."""
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from exam_api.config import AccessPolicy
from exam_api.services.auth_service import verify_token

# HTTP Bearer scheme for JWT
security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Identity taken from the bearer token."""

    id: str
    email: str | None = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> CurrentUser:
    """Get the current authenticated user.

    Raises:
        HTTPException: 401 if not authenticated or token is invalid.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    return CurrentUser(id=str(user_id), email=payload.get("email"))


def get_access_policy(request: Request) -> AccessPolicy:
    """Access policy configured on the application."""
    return request.app.state.access_policy


async def require_admin(
    user: Annotated[CurrentUser, Depends(get_current_user)],
    policy: Annotated[AccessPolicy, Depends(get_access_policy)],
) -> CurrentUser:
    """Get the current user, who must be on the admin allow-list."""
    if not policy.is_admin(user.email):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
