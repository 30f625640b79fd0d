"""
Dependency injection for FastAPI
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from salesdash.core.context import DashboardContext
from salesdash.core.security import sessions

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> DashboardContext:
    """Dashboard state created by the application lifespan"""
    context = getattr(request.app.state, "dashboard", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard is not running"
        )
    return context


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


def require_admin(token: str = Depends(get_bearer_token)) -> str:
    """Operator email of the current session"""
    email = sessions.get(token)
    if email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return email
