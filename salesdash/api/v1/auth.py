"""
Authentication API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, status

from salesdash.core.deps import get_bearer_token, require_admin
from salesdash.core.security import SESSION_VALUE, sessions, verify_credentials
from salesdash.schemas.auth import LoginRequest, SessionInfo, Token
from salesdash.schemas.common import DataResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=DataResponse[Token])
def login(request: LoginRequest):
    """Login and get an access token"""
    email = str(request.email)
    if not verify_credentials(email, request.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password"
        )

    return DataResponse(
        data=Token(access_token=sessions.create(email)),
        message="Login successful"
    )


@router.post("/logout", response_model=DataResponse[bool])
def logout(token: str = Depends(get_bearer_token)):
    """Forget the current token"""
    return DataResponse(data=sessions.revoke(token), message="Logged out")


@router.get("/me", response_model=DataResponse[SessionInfo])
def me(email: str = Depends(require_admin)):
    """Current session"""
    return DataResponse(data=SessionInfo(email=email, status=SESSION_VALUE))
