"""
Authentication schemas
"""
from pydantic import BaseModel, EmailStr


class Token(BaseModel):
    """Token response"""
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    """Login request"""
    email: EmailStr
    password: str


class SessionInfo(BaseModel):
    """Current session"""
    email: str
    status: str
