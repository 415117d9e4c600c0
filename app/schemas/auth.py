from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List


class TokenResponse(BaseModel):
    """Schema for token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    """Username or email plus password"""
    username: str = Field(..., min_length=1, max_length=100, description="Username or email address")
    password: str = Field(..., min_length=1)


class UserSummary(BaseModel):
    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    is_superuser: bool

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(TokenResponse):
    """Schema for login response with user info"""
    user: UserSummary
    roles: List[str] = []
    permissions: List[str] = []


class MeResponse(BaseModel):
    """The principal as seen by the current token"""
    subject_id: str
    username: str
    email: str
    roles: List[str]
    permissions: List[str]
    is_superuser: bool
