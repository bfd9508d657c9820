"""
Pydantic schemas for Authentication.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    """Request model for login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class AccountInfo(BaseModel):
    """Public account fields returned to the client."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str


class LoginResponse(BaseModel):
    """Response model for successful login."""

    success: bool = True
    user: AccountInfo


class AuthMeResponse(BaseModel):
    """Response for /auth/me: { user: {...} } or { user: null }."""

    user: Optional[AccountInfo] = None
