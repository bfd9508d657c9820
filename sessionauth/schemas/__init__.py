"""
Pydantic schemas for request/response validation.
"""

from sessionauth.schemas.auth import AccountInfo, AuthMeResponse, LoginRequest, LoginResponse

__all__ = ["AccountInfo", "AuthMeResponse", "LoginRequest", "LoginResponse"]
