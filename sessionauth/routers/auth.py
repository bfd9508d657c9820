"""
Authentication API router.
Handles login, logout and the current-user endpoints.
"""

from fastapi import APIRouter, Depends, Request

from sessionauth.exceptions import UnauthorizedError
from sessionauth.middleware import auth
from sessionauth.middleware.model import get_model
from sessionauth.middleware.session import get_session
from sessionauth.schemas.auth import AccountInfo, AuthMeResponse, LoginRequest, LoginResponse
from sessionauth.services.user import AccountUser

router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
async def login(data: LoginRequest, request: Request):
    """
    Authenticate user with email and password.

    Stores the account id in the session; a new session also gets its
    cookie set on this response.
    """
    user = AccountUser(get_model(request).db)
    if not await user.authenticate(data.email, data.password):
        raise UnauthorizedError("Invalid email or password")

    await auth.authenticate_session(get_session(request), user, auth.get_auth(request).config)

    return LoginResponse(success=True, user=AccountInfo.model_validate(user.account))


@router.post("/auth/logout")
async def logout(request: Request):
    """
    Log out the current user.

    Succeeds for anonymous requests too.
    """
    current = auth.get_auth(request)
    await auth.logout(get_session(request), current.user, current.config)
    return {"success": True}


@router.get("/auth/me", response_model=AuthMeResponse)
async def get_me(user: AccountUser = Depends(auth.get_current_user)):
    """Returns { user: {...} } if authenticated, or { user: null }."""
    if not user.is_authenticated():
        return AuthMeResponse(user=None)
    return AuthMeResponse(user=AccountInfo.model_validate(user.account))


@router.get("/auth/account", response_model=AccountInfo)
async def get_account(user: AccountUser = Depends(auth.login_required())):
    """Account details; anonymous visitors are sent to the login page."""
    return AccountInfo.model_validate(user.account)
