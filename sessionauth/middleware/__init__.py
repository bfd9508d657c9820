"""
Middleware package.
"""

from sessionauth.middleware.auth import (
    Auth,
    AuthMiddleware,
    User,
    authenticate_session,
    get_auth,
    get_current_user,
    login_required,
    logout,
    update_user,
)
from sessionauth.middleware.model import Model, ModelMiddleware, get_model
from sessionauth.middleware.session import SessionMiddleware, get_session

__all__ = [
    "Auth",
    "AuthMiddleware",
    "User",
    "authenticate_session",
    "get_auth",
    "get_current_user",
    "login_required",
    "logout",
    "update_user",
    "Model",
    "ModelMiddleware",
    "get_model",
    "SessionMiddleware",
    "get_session",
]
