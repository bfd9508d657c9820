"""
Custom exception hierarchy for consistent error responses.

Usage:
    from sessionauth.exceptions import UnauthorizedError, MiddlewareNotInstalledError

    raise UnauthorizedError("Invalid email or password")
    raise MiddlewareNotInstalledError("ModelMiddleware")

These exceptions are caught by the handlers registered through
``install_exception_handlers`` and converted to JSON error responses with
the shape:
    {"error": "<message>", "detail": "<optional extra info>"}

``LoginRequiredError`` is the exception: its handler answers with a
redirect to the login page instead.
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse


class AppError(HTTPException):
    """Base application error with a default status code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(
            status_code=self.__class__.status_code,
            detail=message,
            headers=headers,
        )
        self.extra_detail = detail


class NotFoundError(AppError):
    """Resource not found (404)."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: int | str | None = None):
        if resource_id is not None:
            message = f"{resource} not found (id={resource_id})"
        else:
            message = f"{resource} not found"
        super().__init__(message)


class UnauthorizedError(AppError):
    """Unauthorized access (401)."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class LoginRequiredError(AppError):
    """
    Raised by the login guard for anonymous requests (401).

    Carries the login URL in the Location header, so even without the
    redirect handler installed the client learns where to go.
    """

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, location: str, redirect_status_code: int = 301):
        super().__init__("Authentication required", headers={"Location": location})
        self.location = location
        self.redirect_status_code = redirect_status_code


class ServiceError(AppError):
    """Internal service error (500)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


class MiddlewareNotInstalledError(ServiceError):
    """Request state was read before the middleware that provides it ran."""

    def __init__(self, middleware: str):
        super().__init__(f"{middleware} is not installed")
        self.middleware = middleware


def install_exception_handlers(app: FastAPI) -> None:
    """Register the handlers that turn AppErrors into responses."""

    @app.exception_handler(LoginRequiredError)
    async def login_required_handler(request: Request, exc: LoginRequiredError):
        return RedirectResponse(exc.location, status_code=exc.redirect_status_code)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "detail": exc.extra_detail},
            headers=exc.headers,
        )
