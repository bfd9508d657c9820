"""
Main FastAPI application entry point.
"""

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sessionauth import __version__
from sessionauth.config import AuthConfig, Settings, get_settings
from sessionauth.database import close_db, get_session_factory, init_db
from sessionauth.exceptions import install_exception_handlers
from sessionauth.middleware import AuthMiddleware, ModelMiddleware, SessionMiddleware
from sessionauth.services.session import cleanup_expired_sessions
from sessionauth.services.user import AccountUser

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.
    Initializes database and drops expired sessions on startup, closes
    connections on shutdown.
    """
    logger.info("Starting Session Auth API v%s", __version__)
    await init_db()
    await cleanup_expired_sessions()

    yield

    await close_db()
    logger.info("Session Auth API shutdown complete")


def create_app(
    settings: Optional[Settings] = None,
    db_provider: Optional[Callable[[], Any]] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    ``db_provider`` returns the database handle (an async session factory);
    it defaults to the shared one built from settings.
    """
    settings = settings or get_settings()
    db_provider = db_provider or get_session_factory

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Starlette runs the last added middleware first:
    # ModelMiddleware -> SessionMiddleware -> AuthMiddleware -> routes
    app.add_middleware(
        AuthMiddleware,
        user_factory=lambda: AccountUser(db_provider()),
        config=AuthConfig.from_settings(settings),
    )
    app.add_middleware(
        SessionMiddleware,
        secret=settings.session_secret,
        cookie_name=settings.session_cookie_name,
        max_age=settings.session_max_age,
        secure=settings.secure_cookies,
    )
    app.add_middleware(ModelMiddleware, db_provider=db_provider)

    from sessionauth.routers import auth, health

    app.include_router(health.router, tags=["Health"])
    app.include_router(auth.router, tags=["Authentication"])

    install_exception_handlers(app)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc)},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run(
        "sessionauth.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
