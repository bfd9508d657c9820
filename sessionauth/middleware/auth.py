"""
Authentication middleware and dependencies.

``AuthMiddleware`` loads the current user from the session into the request
state. Routes that need a logged-in user depend on ``login_required()``;
login and logout handlers use ``authenticate_session`` and ``logout`` to
keep the session in step with the user object.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable
from urllib.parse import urlencode

from fastapi import Request
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send

from sessionauth.config import AuthConfig
from sessionauth.exceptions import LoginRequiredError
from sessionauth.middleware.session import get_session
from sessionauth.middleware.state import get_request_state, set_request_state
from sessionauth.services.session import SessionStore

logger = logging.getLogger(__name__)

STATE_KEY = "auth"


@runtime_checkable
class User(Protocol):
    """What the auth layer needs from an application's user object."""

    def is_authenticated(self) -> bool:
        """Return whether this user is logged in or not."""
        ...

    def login(self) -> None:
        """Set any flags or extra data that should be available."""
        ...

    def logout(self) -> None:
        """Clear any sensitive data out of the user."""
        ...

    def unique_id(self) -> Any:
        """Return the unique identifier of this user object."""
        ...

    async def get_by_id(self, user_id: Any) -> None:
        """Populate this user object; raise if no such user can be loaded."""
        ...


UserFactory = Callable[[], User]
SessionLoader = Callable[[HTTPConnection], SessionStore]


@dataclass(frozen=True)
class Auth:
    """The request's user, plus the config it was loaded with."""

    user: User
    config: AuthConfig = field(default_factory=AuthConfig)

    def is_authenticated(self) -> bool:
        return self.user.is_authenticated()


class AuthMiddleware:
    """
    ASGI middleware that stores an ``Auth`` in the request state.

    Every request gets one: anonymous requests and requests whose session
    points at a user that fails to load get a fresh, unauthenticated user
    from ``user_factory``.
    """

    def __init__(
        self,
        app: ASGIApp,
        user_factory: UserFactory,
        config: Optional[AuthConfig] = None,
        session_loader: SessionLoader = get_session,
    ):
        self.app = app
        self.user_factory = user_factory
        self.config = config or AuthConfig()
        self.session_loader = session_loader

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        session = self.session_loader(HTTPConnection(scope))
        user = await self._load_user(session.get(self.config.session_key))
        set_request_state(scope, STATE_KEY, Auth(user, self.config))

        await self.app(scope, receive, send)

    async def _load_user(self, user_id: Any) -> User:
        user = self.user_factory()

        if user_id is None:
            logger.debug("No user id in session")
            return user

        try:
            await user.get_by_id(user_id)
        except Exception as e:
            logger.warning("Login error for user id %r: %s", user_id, e)
            # Start over so a half-populated user is not left behind
            return self.user_factory()

        user.login()
        return user


def get_auth(conn: HTTPConnection) -> Auth:
    """Shortcut to get the request's Auth."""
    return get_request_state(conn, STATE_KEY, Auth, "AuthMiddleware")


async def get_current_user(request: Request) -> User:
    """
    Get the current user, authenticated or not.

    Use this for routes that work both authenticated and anonymous.
    """
    return get_auth(request).user


def login_redirect_url(config: AuthConfig, path: str) -> str:
    """Build the login URL that sends the user back to ``path`` afterwards."""
    separator = "&" if "?" in config.redirect_url else "?"
    query = urlencode({config.redirect_param: path}, safe="/")
    return f"{config.redirect_url}{separator}{query}"


def login_required(config: Optional[AuthConfig] = None):
    """
    Factory for the login guard dependency.

    Anonymous requests are redirected to the login page with the attempted
    path in the query string; the route itself never runs. Without a
    ``config`` the one the middleware was built with is used.
    """

    async def check_login(request: Request) -> User:
        auth = get_auth(request)
        if not auth.is_authenticated():
            cfg = config or auth.config
            raise LoginRequiredError(
                login_redirect_url(cfg, request.url.path),
                redirect_status_code=cfg.redirect_status_code,
            )
        return auth.user

    return check_login


async def authenticate_session(
    session: SessionStore, user: User, config: Optional[AuthConfig] = None
) -> None:
    """
    Mark the user as logged in and remember it in the session.

    Call this after the user's credentials have been validated. Stores that
    can regenerate move to a fresh session id first.
    """
    regenerate = getattr(session, "regenerate", None)
    if regenerate is not None:
        await regenerate()
    user.login()
    await update_user(session, user, config)


async def logout(session: SessionStore, user: User, config: Optional[AuthConfig] = None) -> None:
    """Call the user's ``logout()`` and clear the user from the session."""
    config = config or AuthConfig()
    user.logout()
    session.delete(config.session_key)
    await session.save()


async def update_user(
    session: SessionStore, user: User, config: Optional[AuthConfig] = None
) -> None:
    """
    Store the user's unique id in the session.

    Useful when a change made to the user must persist across requests.
    Errors from the session store propagate unchanged.
    """
    config = config or AuthConfig()
    session.set(config.session_key, user.unique_id())
    await session.save()
