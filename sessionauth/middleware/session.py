"""
Database session middleware.

Loads the client's express-session row (or starts a fresh one) for every
request and exposes it through ``get_session``. Requires ``ModelMiddleware``
to run first since the store is reached through the request's Model.
"""

import logging
from typing import Optional

from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from sessionauth.middleware.model import get_model
from sessionauth.middleware.state import get_request_state, set_request_state
from sessionauth.services.session import (
    DatabaseSession,
    SessionService,
    SessionStore,
    parse_session_cookie,
    sign_session_id,
)

logger = logging.getLogger(__name__)

STATE_KEY = "session"


class SessionMiddleware:
    """
    ASGI middleware that attaches a ``DatabaseSession`` to the request.

    A session created during the request only reaches the client, as a
    Set-Cookie header, if something saved it before the response started.
    """

    def __init__(
        self,
        app: ASGIApp,
        secret: str,
        cookie_name: str = "connect.sid",
        max_age: int = 86400,
        secure: bool = False,
        same_site: str = "lax",
    ):
        self.app = app
        self.secret = secret
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self.same_site = same_site

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        session_factory = get_model(conn).db

        async with session_factory() as db:
            service = SessionService(db, max_age=self.max_age)
            session = await self._load(conn, service)
            set_request_state(scope, STATE_KEY, session)

            async def send_wrapper(message: Message) -> None:
                if message["type"] == "http.response.start" and session.is_new and session.saved:
                    headers = MutableHeaders(scope=message)
                    headers.append("Set-Cookie", self._cookie_header(session.sid))
                await send(message)

            await self.app(scope, receive, send_wrapper)

    async def _load(self, conn: HTTPConnection, service: SessionService) -> DatabaseSession:
        session: Optional[DatabaseSession] = None
        cookie = conn.cookies.get(self.cookie_name)
        if cookie:
            session_id = parse_session_cookie(cookie, self.secret)
            if session_id:
                session = await service.load(session_id)
            if session is None:
                logger.debug("Session cookie did not match a live session")
        return session or service.new()

    def _cookie_header(self, session_id: str) -> str:
        header = (
            f"{self.cookie_name}={sign_session_id(session_id, self.secret)}; "
            f"Path=/; Max-Age={self.max_age}; HttpOnly; SameSite={self.same_site}"
        )
        if self.secure:
            header += "; Secure"
        return header


def get_session(conn: HTTPConnection) -> SessionStore:
    """Shortcut to get the request's session."""
    return get_request_state(conn, STATE_KEY, DatabaseSession, "SessionMiddleware")
