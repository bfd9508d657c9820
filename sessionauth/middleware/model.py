"""
Model middleware.

Attaches the process-wide database handle to every request so handlers and
dependencies reach the database through the request instead of globals.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send

from sessionauth.database import get_session_factory
from sessionauth.middleware.state import get_request_state, set_request_state

STATE_KEY = "model"


@dataclass(frozen=True)
class Model:
    """Holder of the database handle for one request."""

    db: Any


class ModelMiddleware:
    """
    ASGI middleware that stores a ``Model`` in the request state.

    ``db_provider`` returns the database handle; by default the shared
    SQLAlchemy session factory.
    """

    def __init__(self, app: ASGIApp, db_provider: Optional[Callable[[], Any]] = None):
        self.app = app
        self.db_provider = db_provider or get_session_factory

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        set_request_state(scope, STATE_KEY, Model(self.db_provider()))
        await self.app(scope, receive, send)


def get_model(conn: HTTPConnection) -> Model:
    """Shortcut to get the request's Model."""
    return get_request_state(conn, STATE_KEY, Model, "ModelMiddleware")
