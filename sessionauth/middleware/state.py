"""
Typed access to per-request state.

Middlewares write their objects into ``scope["state"]`` (what Starlette
exposes as ``request.state``) exactly once; handlers read them back through
an explicit lookup that checks the type and names the missing middleware.
"""

from typing import TypeVar

from starlette.requests import HTTPConnection
from starlette.types import Scope

from sessionauth.exceptions import MiddlewareNotInstalledError

T = TypeVar("T")


def set_request_state(scope: Scope, key: str, value: object) -> None:
    """Store ``value`` in the request state; each key is write-once."""
    state = scope.setdefault("state", {})
    if state.get(key) is not None:
        raise RuntimeError(f"request state '{key}' is already set")
    state[key] = value


def get_request_state(conn: HTTPConnection, key: str, expected: type[T], middleware: str) -> T:
    """Fetch ``key`` from the request state or raise naming ``middleware``."""
    value = conn.scope.get("state", {}).get(key)
    if not isinstance(value, expected):
        raise MiddlewareNotInstalledError(middleware)
    return value
