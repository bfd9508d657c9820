"""
Session stores for the auth layer.

The auth middleware talks to any object with ``get``/``set``/``delete`` and
an awaitable ``save``. Two stores are provided:

- ``DatabaseSession``: rows in the express-session compatible ``sessions``
  table, managed by ``SessionService``.
- ``CookieSession``: Starlette's signed-cookie ``request.session``.
"""

import base64
import hashlib
import hmac
import logging
import secrets
import time
from typing import Any, Optional, Protocol, runtime_checkable
from urllib.parse import quote, unquote

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from sessionauth.database import get_db_context
from sessionauth.exceptions import MiddlewareNotInstalledError
from sessionauth.models.session import Session

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """Key/value session collaborator used by the auth helpers."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    async def save(self) -> None: ...


class DatabaseSession:
    """
    One session backed by a row in the ``sessions`` table.

    Changes stay in memory until ``save()`` writes them through the
    ``SessionService`` that created this object.
    """

    def __init__(
        self,
        service: "SessionService",
        sid: str,
        data: Optional[dict[str, Any]] = None,
        is_new: bool = False,
    ):
        self.service = service
        self.sid = sid
        self.is_new = is_new
        self.saved = False
        self._data: dict[str, Any] = dict(data or {})

    @property
    def data(self) -> dict[str, Any]:
        return dict(self._data)

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def save(self) -> None:
        """
        Write the session through its service.

        A new session holding nothing but its cookie settings is not written,
        so anonymous requests never create rows.
        """
        if self.is_new and not self._data.keys() - {"cookie"}:
            return
        await self.service.save(self)
        self.saved = True

    async def regenerate(self) -> None:
        """Move the data of a stored session to a fresh id and drop the old row."""
        if self.is_new:
            return
        await self.service.delete(self.sid)
        self.sid = self.service._generate_session_id()
        self.is_new = True

    def __repr__(self) -> str:
        return f"<DatabaseSession {self.sid[:8]}... (new: {self.is_new})>"


class SessionService:
    """
    Manages sessions compatible with express-session.

    Cookie format: s%3A{session_id}.{signature}
    We store just the session_id in the database.
    """

    def __init__(self, db: AsyncSession, max_age: int = 86400):
        self.db = db
        self.max_age = max_age

    def _generate_session_id(self) -> str:
        """Generate a secure random session ID."""
        return secrets.token_urlsafe(32)

    def _get_expiry_timestamp(self) -> int:
        """Get expiry timestamp in milliseconds (express-session format)."""
        return int((time.time() + self.max_age) * 1000)

    def new(self) -> DatabaseSession:
        """Start a session that is only written on its first save."""
        data = {
            "cookie": {
                "originalMaxAge": self.max_age * 1000,
                "httpOnly": True,
                "path": "/",
                "sameSite": "lax",
            },
        }
        return DatabaseSession(self, self._generate_session_id(), data, is_new=True)

    async def load(self, session_id: str) -> Optional[DatabaseSession]:
        """
        Load a session by ID.

        Returns None if session doesn't exist or is expired.
        """
        result = await self.db.execute(select(Session).where(Session.sid == session_id))
        row = result.scalar_one_or_none()

        if row is None:
            return None

        if row.is_expired:
            # Clean up expired session
            await self.delete(session_id)
            return None

        return DatabaseSession(self, row.sid, row.session_data)

    async def save(self, session: DatabaseSession) -> None:
        """Insert or update the session row and refresh its expiry."""
        row = Session(sid=session.sid, expired=self._get_expiry_timestamp())
        row.session_data = session.data
        await self.db.merge(row)
        await self.db.commit()

    async def delete(self, session_id: str) -> bool:
        """Delete a session."""
        result = await self.db.execute(delete(Session).where(Session.sid == session_id))
        await self.db.commit()
        return result.rowcount > 0

    async def cleanup_expired(self) -> int:
        """
        Delete all expired sessions.

        Returns the number of sessions deleted.
        """
        current_time_ms = int(time.time() * 1000)
        result = await self.db.execute(delete(Session).where(Session.expired < current_time_ms))
        await self.db.commit()
        logger.info("Removed %d expired sessions", result.rowcount)
        return result.rowcount


async def cleanup_expired_sessions() -> int:
    """Delete expired sessions outside of a request, e.g. on startup."""
    async with get_db_context() as db:
        return await SessionService(db).cleanup_expired()


class CookieSession:
    """
    Adapter over Starlette's ``request.session``.

    Starlette's ``SessionMiddleware`` writes the cookie when the response
    starts, so ``save()`` has nothing to do.
    """

    def __init__(self, conn: HTTPConnection):
        if "session" not in conn.scope:
            raise MiddlewareNotInstalledError("starlette SessionMiddleware")
        self._data = conn.session

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def save(self) -> None:
        return None


def _signature(session_id: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), session_id.encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode().rstrip("=")


def sign_session_id(session_id: str, secret: str) -> str:
    """Build the URL-encoded ``s:{id}.{signature}`` cookie value."""
    return quote(f"s:{session_id}.{_signature(session_id, secret)}", safe="")


def parse_session_cookie(cookie_value: str, secret: Optional[str] = None) -> Optional[str]:
    """
    Parse express-session cookie to extract session ID.

    Express-session cookies are formatted as: s%3A{session_id}.{signature}
    After URL decoding: s:{session_id}.{signature}

    When ``secret`` is given the signature must match, otherwise None is
    returned.
    """
    if not cookie_value:
        return None

    decoded = unquote(cookie_value)

    # Check for signed cookie format (s:{id}.{sig})
    if decoded.startswith("s:"):
        session_id, _, signature = decoded[2:].partition(".")
        expected = _signature(session_id, secret) if secret is not None else None
        # Signatures come from the client and may hold any character
        if expected is not None and not hmac.compare_digest(signature.encode(), expected.encode()):
            logger.warning("Session cookie signature mismatch for sid=%s", session_id[:8])
            return None
        return session_id or None

    # If not in signed format, accept it as a plain session ID when unsigned
    # cookies are allowed
    if secret is not None:
        return None
    return decoded
