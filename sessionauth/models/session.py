"""
Session model for express-session compatibility.
Maps to the sessions table shared with Node.js express-session stores.
"""

import json
import time
from typing import Any

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sessionauth.database import Base


class Session(Base):
    """
    Session storage compatible with the express-session PostgreSQL store.

    ``sess`` is a JSON object; the auth layer keeps its user id in it under
    the configured session key.
    """

    __tablename__ = "sessions"

    sid: Mapped[str] = mapped_column(String(255), primary_key=True)
    sess: Mapped[str] = mapped_column(Text, nullable=False)  # JSON blob
    expired: Mapped[int] = mapped_column(BigInteger, nullable=False)  # Unix timestamp ms

    @property
    def session_data(self) -> dict[str, Any]:
        """Parse session data from JSON."""
        try:
            data = json.loads(self.sess)
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    @session_data.setter
    def session_data(self, data: dict[str, Any]) -> None:
        """Set session data as JSON string."""
        self.sess = json.dumps(data)

    @property
    def is_expired(self) -> bool:
        """Check if session has expired."""
        return self.expired < int(time.time() * 1000)

    def __repr__(self) -> str:
        return f"<Session {self.sid[:8]}... (expired: {self.is_expired})>"
