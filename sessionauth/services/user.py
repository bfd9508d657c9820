"""
Account-backed user for the auth middleware.

``AccountUser`` implements the ``User`` protocol on top of the ``accounts``
table. It talks to the database through the session factory it is given,
normally the request's Model handle.
"""

import logging
from typing import Any, Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sessionauth.exceptions import NotFoundError
from sessionauth.models.user import Account

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


class AccountUser:
    """Application user loaded from an ``Account`` row."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.account: Optional[Account] = None
        self._authenticated = False

    def is_authenticated(self) -> bool:
        return self._authenticated

    def login(self) -> None:
        self._authenticated = self.account is not None

    def logout(self) -> None:
        self._authenticated = False
        self.account = None

    def unique_id(self) -> Any:
        return self.account.id if self.account else None

    async def get_by_id(self, user_id: Any) -> None:
        async with self.session_factory() as db:
            account = await db.get(Account, int(user_id))

        if account is None or not account.active:
            raise NotFoundError("Account", user_id)

        self.account = account

    async def authenticate(self, email: str, password: str) -> bool:
        """
        Load the account for ``email`` if ``password`` matches.

        Returns False for unknown emails, wrong passwords and disabled
        accounts. Does not log the user in.
        """
        async with self.session_factory() as db:
            result = await db.execute(select(Account).where(Account.email == email))
            account = result.scalar_one_or_none()

        if account is None or not verify_password(password, account.password_hash):
            return False

        if not account.active:
            logger.info("Login refused for disabled account %s", account.id)
            return False

        self.account = account
        return True
