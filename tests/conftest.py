"""
Shared test fixtures for the sessionauth test suite.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import sessionauth.models  # noqa: F401
from sessionauth.config import AuthConfig, Settings
from sessionauth.database import Base
from sessionauth.exceptions import install_exception_handlers
from sessionauth.middleware import (
    AuthMiddleware,
    ModelMiddleware,
    get_auth,
    get_model,
    login_required,
)
from sessionauth.models.user import Account
from sessionauth.services.user import hash_password


class FakeUser:
    """In-memory user; ids present in ``directory`` load successfully."""

    def __init__(self, directory: dict):
        self.directory = directory
        self.id = None
        self.name = None
        self.authenticated = False
        self.logout_calls = 0

    def is_authenticated(self) -> bool:
        return self.authenticated

    def login(self) -> None:
        self.authenticated = True

    def logout(self) -> None:
        self.authenticated = False
        self.logout_calls += 1

    def unique_id(self):
        return self.id

    async def get_by_id(self, user_id) -> None:
        if user_id not in self.directory:
            raise LookupError(f"no user {user_id}")
        self.id = user_id
        self.name = self.directory[user_id]


class MemorySession:
    """Session store backed by a dict; counts successful saves."""

    def __init__(self, data=None, save_error=None):
        self.data = dict(data or {})
        self.saves = 0
        self.save_error = save_error

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    async def save(self):
        if self.save_error is not None:
            raise self.save_error
        self.saves += 1


def build_app(session, directory, config=None, db_handle=None, user_factory=None):
    """Minimal app with the model and auth middleware over an in-memory session."""
    app = FastAPI()
    app.add_middleware(
        AuthMiddleware,
        user_factory=user_factory or (lambda: FakeUser(directory)),
        config=config,
        session_loader=lambda conn: session,
    )
    app.add_middleware(ModelMiddleware, db_provider=lambda: db_handle)
    install_exception_handlers(app)

    @app.get("/whoami")
    async def whoami(request: Request):
        auth = get_auth(request)
        return {
            "authenticated": auth.is_authenticated(),
            "id": auth.user.unique_id(),
            "has_db": get_model(request).db is db_handle,
        }

    @app.get("/secret")
    async def secret(user=Depends(login_required())):
        app.state.secret_hits = getattr(app.state, "secret_hits", 0) + 1
        return {"id": user.unique_id()}

    return app


@pytest.fixture
def directory():
    """Users known to FakeUser.get_by_id."""
    return {7: "alice", 8: "bob"}


@pytest.fixture
def memory_session():
    return MemorySession()


@pytest_asyncio.fixture
async def client_for():
    """Yield a factory that opens an AsyncClient for a given app."""
    clients = []

    def open_client(app):
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield open_client

    for client in clients:
        await client.aclose()


@pytest.fixture
def test_settings():
    """Settings configured for testing (no real DB connection needed)."""
    return Settings(
        db_host="localhost",
        db_port=5432,
        db_name="sessionauth_test",
        db_user="test",
        db_password="test",
        session_secret="test-session-secret",
        debug=True,
    )


@pytest.fixture
def mock_db_session():
    """Create a mock async database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.merge = AsyncMock()
    session.get = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_session_factory(mock_db_session):
    """Session factory whose sessions are all ``mock_db_session``."""

    @asynccontextmanager
    async def factory():
        yield mock_db_session

    return factory


@pytest_asyncio.fixture
async def db_session_factory(tmp_path):
    """Session factory over a throwaway SQLite database with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def account(db_session_factory):
    """An active account with password 's3cret-pass'."""
    async with db_session_factory() as db:
        account = Account(
            email="alice@example.com",
            password_hash=hash_password("s3cret-pass"),
            name="Alice",
        )
        db.add(account)
        await db.commit()
    return account


@pytest_asyncio.fixture
async def app_client(test_settings, db_session_factory):
    """Client for the full application running against SQLite."""
    from sessionauth.main import create_app

    app = create_app(test_settings, db_provider=lambda: db_session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_config():
    return AuthConfig()


@pytest.fixture
def make_app():
    return build_app


@pytest.fixture
def make_session():
    return MemorySession


@pytest.fixture
def make_user():
    return FakeUser
