"""Tests for loading the current user into the request."""

import logging

import pytest

from sessionauth.config import AuthConfig
from sessionauth.middleware import Auth, User


@pytest.mark.asyncio
async def test_no_session_id_is_anonymous(client_for, make_app, memory_session, directory):
    """A request without a user id in the session is not authenticated."""
    app = make_app(memory_session, directory)

    response = await client_for(app).get("/whoami")

    assert response.status_code == 200
    assert response.json()["authenticated"] is False
    assert response.json()["id"] is None


@pytest.mark.asyncio
async def test_known_session_id_logs_user_in(client_for, make_app, make_session, directory):
    """A user id that loads makes the request authenticated."""
    session = make_session({"AUTHUNIQUEID": 7})
    app = make_app(session, directory)

    response = await client_for(app).get("/whoami")

    assert response.json() == {"authenticated": True, "id": 7, "has_db": True}


@pytest.mark.asyncio
async def test_unknown_session_id_stays_anonymous(
    client_for, make_app, make_session, directory, caplog
):
    """A failing user lookup is logged and the request goes on anonymous."""
    session = make_session({"AUTHUNIQUEID": 99})
    app = make_app(session, directory)

    with caplog.at_level(logging.WARNING, logger="sessionauth.middleware.auth"):
        response = await client_for(app).get("/whoami")

    assert response.status_code == 200
    assert response.json()["authenticated"] is False
    assert "Login error for user id 99" in caplog.text


@pytest.mark.asyncio
async def test_half_loaded_user_is_discarded(client_for, make_app, make_session, make_user):
    """A user that fails midway through loading is replaced by a fresh one."""

    class HalfLoadedUser(make_user):
        async def get_by_id(self, user_id):
            self.id = user_id
            raise RuntimeError("database went away")

    session = make_session({"AUTHUNIQUEID": 7})
    app = make_app(session, {}, user_factory=lambda: HalfLoadedUser({}))

    response = await client_for(app).get("/whoami")

    assert response.json()["authenticated"] is False
    assert response.json()["id"] is None


@pytest.mark.asyncio
async def test_custom_session_key(client_for, make_app, make_session, directory):
    """The session key comes from the config handed to the middleware."""
    session = make_session({"AUTHUNIQUEID": 7, "uid": 8})
    app = make_app(session, directory, config=AuthConfig(session_key="uid"))

    response = await client_for(app).get("/whoami")

    assert response.json()["id"] == 8


@pytest.mark.asyncio
async def test_user_factory_runs_once_per_request(client_for, make_app, make_session, make_user):
    """Each request gets its own user object."""
    created = []

    def factory():
        user = make_user({7: "alice"})
        created.append(user)
        return user

    session = make_session({"AUTHUNIQUEID": 7})
    client = client_for(make_app(session, {}, user_factory=factory))

    await client.get("/whoami")
    await client.get("/whoami")

    assert len(created) == 2
    assert created[0] is not created[1]


@pytest.mark.asyncio
async def test_get_auth_without_middleware_reports_it(client_for):
    """Reading the auth state without the middleware is an explicit error."""
    from fastapi import FastAPI, Request

    from sessionauth.exceptions import install_exception_handlers
    from sessionauth.middleware import get_auth

    app = FastAPI()
    install_exception_handlers(app)

    @app.get("/whoami")
    async def whoami(request: Request):
        return {"authenticated": get_auth(request).is_authenticated()}

    response = await client_for(app).get("/whoami")

    assert response.status_code == 500
    assert response.json()["error"] == "AuthMiddleware is not installed"


def test_fake_user_satisfies_protocol(make_user):
    """Any object with the five operations is a User, no base class needed."""
    user = make_user({})

    assert isinstance(user, User)
    assert Auth(user).is_authenticated() is False
    assert Auth(user).config == AuthConfig()
