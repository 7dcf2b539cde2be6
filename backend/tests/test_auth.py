"""
Integration Tests for the Login Session Lifecycle

Runs AuthSession against the in-memory API in fake_api.py.

Tests:
- register/login validation before any request
- success: cache, local storage, toast and redirect
- load_user: 401 means anonymous
- logout: full client-side cleanup whether or not the server call works

Usage:
    cd backend && pytest tests/test_auth.py -v
"""

import asyncio
import pytest
import sys
import os
from typing import Any, Dict

import httpx

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fake_api import FakeStore, make_settings, make_state, toast_titles
from grantifuel.auth import AuthSession, AuthStatus
from grantifuel.state import USER_QUERY_KEY, create_app_state
from grantifuel.storage import AUTH_REDIRECT_KEY, CACHED_USER_KEY


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_registration(**overrides: Any) -> Dict[str, Any]:
    """Factory function to create registration form data."""
    data = {
        "username": "miles",
        "name": "Miles Davis",
        "email": "miles@example.com",
        "password": "kindofblue",
        "confirm_password": "kindofblue",
        "role": "artist",
    }
    data.update(overrides)
    return data


def make_user_payload(**overrides: Any) -> Dict[str, Any]:
    """Factory function to create a user as /api/login returns it."""
    user = {"id": 1, "username": "miles", "name": "Miles Davis", "role": "artist"}
    user.update(overrides)
    return user


@pytest.fixture
def store():
    return FakeStore()


# ============================================================================
# Registration
# ============================================================================

class TestRegister:

    def test_success_lands_on_dashboard(self, store):
        async def scenario():
            state = make_state(store)
            session = AuthSession(state)
            user = await session.register(make_registration())
            return state, session, user

        state, session, user = asyncio.run(scenario())
        assert user.username == "miles"
        assert session.status == AuthStatus.AUTHENTICATED
        assert state.current_user.id == user.id
        assert state.local_storage.get_json(CACHED_USER_KEY)["username"] == "miles"
        assert state.navigator.location == "/dashboard"
        assert "Registration successful" in toast_titles(state)
        assert state.notifier.history[-1].description == "Welcome, Miles Davis!"

    def test_confirmation_is_not_sent(self, store):
        async def scenario():
            state = make_state(store)
            await AuthSession(state).register(make_registration())

        asyncio.run(scenario())
        body = store.last_body("POST", "/api/register")
        assert "confirmPassword" not in body
        assert body["role"] == "artist"

    def test_password_mismatch_never_reaches_server(self, store):
        async def scenario():
            state = make_state(store)
            result = await AuthSession(state).register(make_registration(confirm_password="other"))
            return state, result

        state, result = asyncio.run(scenario())
        assert result is None
        assert store.count("POST", "/api/register") == 0
        assert state.notifier.history[-1].title == "Registration failed"
        assert "Passwords do not match" in state.notifier.history[-1].description

    def test_short_password(self, store):
        async def scenario():
            state = make_state(store)
            await AuthSession(state).register(make_registration(password="abc", confirm_password="abc"))
            return state

        state = asyncio.run(scenario())
        assert "Password must be at least 6 characters" in state.notifier.history[-1].description

    def test_duplicate_username_shows_server_message(self, store):
        store.add_user("miles", "secret1")

        async def scenario():
            state = make_state(store)
            session = AuthSession(state)
            result = await session.register(make_registration())
            return state, session, result

        state, session, result = asyncio.run(scenario())
        assert result is None
        assert session.error.message == "Username already exists"
        assert state.notifier.history[-1].description == "Username already exists"
        assert state.current_user is None


# ============================================================================
# Login and current user
# ============================================================================

class TestLogin:

    def test_empty_credentials(self, store):
        async def scenario():
            state = make_state(store)
            result = await AuthSession(state).login("", "")
            return state, result

        state, result = asyncio.run(scenario())
        assert result is None
        assert store.count("POST", "/api/login") == 0
        assert "Username is required" in state.notifier.history[-1].description

    def test_wrong_password(self, store):
        store.add_user("miles", "kindofblue")

        async def scenario():
            state = make_state(store)
            result = await AuthSession(state).login("miles", "wrong")
            return state, result

        state, result = asyncio.run(scenario())
        assert result is None
        assert state.notifier.history[-1].title == "Login failed"
        assert state.notifier.history[-1].description == "Invalid username or password"

    def test_returns_to_remembered_location(self, store):
        store.add_user("miles", "kindofblue", name="Miles")

        async def scenario():
            state = make_state(store)
            bounced = state.navigate("/applications/5")
            await AuthSession(state).login("miles", "kindofblue")
            return state, bounced

        state, bounced = asyncio.run(scenario())
        assert bounced.startswith("/auth?redirect=")
        assert state.navigator.location == "/applications/5"
        assert state.session_storage.get_item(AUTH_REDIRECT_KEY) is None
        assert state.notifier.history[-1].description == "Welcome back, Miles!"

    def test_load_user_anonymous_is_not_an_error(self, store):
        async def scenario():
            state = make_state(store)
            session = AuthSession(state)
            user = await session.load_user()
            return session, user

        session, user = asyncio.run(scenario())
        assert user is None
        assert session.error is None
        assert session.status == AuthStatus.UNAUTHENTICATED

    def test_load_user_uses_session_cookie(self, store):
        store.add_user("miles", "kindofblue")

        async def scenario():
            state = make_state(store)
            await AuthSession(state).login("miles", "kindofblue")
            state.queries.clear()
            return await AuthSession(state).load_user()

        user = asyncio.run(scenario())
        assert user.username == "miles"


# ============================================================================
# Logout
# ============================================================================

async def _logged_in_state(store: FakeStore):
    store.add_user("miles", "kindofblue")
    state = make_state(store)
    session = AuthSession(state)
    await session.login("miles", "kindofblue")
    state.queries.set_query_data("/api/applications", [{"id": 1, "grantId": 2}])
    state.session_storage.set_json("ai-grant-recommendations", [{"id": "rec-1"}])
    return state, session


def _assert_local_session_gone(state):
    assert state.current_user is None
    assert len(state.queries) == 0
    assert len(state.local_storage) == 0
    assert len(state.session_storage) == 0
    assert len(state.api.cookies.jar) == 0


async def _logout_with(respond):
    """Log in, then log out against a transport answering with ``respond``."""
    state = create_app_state(make_settings(), transport=httpx.MockTransport(respond))
    session = AuthSession(state)
    await session.login("miles", "kindofblue")
    state.session_storage.set_json("ai-grant-recommendations", [{"id": "rec-1"}])
    target = await session.logout()
    return target, state


class TestLogout:

    def test_server_logout(self, store):
        async def scenario():
            state, session = await _logged_in_state(store)
            target = await session.logout()
            _assert_local_session_gone(state)
            anonymous = await AuthSession(state).load_user()
            return state, target, anonymous

        state, target, anonymous = asyncio.run(scenario())
        assert target.startswith("/auth?status=loggedout&ts=")
        assert store.sessions == {}
        assert state.notifier.history[-1].title == "Logged out"
        assert state.navigator.reload_count == 1
        assert state.navigator.history == [target]
        assert anonymous is None

    def test_failed_server_logout_still_clears_client(self, store):
        store.fail("/api/logout", 500)

        async def scenario():
            state, session = await _logged_in_state(store)
            target = await session.logout()
            return state, session, target

        state, session, target = asyncio.run(scenario())
        assert target.startswith("/auth?status=loggedout_locally&ts=")
        _assert_local_session_gone(state)
        # the server never heard about it
        assert len(store.sessions) == 1
        assert session.error is None
        toast = state.notifier.history[-1]
        assert toast.title == "Logout failed"
        assert toast.variant == "destructive"
        assert toast.description.endswith("- Still logging out locally.")

    def test_user_query_is_cleared_before_request(self, store):
        seen = []

        async def scenario():
            state, session = await _logged_in_state(store)
            store.on_request("/api/logout", lambda: seen.append(state.current_user))
            await session.logout()
            return state

        state = asyncio.run(scenario())
        assert seen == [None]
        assert state.queries.get_entry(USER_QUERY_KEY) is None
        assert store.count("POST", "/api/logout") == 1

    def test_redirect_loop_still_clears_client(self):
        def respond(request):
            if request.url.path == "/api/login":
                return httpx.Response(200, json=make_user_payload())
            return httpx.Response(302, headers={"Location": "/api/logout"})

        target, state = asyncio.run(_logout_with(respond))
        assert target.startswith("/auth?status=loggedout_locally&ts=")
        _assert_local_session_gone(state)
        assert state.notifier.history[-1].title == "Logout failed"

    def test_unexpected_error_still_clears_client(self):
        def respond(request):
            if request.url.path == "/api/login":
                return httpx.Response(200, json=make_user_payload())
            raise RuntimeError("transport blew up")

        target, state = asyncio.run(_logout_with(respond))
        assert target.startswith("/auth?status=loggedout_locally&ts=")
        _assert_local_session_gone(state)
        toast = state.notifier.history[-1]
        assert toast.title == "Logout failed"
        assert toast.description == "Could not reach the server - Still logging out locally."
