"""
Login session lifecycle: current user, login, register and logout.

The authenticated user lives in the query cache under ``/api/user`` (a 401
there means "not logged in", not an error) and is mirrored into local
storage as a fast-path check. Logout always ends with every client-side
trace of the session gone, even when the server call fails.
"""

import logging
import time
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from grantifuel.errors import FormValidationError, GrantiFuelError, user_message
from grantifuel.models.auth import LoginData, RegisterData
from grantifuel.models.core import User
from grantifuel.mutation import Mutation
from grantifuel.state import USER_QUERY_KEY, AppState
from grantifuel.storage import AUTH_REDIRECT_KEY, CACHED_USER_KEY

logger = logging.getLogger(__name__)

DEFAULT_LANDING = "/dashboard"
LOGOUT_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class AuthStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


def _validate(model, data: Union[Dict[str, Any], Any]):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise FormValidationError.from_pydantic(e, model) from e


class AuthSession:
    """Session state for one :class:`AppState`."""

    def __init__(self, state: AppState):
        self.state = state
        self.error: Optional[GrantiFuelError] = None
        self._loaded = False

        self.login_mutation: Mutation[LoginData, User] = Mutation(
            self._login,
            on_success=self._on_authenticated("Login successful", "Welcome back, {name}!"),
            on_error=self._on_failure("Login failed"),
            name="login",
        )
        self.register_mutation: Mutation[RegisterData, User] = Mutation(
            self._register,
            on_success=self._on_authenticated("Registration successful", "Welcome, {name}!"),
            on_error=self._on_failure("Registration failed"),
            name="register",
        )

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------

    @property
    def user(self) -> Optional[User]:
        return self.state.current_user

    @property
    def is_loading(self) -> bool:
        entry = self.state.queries.get_entry(USER_QUERY_KEY)
        if entry is not None and entry.is_fetching:
            return True
        return not self._loaded and entry is None

    @property
    def status(self) -> AuthStatus:
        if self.user is not None:
            return AuthStatus.AUTHENTICATED
        if (
            self.is_loading
            or self.login_mutation.is_pending
            or self.register_mutation.is_pending
        ):
            return AuthStatus.AUTHENTICATING
        return AuthStatus.UNAUTHENTICATED

    def cached_user(self) -> Optional[User]:
        """Local-storage fast path; may be stale."""
        data = self.state.local_storage.get_json(CACHED_USER_KEY)
        if not isinstance(data, dict):
            return None
        try:
            return User.model_validate(data)
        except ValidationError:
            logger.warning("Discarding malformed cached user")
            self.state.local_storage.remove_item(CACHED_USER_KEY)
            return None

    def _remember(self, user: Optional[User]) -> None:
        if user is None:
            self.state.local_storage.remove_item(CACHED_USER_KEY)
        else:
            self.state.local_storage.set_json(CACHED_USER_KEY, user.model_dump(by_alias=True, mode="json"))

    async def load_user(self) -> Optional[User]:
        """Fetch ``/api/user``; ``None`` when the session is anonymous."""
        try:
            data = await self.state.queries.fetch_query(
                USER_QUERY_KEY,
                self.state.api.get_query_fn(on_401="return_null"),
                stale_time=0,
            )
        except GrantiFuelError as e:
            self.error = e
            logger.error(f"Failed to load current user: {e}")
            self._loaded = True
            return None

        self._loaded = True
        self.error = None
        user = User.model_validate(data) if data else None
        self._remember(user)
        return user

    # ------------------------------------------------------------------
    # login / register
    # ------------------------------------------------------------------

    async def _login(self, credentials: LoginData) -> User:
        data = await self.state.api.request_json("POST", "/api/login", credentials.to_payload())
        return User.model_validate(data)

    async def _register(self, form: RegisterData) -> User:
        data = await self.state.api.request_json("POST", "/api/register", form.to_payload())
        return User.model_validate(data)

    def _on_authenticated(self, title: str, template: str):
        def handler(user: User, _variables: Any) -> None:
            self.error = None
            self._loaded = True
            self.state.queries.set_query_data(USER_QUERY_KEY, user.model_dump(by_alias=True, mode="json"))
            self._remember(user)
            self.state.toast(title, template.format(name=user.display_name))

            redirect = self.state.session_storage.get_item(AUTH_REDIRECT_KEY)
            if redirect:
                self.state.session_storage.remove_item(AUTH_REDIRECT_KEY)
                self.state.navigate(redirect)
            else:
                self.state.navigate(DEFAULT_LANDING)

        return handler

    def _on_failure(self, title: str):
        def handler(error: GrantiFuelError, _variables: Any) -> None:
            self.error = error
            self.state.toast(title, user_message(error, title), variant="destructive")

        return handler

    async def login(self, username: str, password: str) -> Optional[User]:
        """Log in; returns the user, or ``None`` after notifying the failure."""
        try:
            credentials = _validate(LoginData, {"username": username, "password": password})
        except FormValidationError as e:
            self._on_failure("Login failed")(e, None)
            return None
        return await self.login_mutation.mutate(credentials)

    async def register(self, data: Union[RegisterData, Dict[str, Any]]) -> Optional[User]:
        """Register; the confirmation is checked before any network call."""
        try:
            form = _validate(RegisterData, data)
        except FormValidationError as e:
            self._on_failure("Registration failed")(e, None)
            return None
        return await self.register_mutation.mutate(form)

    # ------------------------------------------------------------------
    # logout
    # ------------------------------------------------------------------

    def _clear_local_session(self) -> None:
        queries = self.state.queries
        queries.set_query_data(USER_QUERY_KEY, None)
        queries.cancel_queries()
        queries.clear()
        queries.remove_queries()
        self.state.local_storage.clear()
        self.state.session_storage.clear()
        self.state.api.clear_cookies()

    async def logout(self) -> str:
        """Log out everywhere we can. Never raises; returns the reload target."""
        # stop authenticated reads before the server round trip
        self.state.queries.set_query_data(USER_QUERY_KEY, None)
        ts = int(time.time() * 1000)
        failure: Optional[Exception] = None
        try:
            await self.state.api.request(
                "POST", "/api/logout", deduplicate=False, headers=LOGOUT_HEADERS
            )
        except GrantiFuelError as e:
            logger.warning(f"Server logout failed, clearing local session anyway: {e}")
            failure = e
        except Exception as e:
            logger.error(f"Unexpected error during server logout: {e}", exc_info=True)
            failure = e
        finally:
            self._clear_local_session()
            self.error = None

        if failure is not None:
            self.state.toast(
                "Logout failed",
                f"{user_message(failure, 'Could not reach the server')} - Still logging out locally.",
                variant="destructive",
            )
            return self.state.navigator.reload(f"/auth?status=loggedout_locally&ts={ts}")

        self.state.toast("Logged out", "You have been successfully logged out.")
        return self.state.navigator.reload(f"/auth?status=loggedout&ts={ts}")
