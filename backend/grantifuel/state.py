"""Application state container shared by sessions, services and flows.

Bundles the API client, query cache, storage areas, notifier and navigator
into one object that is passed explicitly, so two ``AppState`` instances
never share anything (handy for tests and for multi-account tools).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from grantifuel.api_client import ApiClient
from grantifuel.config import Settings, get_settings
from grantifuel.models.core import User
from grantifuel.notifications import Notifier
from grantifuel.query_cache import QueryClient
from grantifuel.router import Navigator
from grantifuel.storage import FileStorage, MemoryStorage

logger = logging.getLogger(__name__)

USER_QUERY_KEY = ("/api/user",)


@dataclass
class AppState:
    settings: Settings
    api: ApiClient
    queries: QueryClient
    local_storage: Union[MemoryStorage, FileStorage]
    session_storage: MemoryStorage
    notifier: Notifier
    navigator: Navigator

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> Optional[User]:
        """The user held in the query cache, if any."""
        data = self.queries.get_query_data(USER_QUERY_KEY)
        if data is None:
            return None
        if isinstance(data, User):
            return data
        return User.model_validate(data)

    def toast(self, title: str, description: Optional[str] = None, variant: str = "default") -> str:
        return self.notifier.toast(title=title, description=description, variant=variant)

    def navigate(self, location: str, *, guarded: bool = True) -> str:
        return self.navigator.navigate(location, self.current_user, guarded=guarded)

    async def aclose(self) -> None:
        self.queries.cancel_queries()
        await self.api.aclose()


def create_app_state(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppState:
    """Build a fresh, isolated application state.

    Args:
        settings: Settings snapshot; defaults to the environment.
        transport: httpx transport override (e.g. an ASGI app in tests).
    """
    settings = settings or get_settings()

    api = ApiClient(settings.api_url, timeout=settings.request_timeout, transport=transport)
    queries = QueryClient(
        default_query_fn=api.get_query_fn(on_401="throw"),
        retries=settings.query_retries,
        retry_base_delay=settings.retry_base_delay,
        retry_max_delay=settings.retry_max_delay,
    )
    for prefix, (stale_time, gc_time) in settings.query_defaults.items():
        queries.set_query_defaults(prefix, stale_time, gc_time)

    if settings.local_storage_path:
        local_storage: Union[MemoryStorage, FileStorage] = FileStorage(settings.local_storage_path)
    else:
        local_storage = MemoryStorage()
    session_storage = MemoryStorage()

    logger.debug("Created app state for %s", settings.api_url)
    return AppState(
        settings=settings,
        api=api,
        queries=queries,
        local_storage=local_storage,
        session_storage=session_storage,
        notifier=Notifier(default_duration=settings.toast_duration),
        navigator=Navigator(session_storage),
    )
