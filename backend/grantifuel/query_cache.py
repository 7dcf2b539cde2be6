"""Shared client-side query cache keyed by resource path.

Holds the last known server state for each query key together with its
freshness, so that repeated reads within the stale window never hit the
network and concurrent reads of the same key share one fetch. Mutations
keep it honest by invalidating or overwriting the keys they affect.

Keys are tuples whose first element is the resource path, e.g.
``("/api/applications",)`` or ``("/api/applications", 12)``. Invalidation
and removal match on leading elements, so ``("/api/applications",)`` also
covers every individual application.

Usage::

    from grantifuel.query_cache import QueryClient

    cache = QueryClient(default_query_fn=api.get_query_fn())
    grants = await cache.fetch_query(("/api/grants",))
    cache.invalidate_queries(("/api/grants",))
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from grantifuel.api_client import QueryFn
from grantifuel.config import DEFAULT_QUERY_TIMES
from grantifuel.errors import ApiError

logger = logging.getLogger(__name__)

Key = Tuple[Any, ...]
KeyLike = Union[str, Sequence[Any]]


def normalize_key(key: KeyLike) -> Key:
    """Accept ``"/api/user"`` as shorthand for ``("/api/user",)``."""
    if isinstance(key, str):
        return (key,)
    return tuple(key)


def _matches(key: Key, prefix: Optional[Key]) -> bool:
    if prefix is None:
        return True
    return key[: len(prefix)] == prefix


@dataclass
class QueryEntry:
    """Cached state of one query key."""

    key: Key
    data: Any = None
    error: Optional[BaseException] = None
    status: str = "pending"  # pending | success | error
    updated_at: Optional[float] = None
    last_access: float = 0.0
    invalidated: bool = False
    stale_time: Optional[float] = None
    query_fn: Optional[QueryFn] = None
    task: Optional["asyncio.Task[Any]"] = None

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()


class QueryClient:
    """In-memory query cache with stale/gc windows and retry on fetch."""

    def __init__(
        self,
        default_query_fn: Optional[QueryFn] = None,
        *,
        retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_query_fn = default_query_fn
        self.retries = retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self._clock = clock
        self._entries: Dict[Key, QueryEntry] = {}
        self._defaults: List[Tuple[Key, float, float]] = []

    # ------------------------------------------------------------------
    # defaults
    # ------------------------------------------------------------------

    def set_query_defaults(self, prefix: KeyLike, stale_time: float, gc_time: float) -> None:
        """Register stale/gc windows (seconds) for keys under ``prefix``."""
        prefix_key = normalize_key(prefix)
        self._defaults = [d for d in self._defaults if d[0] != prefix_key]
        self._defaults.append((prefix_key, stale_time, gc_time))
        # longest prefix first so specific keys win
        self._defaults.sort(key=lambda d: len(d[0]), reverse=True)

    def _times_for(self, key: Key) -> Tuple[float, float]:
        for prefix, stale_time, gc_time in self._defaults:
            if _matches(key, prefix):
                return stale_time, gc_time
        return DEFAULT_QUERY_TIMES

    # ------------------------------------------------------------------
    # retry policy
    # ------------------------------------------------------------------

    @staticmethod
    def should_retry(failure_count: int, error: BaseException, max_retries: int) -> bool:
        """Client errors are final; anything else retries up to ``max_retries``."""
        if isinstance(error, ApiError) and error.is_client_error:
            return False
        return failure_count <= max_retries

    def retry_delay(self, attempt: int) -> float:
        return min(self.retry_base_delay * (2**attempt), self.retry_max_delay)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_entry(self, key: KeyLike) -> Optional[QueryEntry]:
        return self._entries.get(normalize_key(key))

    def get_query_data(self, key: KeyLike) -> Any:
        entry = self._entries.get(normalize_key(key))
        if entry is None:
            return None
        entry.last_access = self._clock()
        return entry.data

    def is_stale(self, key: KeyLike, stale_time: Optional[float] = None) -> bool:
        entry = self._entries.get(normalize_key(key))
        if entry is None or entry.status != "success" or entry.updated_at is None:
            return True
        if entry.invalidated:
            return True
        window = stale_time if stale_time is not None else entry.stale_time
        if window is None:
            window = self._times_for(entry.key)[0]
        return self._clock() - entry.updated_at >= window

    async def fetch_query(
        self,
        key: KeyLike,
        query_fn: Optional[QueryFn] = None,
        *,
        stale_time: Optional[float] = None,
        retry: Optional[Union[int, bool]] = None,
    ) -> Any:
        """Return cached data if fresh, otherwise fetch (once) and cache it.

        Args:
            key: Query key.
            query_fn: Fetcher taking the key; defaults to the client default.
            stale_time: Freshness window in seconds for this key.
            retry: Retry count override; ``False`` disables retries.

        Raises:
            Whatever the fetcher raised on the last attempt.
        """
        norm = normalize_key(key)
        entry = self._entries.get(norm)
        if entry is None:
            entry = QueryEntry(key=norm)
            self._entries[norm] = entry
        if stale_time is not None:
            entry.stale_time = stale_time
        fn = query_fn or entry.query_fn or self.default_query_fn
        if fn is None:
            raise ValueError(f"No query function registered for {norm}")
        entry.query_fn = fn
        entry.last_access = self._clock()

        if not self.is_stale(norm):
            return entry.data

        if entry.is_fetching:
            logger.debug("Joining in-flight fetch for %s", norm)
            return await asyncio.shield(entry.task)

        if retry is False:
            max_retries = 0
        elif retry is None or retry is True:
            max_retries = self.retries
        else:
            max_retries = int(retry)

        entry.task = asyncio.ensure_future(self._run(entry, fn, max_retries))
        return await asyncio.shield(entry.task)

    async def _run(self, entry: QueryEntry, fn: QueryFn, max_retries: int) -> Any:
        failure_count = 0
        while True:
            try:
                data = await fn(entry.key)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                failure_count += 1
                if not self.should_retry(failure_count, e, max_retries):
                    if self._entries.get(entry.key) is entry:
                        entry.error = e
                        entry.status = "error"
                    logger.error(f"Query error for {entry.key}: {e}")
                    raise
                delay = self.retry_delay(failure_count - 1)
                logger.warning(
                    f"Query {entry.key} failed, retrying in {delay:.1f}s "
                    f"(attempt {failure_count}/{max_retries}): {e}"
                )
                await asyncio.sleep(delay)
                continue

            # an entry dropped by clear()/remove_queries() while we were
            # fetching must not be resurrected
            if self._entries.get(entry.key) is entry:
                entry.data = data
                entry.error = None
                entry.status = "success"
                entry.invalidated = False
                entry.updated_at = self._clock()
            return data

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def set_query_data(self, key: KeyLike, value: Any) -> Any:
        """Overwrite cached data; ``value`` may be an updater of the old data."""
        norm = normalize_key(key)
        entry = self._entries.get(norm)
        if entry is None:
            entry = QueryEntry(key=norm)
            self._entries[norm] = entry
        new_data = value(entry.data) if callable(value) else value
        entry.data = new_data
        entry.error = None
        entry.status = "success"
        entry.invalidated = False
        entry.updated_at = self._clock()
        entry.last_access = entry.updated_at
        return new_data

    def invalidate_queries(self, prefix: Optional[KeyLike] = None) -> List[Key]:
        """Mark matching entries stale so the next read refetches them."""
        prefix_key = normalize_key(prefix) if prefix is not None else None
        keys = [k for k in self._entries if _matches(k, prefix_key)]
        for k in keys:
            self._entries[k].invalidated = True
        logger.debug("Invalidated %d queries under %s", len(keys), prefix_key)
        return keys

    async def refetch_queries(self, prefix: Optional[KeyLike] = None) -> Dict[Key, Any]:
        """Invalidate and immediately refetch matching entries that know their fetcher."""
        results: Dict[Key, Any] = {}
        for k in self.invalidate_queries(prefix):
            entry = self._entries.get(k)
            if entry is None or entry.query_fn is None:
                continue
            results[k] = await self.fetch_query(k)
        return results

    def reset_queries(self, prefix: Optional[KeyLike] = None) -> None:
        """Return matching entries to their initial, data-less state."""
        prefix_key = normalize_key(prefix) if prefix is not None else None
        for k, entry in self._entries.items():
            if _matches(k, prefix_key):
                if entry.is_fetching:
                    entry.task.cancel()
                self._entries[k] = QueryEntry(
                    key=k, stale_time=entry.stale_time, query_fn=entry.query_fn
                )

    def cancel_queries(self, prefix: Optional[KeyLike] = None) -> int:
        """Cancel in-flight fetches for matching keys."""
        prefix_key = normalize_key(prefix) if prefix is not None else None
        cancelled = 0
        for k, entry in self._entries.items():
            if _matches(k, prefix_key) and entry.is_fetching:
                entry.task.cancel()
                cancelled += 1
        return cancelled

    def remove_queries(self, prefix: Optional[KeyLike] = None) -> None:
        """Drop matching entries entirely."""
        prefix_key = normalize_key(prefix) if prefix is not None else None
        for k in [k for k in self._entries if _matches(k, prefix_key)]:
            entry = self._entries.pop(k)
            if entry.is_fetching:
                entry.task.cancel()

    def clear(self) -> None:
        """Forget everything, cancelling any fetch still in flight."""
        self.remove_queries(None)
        logger.debug("Query cache cleared")

    def garbage_collect(self) -> int:
        """Evict idle entries whose gc window has elapsed."""
        now = self._clock()
        evicted = 0
        for k in list(self._entries):
            entry = self._entries[k]
            if entry.is_fetching:
                continue
            gc_time = self._times_for(k)[1]
            if now - entry.last_access >= gc_time:
                del self._entries[k]
                evicted += 1
        return evicted

    def keys(self) -> List[Key]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
