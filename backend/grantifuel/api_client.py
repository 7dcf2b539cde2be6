"""
HTTP client wrapper for the GrantiFuel REST API.

Every data operation in the package goes through :class:`ApiClient`, which:

- Sends JSON bodies with credentials (the session cookie lives in the jar)
- Disables intermediary caching with no-store/no-cache headers
- Shares a single in-flight request between concurrent identical GETs
- Turns non-2xx responses into ApiError and request failures into NetworkError

Usage:
    api = ApiClient("http://localhost:5000")
    user = await api.request_json("POST", "/api/login", {"username": "...", "password": "..."})

    fetch_user = api.get_query_fn(on_401="return_null")
    current = await fetch_user(("/api/user",))
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from grantifuel.errors import ApiError, NetworkError, extract_error_message

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================

NO_CACHE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

# /api/batch accepts at most this many sub-requests per call
MAX_BATCH_SIZE = 20

QueryKey = Sequence[Any]
QueryFn = Callable[[QueryKey], Awaitable[Any]]


def key_to_url(key: QueryKey) -> str:
    """Build a request path from a query key: ("/api/grants", 3) -> /api/grants/3."""
    parts = [str(part) for part in key if part is not None]
    if not parts:
        raise ValueError("Query key must not be empty")
    url = parts[0]
    for part in parts[1:]:
        url = f"{url.rstrip('/')}/{part.lstrip('/')}"
    return url


async def _raise_if_not_ok(response: httpx.Response) -> None:
    if response.is_success:
        return
    await response.aread()
    text = response.text or response.reason_phrase
    try:
        payload = response.json()
    except ValueError:
        payload = None
    raise ApiError(response.status_code, extract_error_message(payload, text), payload)


class ApiClient:
    """Async JSON client bound to one API origin and one cookie session."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )
        self._pending: Dict[str, "asyncio.Task[httpx.Response]"] = {}

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    def clear_cookies(self) -> None:
        """Best-effort client-side expiry of every cookie in the jar."""
        names = [cookie.name for cookie in self._client.cookies.jar]
        self._client.cookies.clear()
        if names:
            logger.debug("Expired cookies: %s", ", ".join(names))

    # ------------------------------------------------------------------
    # requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        url: str,
        data: Any = None,
        *,
        deduplicate: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Send a request and return the response, raising on non-2xx.

        Args:
            method: HTTP method.
            url: Path relative to the API origin (e.g. ``/api/grants``).
            data: JSON-serialisable body, omitted when ``None``.
            deduplicate: Share one in-flight call between identical GETs.
            headers: Extra headers; these win over the defaults.

        Raises:
            ApiError: The server answered with a non-2xx status.
            NetworkError: No response could be obtained.
        """
        method = method.upper()
        request_key = f"{method}:{url}:{json.dumps(data, default=str) if data is not None else ''}"

        if deduplicate and method == "GET":
            pending = self._pending.get(request_key)
            if pending is not None:
                logger.debug("Joining in-flight request %s", request_key)
                return await asyncio.shield(pending)

        request_headers: Dict[str, str] = {}
        if data is not None:
            request_headers["Content-Type"] = "application/json"
        request_headers.update(NO_CACHE_HEADERS)
        request_headers.update(headers or {})

        task = asyncio.ensure_future(self._send(method, url, data, request_headers))
        if deduplicate and method == "GET":
            self._pending[request_key] = task
            task.add_done_callback(lambda _t: self._pending.pop(request_key, None))
        return await task

    async def _send(
        self, method: str, url: str, data: Any, headers: Dict[str, str]
    ) -> httpx.Response:
        content = json.dumps(data, default=str) if data is not None else None
        return await self._perform(method, url, content=content, headers=headers)

    async def _perform(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            # also covers redirect loops and undecodable bodies
            logger.warning(f"{method} {url} failed before a response arrived: {e}")
            raise NetworkError(f"Network error while contacting the server: {e}") from e
        await _raise_if_not_ok(response)
        return response

    async def request_json(
        self,
        method: str,
        url: str,
        data: Any = None,
        **kwargs: Any,
    ) -> Any:
        """Like :meth:`request` but decode the JSON body (``None`` if empty)."""
        response = await self.request(method, url, data, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(f"{method} {url} returned a non-JSON body")
            return None

    async def upload(
        self,
        url: str,
        filename: str,
        content: bytes,
        fields: Optional[Dict[str, str]] = None,
        content_type: str = "application/octet-stream",
    ) -> Any:
        """POST one file as ``multipart/form-data`` and decode the JSON reply."""
        response = await self._perform(
            "POST",
            url,
            data=fields or {},
            files={"file": (filename, content, content_type)},
            headers=dict(NO_CACHE_HEADERS),
        )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(f"POST {url} returned a non-JSON body")
            return None

    def get_query_fn(self, on_401: str = "throw") -> QueryFn:
        """Build the default fetcher for a query key.

        Args:
            on_401: ``"return_null"`` treats 401 as "no data" (used for the
                current-user query); ``"throw"`` propagates it.
        """
        if on_401 not in ("return_null", "throw"):
            raise ValueError(f"Unknown on_401 behaviour: {on_401}")

        async def query_fn(key: QueryKey) -> Any:
            try:
                return await self.request_json("GET", key_to_url(key))
            except ApiError as e:
                if e.is_unauthorized and on_401 == "return_null":
                    return None
                raise

        return query_fn

    # ------------------------------------------------------------------
    # batching
    # ------------------------------------------------------------------

    async def batch_request(self, requests: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Run several API calls through ``/api/batch``.

        Large batches are split into sequential chunks. If the batch endpoint
        fails, each request is sent on its own and reported as
        ``{"status", "data"}`` or ``{"status", "error"}``.
        """
        if not requests:
            return []

        if len(requests) > MAX_BATCH_SIZE:
            logger.warning("Large batch request detected, chunking into smaller requests")
            results: List[Dict[str, Any]] = []
            for start in range(0, len(requests), MAX_BATCH_SIZE):
                results.extend(await self.batch_request(requests[start:start + MAX_BATCH_SIZE]))
            return results

        try:
            data = await self.request_json("POST", "/api/batch", {"requests": requests})
            return list((data or {}).get("results", []))
        except (ApiError, NetworkError) as e:
            logger.error(f"Batch request failed, falling back to individual requests: {e}")

        async def _single(item: Dict[str, Any]) -> Dict[str, Any]:
            method = item.get("method", "GET")
            url = item["url"]
            try:
                response = await self.request(method, url, item.get("body"))
                body = response.json() if response.content else None
                return {"status": response.status_code, "data": body}
            except ApiError as e:
                logger.error(f"Individual request failed for {url}: {e}")
                return {"status": 400 if e.is_client_error else 500, "error": str(e)}
            except NetworkError as e:
                logger.error(f"Individual request failed for {url}: {e}")
                return {"status": 500, "error": str(e)}

        return list(await asyncio.gather(*(_single(item) for item in requests)))

    async def fetch_resources(self, paths: List[str]) -> Dict[str, Any]:
        """GET several resources in one batch, mapping each path to its data."""
        results = await self.batch_request([{"url": p, "method": "GET"} for p in paths])
        resources: Dict[str, Any] = {}
        for path, result in zip(paths, results):
            status = result.get("status", 500)
            if 200 <= status < 300:
                resources[path] = result.get("data")
            else:
                logger.warning(f"Failed to fetch resource {path}: {result.get('error')}")
                resources[path] = None
        return resources
