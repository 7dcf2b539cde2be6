"""Mutation wrapper: pending/data/error state around one server write.

``mutate_async`` propagates errors to the caller; ``mutate`` is the outermost
handler, where an error is handed to ``on_error`` (usually a notification)
and swallowed so the triggering control can simply re-enable.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import ValidationError

from grantifuel.errors import GrantiFuelError, InvalidResponseError

logger = logging.getLogger(__name__)

V = TypeVar("V")
R = TypeVar("R")


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Mutation(Generic[V, R]):
    """Run ``fn(variables)`` with success/error/settled callbacks."""

    def __init__(
        self,
        fn: Callable[[V], Awaitable[R]],
        *,
        on_success: Optional[Callable[[R, V], Any]] = None,
        on_error: Optional[Callable[[GrantiFuelError, V], Any]] = None,
        on_settled: Optional[Callable[[Optional[R], Optional[GrantiFuelError], V], Any]] = None,
        name: str = "mutation",
    ):
        self.fn = fn
        self.on_success = on_success
        self.on_error = on_error
        self.on_settled = on_settled
        self.name = name
        self.is_pending = False
        self.data: Optional[R] = None
        self.error: Optional[GrantiFuelError] = None

    @property
    def is_success(self) -> bool:
        return self.data is not None and self.error is None

    def reset(self) -> None:
        self.is_pending = False
        self.data = None
        self.error = None

    async def _run(self, variables: V) -> R:
        try:
            return await self.fn(variables)
        except ValidationError as e:
            # form input is validated before fn runs
            logger.error(f"{self.name} got a malformed response: {e}")
            raise InvalidResponseError("Unexpected response from the server") from e

    async def mutate_async(self, variables: V) -> R:
        """Run the mutation; errors are reported to ``on_error`` and re-raised.

        ``on_settled`` runs once whatever happens, including unexpected errors.
        """
        self.is_pending = True
        self.error = None
        result: Optional[R] = None
        error: Optional[GrantiFuelError] = None
        try:
            try:
                result = await self._run(variables)
            except GrantiFuelError as e:
                error = e
                self.error = e
                logger.warning(f"{self.name} failed: {e}")
                if self.on_error is not None:
                    await _maybe_await(self.on_error(e, variables))
                raise
            finally:
                self.is_pending = False

            self.data = result
            if self.on_success is not None:
                await _maybe_await(self.on_success(result, variables))
        finally:
            if self.on_settled is not None:
                await _maybe_await(self.on_settled(result, error, variables))
        return result

    async def mutate(self, variables: V) -> Optional[R]:
        """Fire-and-report: returns ``None`` instead of raising."""
        try:
            return await self.mutate_async(variables)
        except GrantiFuelError:
            return None
