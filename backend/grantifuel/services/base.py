"""Shared plumbing for the domain services."""

import logging
from typing import Any, List, Optional, Type, TypeVar

from pydantic import ValidationError

from grantifuel.errors import ApiError, FormValidationError, NotFoundError
from grantifuel.models.base import ApiModel
from grantifuel.query_cache import KeyLike
from grantifuel.state import AppState

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=ApiModel)


def validate_form(model: Type[M], data: Any) -> M:
    """Validate user input, raising FormValidationError instead of pydantic's."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise FormValidationError.from_pydantic(e, model) from e


def parse_list(model: Type[M], data: Any) -> List[M]:
    """Parse a JSON array, skipping (and logging) rows that do not fit ``model``."""
    if not data:
        return []
    items: List[M] = []
    for row in data:
        try:
            items.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__} row: {e}")
    return items


class StateService:
    """Base for services bound to one :class:`AppState`."""

    def __init__(self, state: AppState):
        self.state = state

    @property
    def api(self):
        return self.state.api

    @property
    def queries(self):
        return self.state.queries

    async def _fetch_list(self, key: KeyLike, model: Type[M]) -> List[M]:
        return parse_list(model, await self.queries.fetch_query(key))

    async def _fetch_one(self, key: KeyLike, model: Type[M], resource: str, identifier: Any) -> M:
        """Fetch a single resource; a 404 becomes NotFoundError."""
        try:
            data = await self.queries.fetch_query(key)
        except ApiError as e:
            if e.is_not_found:
                raise NotFoundError(resource, identifier) from e
            raise
        if data is None:
            raise NotFoundError(resource, identifier)
        return model.model_validate(data)

    def _current_user_id(self) -> Optional[int]:
        user = self.state.current_user
        return user.id if user is not None else None
