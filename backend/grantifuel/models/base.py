"""Base model shared by every wire type: snake_case in Python, camelCase on the wire."""

from typing import Any, Dict

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Pydantic base that reads/writes the API's camelCase JSON."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        extra = "ignore"

    def to_payload(self, **kwargs: Any) -> Dict[str, Any]:
        """Serialise for a request body (camelCase, no unset optionals)."""
        kwargs.setdefault("exclude_none", True)
        return self.model_dump(by_alias=True, mode="json", **kwargs)
