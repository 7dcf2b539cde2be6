"""Exception types raised at the GrantiFuel mutation and query boundaries."""

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class GrantiFuelError(Exception):
    """Base class for every error the client raises on purpose."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiError(GrantiFuelError):
    """A non-2xx response from the GrantiFuel API."""

    def __init__(self, status: int, message: str, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"


class NetworkError(GrantiFuelError):
    """The request never produced a response (DNS, refused, timeout...)."""


class InvalidResponseError(GrantiFuelError):
    """The server answered 2xx with a body that does not fit the expected schema."""


class FormValidationError(GrantiFuelError):
    """Client-side validation failed before anything was sent."""

    def __init__(self, field_errors: Dict[str, str]):
        summary = "; ".join(f"{k}: {v}" for k, v in field_errors.items())
        super().__init__(summary or "Invalid form data")
        self.field_errors = field_errors

    @classmethod
    def from_pydantic(
        cls, exc: ValidationError, model: Optional[Type[BaseModel]] = None
    ) -> "FormValidationError":
        """Collapse a pydantic error list into one message per field.

        Fields are keyed by their wire alias (``confirmPassword``) when
        ``model`` is given, however the input spelled them.
        """
        aliases: Dict[str, str] = {}
        if model is not None:
            aliases = {
                name: info.alias
                for name, info in model.model_fields.items()
                if info.alias
            }
        field_errors: Dict[str, str] = {}
        for err in exc.errors():
            loc: List[str] = [str(part) for part in err.get("loc", ()) if part != "__root__"]
            if loc:
                loc[0] = aliases.get(loc[0], loc[0])
            name = ".".join(loc) or "form"
            msg = err.get("msg", "Invalid value")
            # pydantic prefixes custom ValueError messages
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]
            field_errors.setdefault(name, msg)
        return cls(field_errors)


class NotFoundError(GrantiFuelError):
    """A requested resource does not exist."""

    def __init__(self, resource: str, identifier: Any = None):
        label = f"{resource} {identifier}" if identifier is not None else resource
        super().__init__(f"{label} not found")
        self.resource = resource
        self.identifier = identifier


class GrantNotFoundError(NotFoundError):
    """No grant could be resolved for the requested identifier."""

    def __init__(self, identifier: Any = None):
        super().__init__("Grant", identifier)


def extract_error_message(payload: Any, fallback: str) -> str:
    """Pull the server-provided message out of a JSON error body."""
    if isinstance(payload, dict):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


def user_message(exc: BaseException, fallback: Optional[str] = None) -> str:
    """Turn any error into the text shown in a notification."""
    if isinstance(exc, GrantiFuelError) and exc.message:
        return exc.message
    return fallback or GENERIC_ERROR_MESSAGE
