"""Login and registration form payloads, validated before anything is sent."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import validator

from grantifuel.models.base import ApiModel


class RegisterRole(str, Enum):
    GRANT_WRITER = "grant_writer"
    MANAGER = "manager"
    ARTIST = "artist"


class LoginData(ApiModel):
    class Config:
        validate_default = True

    username: str = ""
    password: str = ""

    @validator("username")
    def username_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Username is required")
        return v

    @validator("password")
    def password_required(cls, v):
        if not v:
            raise ValueError("Password is required")
        return v


class RegisterData(ApiModel):
    """Registration form: the confirmation never leaves the client."""

    class Config:
        validate_default = True

    username: str = ""
    name: str = ""
    email: str = ""
    avatar: Optional[str] = None
    password: str = ""
    confirm_password: str = ""
    role: RegisterRole = RegisterRole.ARTIST

    @validator("username")
    def username_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Username is required")
        return v

    @validator("name")
    def name_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v

    @validator("email")
    def email_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Email is required")
        return v

    @validator("password")
    def password_length(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @validator("confirm_password")
    def passwords_match(cls, v, values):
        if not v:
            raise ValueError("Please confirm your password")
        if "password" in values and v != values["password"]:
            raise ValueError("Passwords do not match")
        return v

    @validator("role", pre=True)
    def default_role(cls, v):
        return v or RegisterRole.ARTIST.value

    def to_payload(self, **kwargs: Any) -> Dict[str, Any]:
        kwargs.setdefault("exclude", {"confirm_password"})
        return super().to_payload(**kwargs)
