"""
Core GrantiFuel entities as returned by the REST API.

- User: account identity and role
- Artist: a musician's grant-matching profile
- Grant: a funding opportunity
- Application: links a user, an artist and a grant
- Activity: append-only audit entry
- Template: reusable proposal/biography/question text
"""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, validator

from grantifuel.models.base import ApiModel

logger = logging.getLogger(__name__)


def _parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    """Accept datetimes and ISO strings; anything unparseable becomes None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in ("%m/%d/%Y", "%Y-%m-%d", "%B %d, %Y"):
            try:
                return datetime.strptime(value.strip(), fmt)
            except ValueError:
                continue
    logger.warning(f"Invalid {field_name} value {value!r}, treating as missing")
    return None


# ============================================================================
# Users
# ============================================================================


class UserRole(str, Enum):
    USER = "user"
    ARTIST = "artist"
    MANAGER = "manager"
    GRANT_WRITER = "grant_writer"
    ADMIN = "admin"


class User(ApiModel):
    """Authenticated account. The password hash never reaches the client."""

    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    role: UserRole = UserRole.USER
    verified: bool = False
    active: bool = True
    stripe_customer_id: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or self.username

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


# ============================================================================
# Artists
# ============================================================================


class ArtistCreate(ApiModel):
    """Request body for creating or updating an artist profile."""

    user_id: Optional[int] = None
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: Optional[str] = None
    bio: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    career_stage: Optional[str] = None
    primary_instrument: Optional[str] = None
    location: Optional[str] = None
    project_type: Optional[str] = None


class Artist(ArtistCreate):
    id: int
    created_at: Optional[datetime] = None

    @validator("genres", pre=True)
    def none_genres_to_empty(cls, v):
        return v or []


# ============================================================================
# Grants
# ============================================================================


class GrantCreate(ApiModel):
    """Request body for persisting a grant (also used for AI recommendations)."""

    name: str
    organization: str
    amount: Optional[str] = None
    deadline: Optional[datetime] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    website: Optional[str] = None

    @validator("deadline", pre=True)
    def parse_deadline(cls, v):
        return _parse_datetime(v, "deadline")


class Grant(GrantCreate):
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_persisted(self) -> bool:
        return isinstance(self.id, int) and self.id > 0


# ============================================================================
# Applications
# ============================================================================


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


TERMINAL_STATUSES = {
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.COMPLETED,
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
}


def normalize_status(value: Any) -> Any:
    """``inProgress`` and ``in-progress`` both mean ``in_progress``."""
    if isinstance(value, str):
        lowered = value.strip()
        if lowered in ("inProgress", "in-progress", "IN_PROGRESS"):
            return ApplicationStatus.IN_PROGRESS.value
        return lowered.lower()
    return value


def _parse_answers(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding unparseable application answers")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    if isinstance(value, dict):
        return value
    return {}


def _clamp_progress(value: Any) -> int:
    if value is None:
        return 0
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        logger.warning(f"Invalid progress value {value!r}, using 0")
        return 0
    return max(0, min(100, number))


class ApplicationCreate(ApiModel):
    """Request body for POST /api/applications."""

    user_id: Optional[int] = None
    grant_id: int
    artist_id: Optional[int] = None
    status: ApplicationStatus = ApplicationStatus.DRAFT
    progress: int = 0
    answers: Dict[str, Any] = Field(default_factory=dict)

    @validator("status", pre=True)
    def normalize_status_value(cls, v):
        return normalize_status(v)

    @validator("progress", pre=True)
    def clamp_progress(cls, v):
        return _clamp_progress(v)


class ApplicationUpdate(ApiModel):
    """PATCH body; only the fields that are set are sent."""

    status: Optional[ApplicationStatus] = None
    progress: Optional[int] = None
    answers: Optional[Dict[str, Any]] = None
    submitted_at: Optional[datetime] = None

    @validator("status", pre=True)
    def normalize_status_value(cls, v):
        return normalize_status(v)


class Application(ApiModel):
    """A draft or submitted grant application."""

    id: int
    user_id: Optional[int] = None
    grant_id: int
    artist_id: Optional[int] = None
    status: ApplicationStatus = ApplicationStatus.DRAFT
    progress: int = 0
    answers: Dict[str, Any] = Field(default_factory=dict)
    submitted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    grant: Optional[Grant] = None

    @validator("status", pre=True)
    def normalize_status_value(cls, v):
        return normalize_status(v)

    @validator("answers", pre=True)
    def parse_answers(cls, v):
        return _parse_answers(v)

    @validator("progress", pre=True)
    def clamp_progress(cls, v):
        return _clamp_progress(v)

    @validator("submitted_at", "started_at", pre=True)
    def parse_timestamps(cls, v):
        return _parse_datetime(v, "timestamp")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def proposal(self) -> str:
        value = self.answers.get("proposal")
        return value if isinstance(value, str) else ""


# ============================================================================
# Activities
# ============================================================================


class ActivityCreate(ApiModel):
    user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class Activity(ActivityCreate):
    id: int
    created_at: Optional[datetime] = None


# ============================================================================
# Templates
# ============================================================================


class TemplateType(str, Enum):
    PROPOSAL = "proposal"
    BIOGRAPHY = "biography"
    QUESTION = "question"
    OTHER = "other"


class TemplateCreate(ApiModel):
    user_id: Optional[int] = None
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    content: str = Field(..., min_length=1)
    type: str = TemplateType.PROPOSAL.value


class Template(TemplateCreate):
    id: int
    created_at: Optional[datetime] = None
