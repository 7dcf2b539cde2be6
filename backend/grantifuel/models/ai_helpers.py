"""
Models for the AI-backed endpoints.

AI responses are loosely shaped (``url`` vs ``website``, requirements as a
string or a list). ``normalize_recommendation`` is the single adapter that
turns them into :class:`GrantRecommendation`; nothing else in the package
should read raw recommendation dicts.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import Field, ValidationError, validator

from grantifuel.models.base import ApiModel
from grantifuel.models.core import Artist

logger = logging.getLogger(__name__)


# ============================================================================
# Profile requirements
# ============================================================================


class RequirementImportance(str, Enum):
    REQUIRED = "required"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"


IMPORTANCE_ORDER: Dict[str, int] = {
    RequirementImportance.REQUIRED.value: 0,
    RequirementImportance.RECOMMENDED.value: 1,
    RequirementImportance.OPTIONAL.value: 2,
}


class ProfileRequirement(ApiModel):
    field_name: str
    importance: RequirementImportance = RequirementImportance.OPTIONAL
    description: str = ""
    examples: List[str] = Field(default_factory=list)

    @validator("importance", pre=True)
    def lower_importance(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @validator("examples", pre=True)
    def none_examples_to_empty(cls, v):
        return v or []


# ============================================================================
# Grant recommendations
# ============================================================================


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return [str(value)]


class GrantRecommendation(ApiModel):
    """A not-yet-persisted grant suggested by the AI matcher."""

    id: str
    name: str = ""
    organization: str = ""
    amount: Optional[str] = None
    deadline: Optional[str] = None
    description: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    eligibility: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    match_score: float = 0.0

    @property
    def requirements_text(self) -> str:
        return ", ".join(self.requirements)


def normalize_recommendation(raw: Any, index: int = 0) -> Optional[GrantRecommendation]:
    """Adapt one raw AI recommendation.

    Accepts ``url`` or ``website`` for the link and a string or list for
    ``requirements``/``eligibility``. Entries that are not objects are
    dropped (returns ``None``) with a warning.
    """
    if isinstance(raw, GrantRecommendation):
        return raw
    if not isinstance(raw, dict):
        logger.warning(f"Ignoring malformed grant recommendation at index {index}: {raw!r}")
        return None

    rec_id = raw.get("id")
    url = raw.get("url") or raw.get("website") or None
    try:
        return GrantRecommendation(
            id=str(rec_id) if rec_id not in (None, "") else f"recommendation-{index}",
            name=raw.get("name") or raw.get("title") or "",
            organization=raw.get("organization") or "",
            amount=None if raw.get("amount") is None else str(raw.get("amount")),
            deadline=None if raw.get("deadline") is None else str(raw.get("deadline")),
            description=raw.get("description"),
            requirements=_as_list(raw.get("requirements")),
            eligibility=_as_list(raw.get("eligibility")),
            url=url,
            match_score=raw.get("matchScore", raw.get("match_score")) or 0,
        )
    except ValidationError as e:
        logger.warning(f"Ignoring invalid grant recommendation at index {index}: {e}")
        return None


def normalize_recommendations(raws: Optional[Iterable[Any]]) -> List[GrantRecommendation]:
    """Adapt a list of raw recommendations, skipping the malformed ones."""
    if not raws:
        return []
    results: List[GrantRecommendation] = []
    for i, raw in enumerate(raws):
        rec = normalize_recommendation(raw, i)
        if rec is not None:
            results.append(rec)
    return results


class ArtistProfileSummary(ApiModel):
    """Request body for ``/api/ai/grant-recommendations``."""

    genre: str = ""
    career_stage: str = ""
    instrument_or_role: str = ""
    location: Optional[str] = None
    project_type: Optional[str] = None

    @classmethod
    def from_artist(cls, artist: Artist) -> "ArtistProfileSummary":
        return cls(
            genre=artist.genres[0] if artist.genres else "",
            career_stage=artist.career_stage or "",
            instrument_or_role=artist.primary_instrument or "",
            location=artist.location,
            project_type=artist.project_type,
        )


# ============================================================================
# Application content
# ============================================================================

FORM_FIELDS = ("project_title", "project_description", "artist_goals", "project_impact")


class ApplicationFormValues(ApiModel):
    class Config:
        validate_default = True

    project_title: str = ""
    project_description: str = ""
    artist_goals: str = ""
    project_impact: str = ""

    @validator("project_title")
    def title_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Project title is required")
        return v

    @validator("project_description")
    def description_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Project description is required")
        return v

    @validator("artist_goals")
    def goals_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Artist goals are required")
        return v

    @validator("project_impact")
    def impact_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Project impact is required")
        return v


class GeneratedApplicationContent(ApiModel):
    """AI draft; any field may be missing."""

    project_title: Optional[str] = None
    project_description: Optional[str] = None
    artist_goals: Optional[str] = None
    project_impact: Optional[str] = None

    def merge_into(self, values: Dict[str, str]) -> Dict[str, str]:
        """Overlay the returned fields on ``values``; absent ones are kept."""
        merged = dict(values)
        for name in FORM_FIELDS:
            value = getattr(self, name)
            if value:
                merged[name] = value
        return merged
