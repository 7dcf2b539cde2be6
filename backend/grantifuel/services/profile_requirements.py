"""
AI-derived artist profile requirements and the helpers around them.

``completed_profile_fields`` maps an artist profile to the display labels
the requirement list uses; ``sort_requirements`` orders a requirement list
for one of the todo/completed/all views.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from grantifuel.config import HOUR
from grantifuel.errors import GrantiFuelError, user_message
from grantifuel.models.ai_helpers import IMPORTANCE_ORDER, ProfileRequirement, RequirementImportance
from grantifuel.models.core import Artist
from grantifuel.services.base import StateService, parse_list

logger = logging.getLogger(__name__)

PROFILE_REQUIREMENTS_KEY = ("/api/ai/profile-requirements",)

VIEW_TODO = "todo"
VIEW_COMPLETED = "completed"
VIEW_ALL = "all"
VIEWS = (VIEW_TODO, VIEW_COMPLETED, VIEW_ALL)

# artist attribute -> requirement label
PROFILE_FIELD_LABELS = [
    ("name", "Full Name"),
    ("email", "Email"),
    ("bio", "Bio"),
    ("genres", "Genres"),
    ("career_stage", "Career Stage"),
    ("primary_instrument", "Primary Instrument"),
    ("location", "Location"),
    ("project_type", "Project Type"),
]


def completed_profile_fields(artist: Optional[Artist]) -> List[str]:
    """Labels of the profile fields ``artist`` has filled in."""
    if artist is None:
        return []
    completed = []
    for attr, label in PROFILE_FIELD_LABELS:
        value = getattr(artist, attr, None)
        if value:
            completed.append(label)
    return completed


def sort_requirements(
    requirements: Iterable[ProfileRequirement],
    completed_fields: Iterable[str],
    view: str = VIEW_TODO,
) -> List[ProfileRequirement]:
    """Filter for ``view`` and order by importance, then completion, then name.

    Completion only affects the order in the ``all`` view, where incomplete
    requirements come first.
    """
    if view not in VIEWS:
        raise ValueError(f"Unknown requirements view: {view}")
    done = set(completed_fields)

    if view == VIEW_TODO:
        selected = [r for r in requirements if r.field_name not in done]
    elif view == VIEW_COMPLETED:
        selected = [r for r in requirements if r.field_name in done]
    else:
        selected = list(requirements)

    def sort_key(req: ProfileRequirement):
        importance = IMPORTANCE_ORDER.get(req.importance.value, len(IMPORTANCE_ORDER))
        completion = (req.field_name in done) if view == VIEW_ALL else False
        return (importance, completion, req.field_name)

    return sorted(selected, key=sort_key)


def requirement_summary(
    requirements: List[ProfileRequirement], completed_fields: Iterable[str]
) -> Dict[str, Any]:
    done = set(completed_fields)
    summary: Dict[str, Any] = {}
    for importance in RequirementImportance:
        of_kind = [r for r in requirements if r.importance == importance]
        summary[importance.value] = {
            "total": len(of_kind),
            "completed": sum(1 for r in of_kind if r.field_name in done),
        }

    required = summary[RequirementImportance.REQUIRED.value]
    summary["required_percentage"] = (
        round(required["completed"] / required["total"] * 100) if required["total"] else 100
    )
    total = len(requirements)
    summary["total_percentage"] = round(len(done) / total * 100) if total else 0
    return summary


class ProfileRequirementsService(StateService):
    """Loads ``/api/ai/profile-requirements`` (1 h fresh, one retry)."""

    async def _query(self, key) -> Any:
        data = await self.api.request_json(
            "GET", PROFILE_REQUIREMENTS_KEY[0], headers={"Cache-Control": "no-cache, no-store"}
        )
        return (data or {}).get("profileRequirements") or []

    async def load(self) -> List[ProfileRequirement]:
        try:
            data = await self.queries.fetch_query(
                PROFILE_REQUIREMENTS_KEY, self._query, stale_time=HOUR, retry=1
            )
        except GrantiFuelError as e:
            self.state.toast(
                "Failed to fetch profile requirements",
                user_message(e, "Please try again later"),
                variant="destructive",
            )
            return []
        return parse_list(ProfileRequirement, data)

    @property
    def requirements(self) -> List[ProfileRequirement]:
        return parse_list(ProfileRequirement, self.queries.get_query_data(PROFILE_REQUIREMENTS_KEY))

    def required_fields(self) -> List[str]:
        return [r.field_name for r in self.requirements if r.importance == RequirementImportance.REQUIRED]

    def recommended_fields(self) -> List[str]:
        return [
            r.field_name for r in self.requirements if r.importance == RequirementImportance.RECOMMENDED
        ]

    def get_field_requirement(self, field_name: str) -> Optional[ProfileRequirement]:
        wanted = field_name.lower()
        for req in self.requirements:
            if req.field_name.lower() == wanted:
                return req
        return None

    def is_field_required(self, field_name: str) -> bool:
        req = self.get_field_requirement(field_name)
        return req is not None and req.importance == RequirementImportance.REQUIRED
