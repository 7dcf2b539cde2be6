"""
New-application flow: resolve the grant, draft content (optionally with AI)
and create the application.

The grant may come from:

1. a one-shot ``selectedGrant`` hand-off in session storage
2. a numeric database id
3. a ``doc-based-...`` id matched against stored AI recommendations

A grant that is not in the database yet is persisted first, so the new
application always references a real grant row.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from grantifuel.errors import GrantiFuelError, GrantNotFoundError, NotFoundError, user_message
from grantifuel.grant_resolution import is_doc_based_id, resolve_recommendation
from grantifuel.models.ai_helpers import (
    FORM_FIELDS,
    ApplicationFormValues,
    GrantRecommendation,
    normalize_recommendation,
    normalize_recommendations,
)
from grantifuel.models.core import Application, ApplicationCreate, ApplicationStatus, Grant, GrantCreate
from grantifuel.models.onboarding import OnboardingTask
from grantifuel.mutation import Mutation
from grantifuel.services.ai_assistant import AIAssistantService
from grantifuel.services.application import APPLICATIONS_KEY, ApplicationService
from grantifuel.services.artist import ArtistService
from grantifuel.services.base import validate_form
from grantifuel.services.grant import GrantService
from grantifuel.services.onboarding import OnboardingService
from grantifuel.state import AppState
from grantifuel.storage import AI_RECOMMENDATIONS_KEY, SELECTED_GRANT_KEY

logger = logging.getLogger(__name__)

DRAFT_PROGRESS = 40
DEFAULT_GRANT_NAME = "AI Recommended Grant"
DEFAULT_ORGANIZATION = "Unknown Organization"
DEFAULT_AMOUNT = "$0"

ResolvedGrant = Union[Grant, GrantRecommendation]


def grant_from_recommendation(rec: GrantRecommendation) -> GrantCreate:
    """Grant row for an AI recommendation, with placeholders for missing fields."""
    grant = GrantCreate(
        name=rec.name or DEFAULT_GRANT_NAME,
        organization=rec.organization or DEFAULT_ORGANIZATION,
        amount=rec.amount or DEFAULT_AMOUNT,
        deadline=rec.deadline,
        description=rec.description or "",
        requirements=rec.requirements_text,
        website=rec.url or "",
    )
    if grant.deadline is None:
        grant.deadline = datetime.now(timezone.utc)
    return grant


def export_text(values: Dict[str, str]) -> str:
    """Markdown copy of the form, as placed on the clipboard."""
    return (
        f"# {values.get('project_title', '')}\n\n"
        f"## Project Description\n{values.get('project_description', '')}\n\n"
        f"## Artist Goals\n{values.get('artist_goals', '')}\n\n"
        f"## Project Impact\n{values.get('project_impact', '')}\n"
    )


class NewApplicationFlow:
    """State and actions of the new-application screen."""

    def __init__(
        self,
        state: AppState,
        grant_id: Optional[str] = None,
        *,
        onboarding: Optional[OnboardingService] = None,
    ):
        self.state = state
        self.grant_id = grant_id
        self.onboarding = onboarding or OnboardingService(state)
        self.grants = GrantService(state)
        self.artists = ArtistService(state, onboarding=self.onboarding)
        self.applications = ApplicationService(state, onboarding=self.onboarding)
        self.assistant = AIAssistantService(state, onboarding=self.onboarding)

        self.grant: Optional[ResolvedGrant] = None
        self.values: Dict[str, str] = {name: "" for name in FORM_FIELDS}
        self.is_generating = False

        self.create_mutation: Mutation[ApplicationFormValues, Application] = Mutation(
            self._create,
            on_success=self._on_created,
            on_error=self._on_create_error,
            name="create application",
        )

    # ------------------------------------------------------------------
    # grant resolution
    # ------------------------------------------------------------------

    async def resolve_grant(self) -> ResolvedGrant:
        """Work out which grant this application is for.

        Raises:
            GrantNotFoundError: No source produced a grant.
        """
        selected = self.state.session_storage.pop_json(SELECTED_GRANT_KEY)
        if selected is not None:
            rec = normalize_recommendation(selected)
            if rec is not None:
                logger.info(f"Using selected grant from session: {rec.name}")
                self.grant = rec
                return rec

        if self.grant_id and str(self.grant_id).isdigit():
            try:
                self.grant = await self.grants.get_grant(int(self.grant_id))
            except NotFoundError as e:
                raise GrantNotFoundError(self.grant_id) from e
            return self.grant

        if is_doc_based_id(self.grant_id):
            recommendations = normalize_recommendations(
                self.state.session_storage.get_json(AI_RECOMMENDATIONS_KEY)
            )
            resolution = resolve_recommendation(
                recommendations,
                str(self.grant_id),
                fallback_to_first=self.state.settings.grant_fallback_to_first,
            )
            if resolution.is_fallback:
                logger.warning(
                    f"Grant {self.grant_id} resolved to first available recommendation"
                )
            self.grant = resolution.grant
            return self.grant

        raise GrantNotFoundError(self.grant_id)

    @property
    def has_database_grant(self) -> bool:
        return isinstance(self.grant, Grant) and self.grant.is_persisted

    # ------------------------------------------------------------------
    # AI content
    # ------------------------------------------------------------------

    async def generate_content(self, current_values: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Fill the form from the AI draft. Only fields it returns are replaced."""
        if current_values is not None:
            self.values = dict(current_values)

        artist = await self.artists.primary_artist()
        if self.grant is None or artist is None:
            self.state.toast(
                "Missing information",
                "Grant details or artist profile information is missing.",
                variant="destructive",
            )
            return self.values

        self.is_generating = True
        try:
            content = await self.assistant.generate_application_content(self.grant, artist)
        except GrantiFuelError as e:
            logger.error(f"Error generating AI content: {e}")
            self.state.toast(
                "Error generating content",
                user_message(e, "Failed to generate content. Please try again."),
                variant="destructive",
            )
            return self.values
        finally:
            self.is_generating = False

        self.values = content.merge_into(self.values)
        self.state.toast(
            "Content generated", "AI-generated content is ready for your review and editing."
        )
        return self.values

    def export_text(self, values: Optional[Dict[str, str]] = None) -> str:
        return export_text(values if values is not None else self.values)

    # ------------------------------------------------------------------
    # submission
    # ------------------------------------------------------------------

    async def _persist_grant(self) -> int:
        if self.grant is None:
            await self.resolve_grant()
        if isinstance(self.grant, Grant) and self.grant.is_persisted:
            return self.grant.id

        rec = self.grant
        if isinstance(rec, Grant):
            rec = normalize_recommendation(rec.to_payload())
        created = await self.grants.create_grant(grant_from_recommendation(rec))
        logger.info(f"Persisted recommended grant as {created.id}")
        self.grant = created
        return created.id

    async def _create(self, form: ApplicationFormValues) -> Application:
        grant_id = await self._persist_grant()
        artist = await self.artists.primary_artist()
        return await self.applications.create_application(
            ApplicationCreate(
                grant_id=grant_id,
                artist_id=artist.id if artist else None,
                status=ApplicationStatus.DRAFT,
                progress=DRAFT_PROGRESS,
                answers=form.to_payload(),
            )
        )

    async def _on_created(self, application: Application, _form: ApplicationFormValues) -> None:
        self.state.toast("Application prepared", "Your application draft has been saved successfully.")
        await self.onboarding.complete_task(OnboardingTask.FIRST_APPLICATION_CREATED.value)
        self.state.queries.invalidate_queries(APPLICATIONS_KEY)
        self.state.navigate("/applications")

    def _on_create_error(self, error: GrantiFuelError, _form: Any) -> None:
        self.state.toast(
            "Error creating application",
            user_message(error, "Something went wrong. Please try again."),
            variant="destructive",
        )

    async def submit(
        self, values: Optional[Union[ApplicationFormValues, Dict[str, str]]] = None
    ) -> Optional[Application]:
        """Validate and create the application; ``None`` after notifying a failure."""
        try:
            form = validate_form(ApplicationFormValues, values if values is not None else self.values)
        except GrantiFuelError as e:
            self._on_create_error(e, values)
            return None
        return await self.create_mutation.mutate(form)
