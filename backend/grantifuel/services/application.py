"""
Grant application reads and writes.

- save_proposal: store proposal text, recompute progress from its length
- submit: mark submitted at 100%
- export: download a PDF/DOCX rendering
- in_progress_overview: dashboard ordering of unfinished applications

Every write records an activity entry and invalidates both the list and
the item in the query cache.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from grantifuel.errors import GrantiFuelError
from grantifuel.models.core import (
    Application,
    ApplicationCreate,
    ApplicationStatus,
    ApplicationUpdate,
    Grant,
)
from grantifuel.models.onboarding import OnboardingTask
from grantifuel.mutation import Mutation
from grantifuel.progress import SUBMITTED_PROGRESS, proposal_progress, status_for_progress
from grantifuel.services.activity import ActivityService
from grantifuel.services.base import StateService, validate_form
from grantifuel.services.grant import GRANTS_KEY
from grantifuel.services.onboarding import OnboardingService

logger = logging.getLogger(__name__)

APPLICATIONS_KEY = ("/api/applications",)
EXPORT_FORMATS = ("pdf", "docx")


@dataclass
class ExportedFile:
    filename: str
    content: bytes
    content_type: Optional[str] = None


def export_filename(grant_name: str, fmt: str) -> str:
    slug = re.sub(r"\s+", "_", grant_name)
    return f"{slug}_application.{fmt}"


def _deadline_ts(grant: Optional[Grant]) -> Optional[float]:
    if grant is None or grant.deadline is None:
        return None
    deadline = grant.deadline
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    return deadline.timestamp()


class ApplicationService(StateService):
    def __init__(
        self,
        state,
        onboarding: Optional[OnboardingService] = None,
        activities: Optional[ActivityService] = None,
    ):
        super().__init__(state)
        self.onboarding = onboarding or OnboardingService(state)
        self.activities = activities or ActivityService(state)
        self.save_mutation: Mutation[Dict[str, Any], Application] = Mutation(
            self._save_proposal,
            on_success=lambda _app, _v: self.state.toast(
                "Application updated", "Your changes have been saved successfully."
            ),
            on_error=lambda _e, _v: self.state.toast(
                "Error updating application",
                "Failed to save your changes. Please try again.",
                variant="destructive",
            ),
            name="save proposal",
        )
        self.submit_mutation: Mutation[Dict[str, Any], Application] = Mutation(
            self._submit,
            on_success=lambda _app, _v: self.state.toast(
                "Application submitted", "Your application has been submitted successfully."
            ),
            on_error=lambda _e, _v: self.state.toast(
                "Error submitting application",
                "Failed to submit your application. Please try again.",
                variant="destructive",
            ),
            name="submit application",
        )

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def list_applications(self) -> List[Application]:
        return await self._fetch_list(APPLICATIONS_KEY, Application)

    async def get_application(self, application_id: int) -> Application:
        """Raises NotFoundError for an unknown id."""
        return await self._fetch_one(
            (APPLICATIONS_KEY[0], application_id), Application, "Application", application_id
        )

    async def in_progress_overview(self) -> List[Application]:
        """Unfinished applications, nearest deadline first, then least progress."""
        applications = await self.list_applications()
        missing_grant = [a for a in applications if a.grant is None]
        if missing_grant:
            grants = {g.id: g for g in await self._fetch_list(GRANTS_KEY, Grant)}
            for app in missing_grant:
                app.grant = grants.get(app.grant_id)

        def sort_key(app: Application) -> Tuple[int, float, int]:
            ts = _deadline_ts(app.grant)
            return (0 if ts is not None else 1, ts or 0.0, app.progress)

        return [a for a in sorted(applications, key=sort_key) if a.progress < 100]

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def _invalidate(self, application_id: int) -> None:
        self.queries.invalidate_queries(APPLICATIONS_KEY)
        self.queries.invalidate_queries((APPLICATIONS_KEY[0], application_id))

    async def create_application(self, data: Union[ApplicationCreate, Dict[str, Any]]) -> Application:
        form = validate_form(ApplicationCreate, data)
        if form.user_id is None:
            form.user_id = self._current_user_id()
        created = await self.api.request_json("POST", APPLICATIONS_KEY[0], form.to_payload())
        self.queries.invalidate_queries(APPLICATIONS_KEY)
        application = Application.model_validate(created)
        logger.info(f"Created application {application.id} for grant {application.grant_id}")
        return application

    async def _patch(self, application_id: int, update: ApplicationUpdate) -> Application:
        data = await self.api.request_json(
            "PATCH", f"{APPLICATIONS_KEY[0]}/{application_id}", update.to_payload()
        )
        return Application.model_validate(data)

    def _activity_details(self, application_id: int, variables: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "applicationId": application_id,
            "grantName": variables.get("grant_name"),
            "artistName": variables.get("artist_name"),
        }

    async def _save_proposal(self, variables: Dict[str, Any]) -> Application:
        application: Application = variables["application"]
        text: str = variables["text"]

        progress = proposal_progress(text)
        update = ApplicationUpdate(
            answers={**application.answers, "proposal": text},
            progress=progress,
            status=status_for_progress(progress, application.status),
        )
        updated = await self._patch(application.id, update)
        await self.activities.record(
            "UPDATED", "APPLICATION", application.id, self._activity_details(application.id, variables)
        )
        self._invalidate(application.id)
        return updated

    async def save_proposal(
        self,
        application: Application,
        text: str,
        *,
        grant_name: Optional[str] = None,
        artist_name: Optional[str] = None,
    ) -> Optional[Application]:
        """Save proposal text; returns ``None`` after notifying a failure."""
        return await self.save_mutation.mutate(
            {
                "application": application,
                "text": text,
                "grant_name": grant_name,
                "artist_name": artist_name,
            }
        )

    async def _submit(self, variables: Dict[str, Any]) -> Application:
        application: Application = variables["application"]
        update = ApplicationUpdate(
            status=ApplicationStatus.SUBMITTED,
            progress=SUBMITTED_PROGRESS,
            submitted_at=datetime.now(timezone.utc),
        )
        updated = await self._patch(application.id, update)
        await self.activities.record(
            "SUBMITTED", "APPLICATION", application.id, self._activity_details(application.id, variables)
        )
        self._invalidate(application.id)
        await self.onboarding.complete_task(
            OnboardingTask.FIRST_APPLICATION_COMPLETED.value, {"applicationId": application.id}
        )
        return updated

    async def submit(
        self,
        application: Application,
        *,
        grant_name: Optional[str] = None,
        artist_name: Optional[str] = None,
    ) -> Optional[Application]:
        return await self.submit_mutation.mutate(
            {"application": application, "grant_name": grant_name, "artist_name": artist_name}
        )

    async def export(self, application_id: int, grant_name: str, fmt: str = "pdf") -> ExportedFile:
        """Render the application server-side.

        Raises:
            ValueError: Unsupported format.
            GrantiFuelError: The export request failed.
        """
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")
        try:
            response = await self.api.request(
                "POST", f"{APPLICATIONS_KEY[0]}/{application_id}/export", {"format": fmt}
            )
        except GrantiFuelError as e:
            self.state.toast("Export failed", e.message, variant="destructive")
            raise
        self.state.toast(
            "Export successful", f"Your application has been exported as {fmt.upper()}"
        )
        return ExportedFile(
            filename=export_filename(grant_name, fmt),
            content=response.content,
            content_type=response.headers.get("content-type"),
        )
