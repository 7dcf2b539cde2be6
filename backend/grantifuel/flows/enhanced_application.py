"""Guided application flow: profile -> grant -> application -> AI -> review -> export."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

from grantifuel.models.ai_helpers import GrantRecommendation
from grantifuel.models.core import Application, ApplicationStatus, Artist, Grant
from grantifuel.progress import STEP_PROGRESS
from grantifuel.state import AppState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowStep:
    id: str
    title: str
    description: str


STEPS: List[FlowStep] = [
    FlowStep("artist-profile", "Artist Profile", "Create or select artist profile"),
    FlowStep("grant-match", "Grant Matching", "Discover relevant grants"),
    FlowStep("application", "Application", "Complete application details"),
    FlowStep("ai-assist", "AI Assistance", "Enhance with AI suggestions"),
    FlowStep("review", "Review", "Review and finalize"),
    FlowStep("export", "Export", "Export application"),
]

STEP_INDEX = {step.id: i for i, step in enumerate(STEPS)}


@dataclass(frozen=True)
class Celebration:
    title: str
    message: str
    type: str  # success | achievement | milestone | completion


ARTIST_CREATED = Celebration(
    "Artist Profile Created!",
    "Great job! Now let's find grants that match your profile.",
    "success",
)
GRANT_SELECTED = Celebration(
    "Grant Selected!",
    "Excellent choice! Let's start your application for this grant.",
    "milestone",
)
APPLICATION_STARTED = Celebration(
    "Application Started!",
    "Your application has been created. Let's enhance it with AI assistance.",
    "milestone",
)
APPLICATION_COMPLETED = Celebration(
    "Application Completed!",
    "Congratulations! Your application is ready to submit to the grant organization.",
    "completion",
)


class EnhancedApplicationFlow:
    def __init__(self, state: AppState):
        self.state = state
        self.active_step = 0
        self.completed_steps: List[int] = []
        self.artist: Optional[Artist] = None
        self.grant: Optional[Union[Grant, GrantRecommendation]] = None
        self.application: Optional[Application] = None
        self.celebration: Optional[Celebration] = None
        self.celebrations: List[Celebration] = []

    def require_user(self) -> bool:
        """Send anonymous users to the login page."""
        if self.state.current_user is not None:
            return True
        self.state.toast(
            "Authentication Required",
            "Please log in to access the application flow",
            variant="destructive",
        )
        self.state.navigate("/auth", guarded=False)
        return False

    @property
    def current_step(self) -> Optional[FlowStep]:
        if self.active_step < len(STEPS):
            return STEPS[self.active_step]
        return None

    @property
    def is_finished(self) -> bool:
        return len(self.completed_steps) == len(STEPS)

    def complete_step(self, index: int) -> None:
        """Mark a step done (once) and move to the one after it."""
        if index not in self.completed_steps:
            self.completed_steps.append(index)
        self.active_step = index + 1

    def _celebrate(self, celebration: Celebration) -> None:
        self.celebration = celebration
        self.celebrations.append(celebration)
        logger.info("Celebration: %s", celebration.title)

    def dismiss_celebration(self) -> None:
        self.celebration = None

    def _set_progress(self, step_id: str) -> None:
        if self.application is None:
            return
        progress = STEP_PROGRESS[step_id]
        update = {"progress": progress}
        if progress >= 100:
            update["status"] = ApplicationStatus.COMPLETED
        self.application = self.application.model_copy(update=update)

    # ------------------------------------------------------------------
    # step handlers
    # ------------------------------------------------------------------

    def handle_artist_created(self, artist: Artist) -> None:
        self.artist = artist
        self._celebrate(ARTIST_CREATED)
        self.complete_step(STEP_INDEX["artist-profile"])

    def handle_grant_selected(self, grant: Union[Grant, GrantRecommendation]) -> None:
        self.grant = grant
        self._celebrate(GRANT_SELECTED)
        self.complete_step(STEP_INDEX["grant-match"])

    def handle_application_created(self, application_id: int) -> Application:
        user = self.state.current_user
        grant_id = self.grant.id if isinstance(self.grant, Grant) and self.grant.id else 0
        self.application = Application(
            id=application_id,
            user_id=user.id if user else 0,
            grant_id=grant_id,
            artist_id=self.artist.id if self.artist else 0,
            status=ApplicationStatus.DRAFT,
            progress=STEP_PROGRESS["application"],
            answers={},
            submitted_at=None,
            started_at=datetime.now(timezone.utc),
        )
        self._celebrate(APPLICATION_STARTED)
        self.complete_step(STEP_INDEX["application"])
        return self.application

    def handle_ai_enhancement_complete(self) -> None:
        self._set_progress("ai-assist")
        self.complete_step(STEP_INDEX["ai-assist"])

    def handle_review_complete(self) -> None:
        self._set_progress("review")
        self.complete_step(STEP_INDEX["review"])

    def handle_export_complete(self) -> None:
        self._set_progress("export")
        self._celebrate(APPLICATION_COMPLETED)
        self.complete_step(STEP_INDEX["export"])
