"""
Application progress heuristics and milestone celebrations.

Two independent progress policies live here:

- Length policy (``proposal_progress``): used when a proposal is saved on the
  application detail screen. Long text jumps straight to 75%.
- Step policy (``STEP_PROGRESS``): used by the guided application flow, where
  each completed stage sets a fixed percentage.

``MilestoneTracker`` watches successive progress values for one loaded
application and emits a one-shot celebration per threshold crossed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from grantifuel.models.core import ApplicationStatus

logger = logging.getLogger(__name__)


# ============================================================================
# Length policy
# ============================================================================

LONG_PROPOSAL_CHARS = 500
LONG_PROPOSAL_PROGRESS = 75
MIN_DRAFT_PROGRESS = 25
IN_PROGRESS_THRESHOLD = 75
SUBMITTED_PROGRESS = 100
MAX_PROGRESS = 100


def proposal_progress(text: Optional[str]) -> int:
    """Progress implied by proposal length: roughly 1% per 10 characters.

    More than 500 characters counts as 75%; anything shorter is at least 25%.
    """
    length = len(text or "")
    if length > LONG_PROPOSAL_CHARS:
        progress = LONG_PROPOSAL_PROGRESS
    else:
        progress = max(MIN_DRAFT_PROGRESS, length // 10)
    return min(MAX_PROGRESS, progress)


def status_for_progress(progress: int, current: ApplicationStatus) -> ApplicationStatus:
    """Move to ``in_progress`` at 75% or more, otherwise keep ``current``."""
    if progress >= IN_PROGRESS_THRESHOLD:
        return ApplicationStatus.IN_PROGRESS
    return current


# ============================================================================
# Step policy
# ============================================================================

# progress set when the named stage of the guided flow completes
STEP_PROGRESS: Dict[str, int] = {
    "application": 30,
    "ai-assist": 70,
    "review": 90,
    "export": 100,
}


# ============================================================================
# Milestones
# ============================================================================

PROGRESS_MILESTONES = (25, 50, 75, 100)

_PROGRESS_MESSAGES: Dict[int, str] = {
    25: "Great start! You're on your way.",
    50: "Halfway there! Keep up the momentum.",
    75: "Almost there! The finish line is in sight.",
}


@dataclass(frozen=True)
class Milestone:
    """A one-shot celebration event."""

    kind: str  # progress | submission | approval
    title: str
    message: str
    value: Optional[int] = None
    grant_name: Optional[str] = None


def progress_milestone(value: int, grant_name: Optional[str] = None) -> Milestone:
    return Milestone(
        kind="progress",
        title=f"{value}% Complete!",
        message=_PROGRESS_MESSAGES.get(value, "Amazing progress!"),
        value=value,
        grant_name=grant_name,
    )


def submission_milestone(grant_name: Optional[str] = None) -> Milestone:
    return Milestone(
        kind="submission",
        title="Application Submitted!",
        message=(
            f"Congratulations! Your application for {grant_name or 'the grant'} "
            "has been submitted."
        ),
        grant_name=grant_name,
    )


@dataclass
class MilestoneTracker:
    """Remembers the previous progress value and which thresholds have fired.

    The first observed value is only a baseline. Every later observation
    emits one milestone per threshold newly crossed, in ascending order, and
    a threshold never fires twice until :meth:`reset` (a fresh load).
    """

    grant_name: Optional[str] = None
    previous: Optional[int] = None
    fired: Set[str] = field(default_factory=set)

    def reset(self) -> None:
        self.previous = None
        self.fired.clear()

    def observe(
        self,
        progress: int,
        status: Optional[ApplicationStatus] = None,
    ) -> List[Milestone]:
        if self.previous is None:
            self.previous = progress
            # already-passed thresholds are not celebrated after a reload
            for threshold in PROGRESS_MILESTONES:
                if progress >= threshold:
                    self.fired.add(f"progress-{threshold}")
            if status == ApplicationStatus.SUBMITTED:
                self.fired.add("submission")
            return []

        events: List[Milestone] = []
        for threshold in PROGRESS_MILESTONES:
            key = f"progress-{threshold}"
            if progress >= threshold and self.previous < threshold and key not in self.fired:
                self.fired.add(key)
                events.append(progress_milestone(threshold, self.grant_name))

        if status == ApplicationStatus.SUBMITTED and "submission" not in self.fired:
            self.fired.add("submission")
            events.append(submission_milestone(self.grant_name))

        if events:
            logger.debug("Milestones reached: %s", [e.title for e in events])
        self.previous = progress
        return events


def next_milestone(progress: int) -> Optional[int]:
    for milestone in PROGRESS_MILESTONES:
        if progress < milestone:
            return milestone
    return None


def milestone_progress(progress: int) -> Dict[str, Optional[float]]:
    """Where ``progress`` sits between the last reached and the next threshold."""
    current: Optional[int] = None
    for milestone in reversed(PROGRESS_MILESTONES):
        if progress >= milestone:
            current = milestone
            break
    upcoming = next_milestone(progress)
    if upcoming is None:
        to_next = 100.0
    else:
        base = current or 0
        to_next = (progress - base) / (upcoming - base) * 100
    return {
        "current_milestone": current,
        "next_milestone": upcoming,
        "progress_to_next_milestone": to_next,
    }


def progress_message(progress: int) -> str:
    """Encouragement line shown under the progress bar."""
    if progress < 25:
        return "Just getting started! Complete more of your application to improve your chances."
    if progress < 75:
        return "Good progress! Continue developing your proposal to make it stronger."
    if progress == 100:
        return "Your application is complete and has been submitted."
    return "Almost there! Your application is nearly ready for submission."
