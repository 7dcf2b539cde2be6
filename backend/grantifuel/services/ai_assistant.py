"""AI writing assistant: proposal drafts, Q&A, and application content."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from grantifuel.errors import FormValidationError, GrantiFuelError
from grantifuel.helpers.date_utils import format_date
from grantifuel.models.ai_helpers import GeneratedApplicationContent, GrantRecommendation
from grantifuel.models.core import Artist, Grant
from grantifuel.models.onboarding import OnboardingTask
from grantifuel.services.base import StateService
from grantifuel.services.onboarding import OnboardingService

logger = logging.getLogger(__name__)

PROPOSAL_TYPES = ("project", "biography", "statement", "budget")


@dataclass
class ChatMessage:
    role: str  # user | assistant
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def proposal_title(proposal_type: str) -> str:
    if proposal_type == "project":
        return f"Music {proposal_type} Proposal"
    return f"{proposal_type.capitalize()} for Music Grant"


def _requirements_text(grant: Union[Grant, GrantRecommendation]) -> str:
    if isinstance(grant, GrantRecommendation):
        return grant.requirements_text
    return grant.requirements or ""


class AIAssistantService(StateService):
    def __init__(self, state, onboarding: Optional[OnboardingService] = None):
        super().__init__(state)
        self.onboarding = onboarding or OnboardingService(state)
        self.conversation: List[ChatMessage] = []
        self.is_generating = False

    async def generate_proposal(
        self,
        project_description: str,
        *,
        grant: Optional[Grant] = None,
        artist: Optional[Artist] = None,
        proposal_type: str = "project",
    ) -> Optional[str]:
        """Draft a proposal; ``None`` (with a notification) when it fails."""
        if not project_description or not project_description.strip():
            self.state.toast(
                "Project description required",
                "Please enter a project description to generate a proposal",
                variant="destructive",
            )
            return None

        body: Dict[str, Any] = {
            "projectDescription": project_description,
            "grantName": grant.name if grant else None,
            "artistName": artist.name if artist else None,
            "projectTitle": proposal_title(proposal_type),
            "proposalType": proposal_type,
            "artistBio": artist.bio if artist else None,
            "artistGenre": ", ".join(artist.genres) if artist else None,
            "grantOrganization": grant.organization if grant else None,
            "grantRequirements": grant.requirements if grant else None,
        }
        self.is_generating = True
        try:
            data = await self.api.request_json("POST", "/api/ai/generate-proposal", body)
        except GrantiFuelError as e:
            logger.error(f"Error generating proposal: {e}")
            self.state.toast(
                "Failed to generate proposal",
                "There was an error generating your proposal. Please try again.",
                variant="destructive",
            )
            return None
        finally:
            self.is_generating = False

        self.state.toast("Proposal generated", "Your proposal has been successfully generated")
        await self.onboarding.complete_task(
            OnboardingTask.AI_ASSISTANT_USED.value, {"feature": "proposal_generation"}
        )
        return (data or {}).get("proposal") or ""

    async def answer_question(self, question: str) -> Optional[str]:
        """Ask a question in the running conversation."""
        if not question or not question.strip():
            self.state.toast(
                "Question required",
                "Please enter a question to ask the AI assistant",
                variant="destructive",
            )
            return None

        history = [m.to_payload() for m in self.conversation]
        try:
            data = await self.api.request_json(
                "POST",
                "/api/ai/answer-question",
                {"question": question, "conversationHistory": history},
            )
        except GrantiFuelError as e:
            logger.error(f"Error getting answer: {e}")
            self.state.toast(
                "Failed to get answer",
                "There was an error processing your question. Please try again.",
                variant="destructive",
            )
            return None

        answer = (data or {}).get("answer") or ""
        # the user turn is kept only once it has been answered
        self.conversation.append(ChatMessage("user", question))
        self.conversation.append(ChatMessage("assistant", answer))
        return answer

    def reset_conversation(self) -> None:
        self.conversation.clear()

    async def generate_application_content(
        self,
        grant: Union[Grant, GrantRecommendation],
        artist: Artist,
    ) -> GeneratedApplicationContent:
        """Ask for draft form content for ``grant`` written as ``artist``.

        Raises:
            FormValidationError: Grant or artist missing.
            GrantiFuelError: The request failed.
        """
        if grant is None or artist is None:
            raise FormValidationError(
                {"form": "Grant details or artist profile information is missing."}
            )

        body: Dict[str, Any] = {}
        if isinstance(grant, Grant) and grant.is_persisted:
            body["grantId"] = grant.id
        deadline = grant.deadline
        body.update(
            {
                "artistId": artist.id,
                "grantName": grant.name,
                "grantOrganization": grant.organization,
                "grantRequirements": _requirements_text(grant),
                "grantDescription": grant.description or "",
                "grantAmount": grant.amount or "",
                "grantDeadline": format_date(deadline) if deadline else "",
                "artistName": artist.name,
                "artistBio": artist.bio or "",
                "artistGenre": ", ".join(artist.genres),
            }
        )

        self.is_generating = True
        try:
            data = await self.api.request_json(
                "POST", "/api/ai/generate-application-content", body
            )
        finally:
            self.is_generating = False

        content = GeneratedApplicationContent.model_validate((data or {}).get("content") or {})
        await self.onboarding.complete_task(
            OnboardingTask.AI_ASSISTANT_USED.value, {"feature": "application_content_generation"}
        )
        return content
