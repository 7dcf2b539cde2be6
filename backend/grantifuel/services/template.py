"""Reusable text templates (proposals, biographies, answers)."""

import logging
from typing import Any, Dict, List, Optional, Union

from grantifuel.errors import GrantiFuelError
from grantifuel.models.core import Template, TemplateCreate, TemplateType
from grantifuel.models.onboarding import OnboardingTask
from grantifuel.services.activity import ActivityService
from grantifuel.services.base import StateService, validate_form
from grantifuel.services.onboarding import OnboardingService

logger = logging.getLogger(__name__)

TEMPLATES_KEY = ("/api/templates",)


class TemplateService(StateService):
    def __init__(
        self,
        state,
        onboarding: Optional[OnboardingService] = None,
        activities: Optional[ActivityService] = None,
    ):
        super().__init__(state)
        self.onboarding = onboarding or OnboardingService(state)
        self.activities = activities or ActivityService(state)

    async def list_templates(self) -> List[Template]:
        return await self._fetch_list(TEMPLATES_KEY, Template)

    async def get_template(self, template_id: int) -> Template:
        return await self._fetch_one((TEMPLATES_KEY[0], template_id), Template, "Template", template_id)

    async def save_template(
        self,
        data: Union[TemplateCreate, Dict[str, Any]],
        template_id: Optional[int] = None,
    ) -> Optional[Template]:
        """Create (no id) or update a template; ``None`` after notifying a failure."""
        is_new = template_id is None
        try:
            form = validate_form(TemplateCreate, data)
            if form.user_id is None:
                form.user_id = self._current_user_id()
            if is_new:
                saved = await self.api.request_json("POST", TEMPLATES_KEY[0], form.to_payload())
            else:
                saved = await self.api.request_json(
                    "PUT", f"{TEMPLATES_KEY[0]}/{template_id}", form.to_payload()
                )
            template = Template.model_validate(saved)
        except GrantiFuelError as e:
            logger.warning(f"Saving template failed: {e}")
            self.state.toast(
                "Error saving template",
                "There was a problem saving your template. Please try again.",
                variant="destructive",
            )
            return None

        await self.activities.record(
            "CREATED" if is_new else "UPDATED",
            "TEMPLATE",
            template.id,
            {"templateName": template.name, "templateType": template.type},
        )
        self.queries.invalidate_queries(TEMPLATES_KEY)
        self.state.toast(
            f"Template {'created' if is_new else 'updated'} successfully",
            f'Your template "{template.name}" has been saved.',
        )
        if is_new:
            await self.onboarding.complete_task(
                OnboardingTask.FIRST_TEMPLATE_SAVED.value, {"templateId": template.id}
            )
        return template

    async def save_proposal_as_template(
        self, name: str, proposal: str, description: Optional[str] = None
    ) -> Optional[Template]:
        return await self.save_template(
            {
                "name": name,
                "content": proposal,
                "description": description,
                "type": TemplateType.PROPOSAL.value,
            }
        )
