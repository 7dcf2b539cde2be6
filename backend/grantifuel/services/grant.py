"""Grant catalogue reads, grant creation and the select-for-application hand-off."""

import logging
from typing import Any, Dict, List, Union

from grantifuel.errors import GrantiFuelError
from grantifuel.models.ai_helpers import GrantRecommendation
from grantifuel.models.core import Grant, GrantCreate
from grantifuel.services.base import StateService, validate_form
from grantifuel.storage import SELECTED_GRANT_KEY

logger = logging.getLogger(__name__)

GRANTS_KEY = ("/api/grants",)
NEW_APPLICATION_PATH = "/applications/new"


class GrantService(StateService):
    async def list_grants(self) -> List[Grant]:
        return await self._fetch_list(GRANTS_KEY, Grant)

    async def get_grant(self, grant_id: int) -> Grant:
        """Raises NotFoundError for an unknown id."""
        return await self._fetch_one((GRANTS_KEY[0], grant_id), Grant, "Grant", grant_id)

    async def create_grant(self, data: Union[GrantCreate, Dict[str, Any]]) -> Grant:
        form = validate_form(GrantCreate, data)
        created = await self.api.request_json("POST", GRANTS_KEY[0], form.to_payload())
        self.queries.invalidate_queries(GRANTS_KEY)
        grant = Grant.model_validate(created)
        logger.info(f"Created grant {grant.id}: {grant.name}")
        return grant

    def select_for_application(self, grant: Union[Grant, GrantRecommendation]) -> str:
        """Open the new-application screen for ``grant``.

        Persisted grants travel by id in the URL; AI recommendations are
        handed over once through session storage.
        """
        if isinstance(grant, Grant) and grant.is_persisted:
            return self.state.navigate(f"{NEW_APPLICATION_PATH}?grantId={grant.id}")

        payload = grant.to_payload()
        payload["aiRecommended"] = True
        if not self.state.session_storage.set_json(SELECTED_GRANT_KEY, payload):
            self.state.toast(
                "Error",
                "Failed to prepare application. Please try again.",
                variant="destructive",
            )
            raise GrantiFuelError("Failed to store the selected grant")
        return self.state.navigate(NEW_APPLICATION_PATH)
