"""Append-only activity log writes and the recent-activity feed."""

import logging
from typing import Any, Dict, List, Optional

from grantifuel.errors import GrantiFuelError
from grantifuel.models.core import Activity, ActivityCreate
from grantifuel.services.base import StateService

logger = logging.getLogger(__name__)

ACTIVITIES_KEY = ("/api/activities",)


class ActivityService(StateService):
    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[Activity]:
        """Best-effort: a failed write is logged, never raised."""
        entry = ActivityCreate(
            user_id=self._current_user_id(),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
        try:
            data = await self.api.request_json("POST", ACTIVITIES_KEY[0], entry.to_payload())
        except GrantiFuelError as e:
            logger.warning(f"Could not record {action} activity for {entity_type} {entity_id}: {e}")
            return None
        self.queries.invalidate_queries(ACTIVITIES_KEY)
        return Activity.model_validate(data) if isinstance(data, dict) else None

    async def list_recent(self, limit: int = 10) -> List[Activity]:
        activities = await self._fetch_list(ACTIVITIES_KEY, Activity)
        activities.sort(key=lambda a: (a.created_at is not None, a.created_at), reverse=True)
        return activities[:limit]
