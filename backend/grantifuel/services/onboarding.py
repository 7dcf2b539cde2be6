"""Onboarding task tracking: which first-time actions a user has completed."""

import logging
from typing import Any, Dict, List, Optional, Set

from grantifuel.errors import GrantiFuelError, user_message
from grantifuel.models.onboarding import ONBOARDING_TASKS, UserOnboarding
from grantifuel.mutation import Mutation
from grantifuel.services.base import StateService, parse_list

logger = logging.getLogger(__name__)

ONBOARDING_KEY = ("/api/onboarding",)


class OnboardingService(StateService):
    """Completing a task is idempotent: cached or in-flight tasks are skipped."""

    def __init__(self, state):
        super().__init__(state)
        self._in_flight: Set[str] = set()
        self.complete_mutation: Mutation[Dict[str, Any], Any] = Mutation(
            self._post_completion,
            on_error=self._on_error,
            on_settled=self._on_settled,
            name="complete onboarding task",
        )

    async def _query_tasks(self, key) -> List[Dict[str, Any]]:
        try:
            data = await self.api.request_json("GET", ONBOARDING_KEY[0])
        except GrantiFuelError as e:
            logger.warning(f"Could not load onboarding tasks: {e}")
            return []
        return data if isinstance(data, list) else []

    async def get_tasks(self) -> List[UserOnboarding]:
        data = await self.queries.fetch_query(ONBOARDING_KEY, self._query_tasks)
        return parse_list(UserOnboarding, data)

    def cached_tasks(self) -> List[UserOnboarding]:
        return parse_list(UserOnboarding, self.queries.get_query_data(ONBOARDING_KEY))

    def has_completed_task(self, task: str) -> bool:
        return any(t.task == task for t in self.cached_tasks())

    async def _post_completion(self, variables: Dict[str, Any]) -> Any:
        return await self.api.request_json("POST", "/api/onboarding/complete", variables)

    def _on_error(self, error: GrantiFuelError, _variables: Dict[str, Any]) -> None:
        self.state.toast(
            "Error completing task",
            user_message(error, "Failed to complete onboarding task"),
            variant="destructive",
        )

    def _on_settled(self, _result: Any, _error: Any, variables: Dict[str, Any]) -> None:
        self._in_flight.discard(variables["task"])

    async def complete_task(self, task: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """Record ``task`` as done. Returns True only if a request was sent and succeeded."""
        if self.has_completed_task(task) or task in self._in_flight:
            logger.debug("Onboarding task %s already completed or pending", task)
            return False

        self._in_flight.add(task)
        variables: Dict[str, Any] = {"task": task, "data": data}
        try:
            result = await self.complete_mutation.mutate_async(variables)
        except GrantiFuelError:
            return False

        if isinstance(result, dict) and result.get("task") == task:
            record = result
        else:
            record = {"task": task, "data": data}
        self.queries.set_query_data(ONBOARDING_KEY, lambda old: list(old or []) + [record])
        self.queries.invalidate_queries(ONBOARDING_KEY)
        await self.get_tasks()
        return True

    def progress(self) -> Dict[str, Any]:
        """Checklist progress over the known onboarding tasks."""
        done = {t.task for t in self.cached_tasks()}
        completed = sum(1 for task in ONBOARDING_TASKS if task in done)
        total = len(ONBOARDING_TASKS)
        return {
            "completed": completed,
            "total": total,
            "percentage": round(completed / total * 100) if total else 0,
        }
