"""Admin-only user management. The server enforces authorisation."""

import logging
from typing import Any, Dict, List, Optional, Union

from grantifuel.errors import GrantiFuelError, user_message
from grantifuel.models.core import User, UserRole
from grantifuel.mutation import Mutation
from grantifuel.services.base import StateService

logger = logging.getLogger(__name__)

USERS_KEY = ("/api/users",)


class UserAdminService(StateService):
    def __init__(self, state):
        super().__init__(state)
        self.update_mutation: Mutation[Dict[str, Any], User] = Mutation(
            self._update,
            on_success=self._on_updated,
            on_error=self._on_error,
            name="update user",
        )

    async def list_users(self) -> List[User]:
        return await self._fetch_list(USERS_KEY, User)

    async def _update(self, variables: Dict[str, Any]) -> User:
        user_id = variables.pop("user_id")
        data = await self.api.request_json("PATCH", f"{USERS_KEY[0]}/{user_id}", variables)
        return User.model_validate(data)

    def _on_updated(self, user: User, _variables: Dict[str, Any]) -> None:
        self.queries.invalidate_queries(USERS_KEY)
        self.state.toast("User updated", "User role or status has been updated successfully.")

    def _on_error(self, error: GrantiFuelError, _variables: Dict[str, Any]) -> None:
        self.state.toast("Update failed", user_message(error, "Failed to update user."), variant="destructive")

    async def update_role(self, user_id: int, role: Union[UserRole, str]) -> Optional[User]:
        role_value = UserRole(role).value
        return await self.update_mutation.mutate({"user_id": user_id, "role": role_value})

    async def set_active(self, user_id: int, active: bool) -> Optional[User]:
        return await self.update_mutation.mutate({"user_id": user_id, "active": active})
