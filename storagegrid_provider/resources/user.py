"""storagegrid_user resource."""

import logging
from typing import Any

import httpx

from storagegrid_provider.diagnostics import Result
from storagegrid_provider.errors import StorageGridError, is_not_found
from storagegrid_provider.models import UserPayload, UserRecord
from storagegrid_provider.resources.base import Resource, error_result, removed_result

logger = logging.getLogger(__name__)

USER_PREFIX = "user/"


def user_to_state(user: UserRecord) -> dict[str, Any]:
    return {
        "id": user.id,
        "user_name": user.name,
        "unique_name": user.unique_name,
        "full_name": user.full_name,
        "account_id": user.account_id,
        "user_urn": user.user_urn,
        "federated": user.federated,
        "member_of": list(user.member_of),
        "disable": user.disable,
    }


class UserResource(Resource):
    """Manages a local tenant user.

    The password is write-only: it is set after create, and on update
    whenever the planned value differs from the stored one.
    """

    type_name = "storagegrid_user"

    @staticmethod
    def _payload(plan: dict[str, Any]) -> UserPayload:
        name = plan["user_name"]
        return UserPayload(
            unique_name=USER_PREFIX + name,
            full_name=plan.get("full_name") or name,
            member_of=list(plan.get("member_of") or []),
            disable=bool(plan.get("disable", False)),
        )

    def _with_password(self, state: dict[str, Any], password: Any) -> dict[str, Any]:
        if password:
            state["password"] = password
        return state

    def create(self, plan: dict[str, Any]) -> Result:
        payload = self._payload(plan)
        try:
            user = self.client.create_user(payload)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Error creating StorageGrid User: {plan['user_name']}", e)

        result = Result(state=user_to_state(user))
        password = plan.get("password")
        if password:
            try:
                self.client.change_user_password(user.unique_name, password)
            except (StorageGridError, httpx.HTTPError) as e:
                result.diagnostics.add_error(
                    "Error Setting User Password",
                    f"User {user.unique_name} was created but its password could not be set: {e}",
                )
                return result
        self._with_password(result.state, password)
        return result

    def read(self, state: dict[str, Any]) -> Result:
        user_id = state["id"]
        try:
            user = self.client.get_user(user_id)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                logger.info("User %s no longer exists, removing from state", user_id)
                return removed_result()
            return error_result("Error Reading StorageGrid User", f"Could not read user {user_id}: {e}")
        return Result(state=self._with_password(user_to_state(user), state.get("password")))

    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        user_id = state["id"]
        try:
            user = self.client.update_user(user_id, self._payload(plan))
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result("Error Updating StorageGrid User", f"Could not update user {user_id}: {e}")

        password = plan.get("password")
        if password and password != state.get("password"):
            try:
                self.client.change_user_password(user.unique_name, password)
            except (StorageGridError, httpx.HTTPError) as e:
                return error_result("Error Setting User Password", e)
        return Result(state=self._with_password(user_to_state(user), password))

    def delete(self, state: dict[str, Any]) -> Result:
        user_id = state["id"]
        try:
            self.client.delete_user(user_id)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                return Result()
            return error_result("Error Deleting StorageGrid User", f"Could not delete user with ID {user_id}: {e}")
        return Result()

    def import_state(self, import_id: str) -> Result:
        try:
            user = self.client.get_user(USER_PREFIX + import_id)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                return error_result(
                    "User Not Found",
                    f"Cannot import a user with unique name '{import_id}' because it does not exist.",
                )
            return error_result("Error Importing StorageGrid User", e)
        return Result(state=user_to_state(user))
