"""storagegrid_access_key resource."""

import logging
from typing import Any

import httpx

from storagegrid_provider.diagnostics import Result
from storagegrid_provider.errors import StorageGridError, is_not_found
from storagegrid_provider.models import AccessKeyRecord
from storagegrid_provider.resources.base import Resource, error_result, removed_result

logger = logging.getLogger(__name__)


def key_to_state(user_id: str, key: AccessKeyRecord) -> dict[str, Any]:
    return {
        "id": key.id,
        "user_id": user_id,
        "display_name": key.display_name,
        "expires": key.expires,
    }


class AccessKeyResource(Resource):
    """Manages an S3 access key of a user.

    The secret is only known at creation and is carried over from the
    previous state on every read. Keys cannot be changed in place.
    Import IDs have the form ``<user_id>/<key_id>``.
    """

    type_name = "storagegrid_access_key"

    def create(self, plan: dict[str, Any]) -> Result:
        user_id = plan["user_id"]
        try:
            key = self.client.create_access_key(user_id, expires=plan.get("expires"))
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Error Creating S3 Access Key for {user_id}", e)

        state = key_to_state(user_id, key)
        state["access_key"] = key.access_key
        state["secret_access_key"] = key.secret_access_key
        return Result(state=state)

    def _find(self, user_id: str, key_id: str) -> AccessKeyRecord:
        for key in self.client.list_access_keys(user_id):
            if key.id == key_id:
                return key
        raise StorageGridError(f"access key {key_id} not found")

    def read(self, state: dict[str, Any]) -> Result:
        user_id = state["user_id"]
        key_id = state["id"]
        try:
            key = self._find(user_id, key_id)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                logger.info("Access key %s no longer exists, removing from state", key_id)
                return removed_result()
            return error_result(f"Error Reading S3 Access Key {key_id}", e)

        new_state = key_to_state(user_id, key)
        new_state["access_key"] = state.get("access_key")
        new_state["secret_access_key"] = state.get("secret_access_key")
        return Result(state=new_state)

    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        return error_result(
            "S3 Access Key Cannot Be Updated",
            "Access keys are immutable; changing user_id or expires requires replacing the key.",
        )

    def delete(self, state: dict[str, Any]) -> Result:
        try:
            self.client.delete_access_key(state["user_id"], state["id"])
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                return Result()
            return error_result(f"Error Deleting S3 Access Key {state['id']}", e)
        return Result()

    def import_state(self, import_id: str) -> Result:
        user_id, sep, key_id = import_id.rpartition("/")
        if not sep or not user_id or not key_id:
            return error_result(
                "Invalid Import ID",
                f"Expected <user_id>/<key_id>, got '{import_id}'",
            )
        try:
            key = self._find(user_id, key_id)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Import S3 Access Key {key_id}", e)
        return Result(state=key_to_state(user_id, key))
