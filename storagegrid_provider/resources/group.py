"""storagegrid_group resource.

State attributes:
    group_name, id, account_id, display_name, unique_name, group_urn,
    federated, management_read_only,
    policies = {"s3": <policy JSON string>, "management": {<six flags>}}

The S3 policy is kept as the user wrote it as long as the API's copy is
semantically equivalent, so reformatting or reordering never shows as
a change.
"""

import logging
from dataclasses import fields
from typing import Any, Optional

import httpx

from storagegrid_provider.diagnostics import Diagnostics, Result
from storagegrid_provider.errors import DecodeError, StorageGridError, is_not_found
from storagegrid_provider.models import GroupPayload, GroupRecord, ManagementPolicy
from storagegrid_provider.policy import S3Policy, policies_are_equivalent
from storagegrid_provider.resources.base import Resource, error_result, removed_result

logger = logging.getLogger(__name__)

GROUP_PREFIX = "group/"


def management_from_plan(plan: dict[str, Any]) -> ManagementPolicy:
    """Read the management flags of a plan; unset flags are false."""
    flags = (plan.get("policies") or {}).get("management") or {}
    return ManagementPolicy(**{f.name: bool(flags.get(f.name, False)) for f in fields(ManagementPolicy)})


def management_to_state(policy: ManagementPolicy) -> dict[str, bool]:
    return {f.name: getattr(policy, f.name) for f in fields(ManagementPolicy)}


def group_to_state(group: GroupRecord, s3_policy: str) -> dict[str, Any]:
    return {
        "id": group.id,
        "group_name": group.name,
        "display_name": group.display_name,
        "unique_name": group.unique_name,
        "account_id": group.account_id,
        "group_urn": group.group_urn,
        "federated": group.federated,
        "management_read_only": group.management_read_only,
        "policies": {
            "s3": s3_policy,
            "management": management_to_state(group.management),
        },
    }


def plan_policy(planned: Optional[str], current: Optional[str], diagnostics: Diagnostics) -> Optional[str]:
    """Suppress a policy diff that is only formatting.

    Returns the current state value when it is equivalent to the planned
    one, otherwise the planned value.
    """
    if planned is None or current is None:
        return planned
    try:
        equal = policies_are_equivalent(planned, current)
    except DecodeError as e:
        diagnostics.add_error("S3 Policy Comparison Error", f"Failed to compare JSON strings: {e}")
        return planned
    return current if equal else planned


class GroupResource(Resource):
    """Manages a tenant group and its policies."""

    type_name = "storagegrid_group"

    def _payload(self, group_name: str, plan: dict[str, Any]) -> tuple[GroupPayload, str]:
        """Build the request body and return it with the policy text it was built from."""
        policy_text = (plan.get("policies") or {}).get("s3") or "{}"
        payload = GroupPayload(
            unique_name=GROUP_PREFIX + group_name,
            display_name=group_name,
            s3_policy=S3Policy.from_json(policy_text),
            management=management_from_plan(plan),
            management_read_only=bool(plan.get("management_read_only", False)),
        )
        return payload, policy_text

    def create(self, plan: dict[str, Any]) -> Result:
        group_name = plan["group_name"]
        try:
            payload, policy_text = self._payload(group_name, plan)
        except DecodeError as e:
            return error_result("Invalid S3 Policy JSON", f"Could not unmarshal the provided S3 policy string: {e}")

        try:
            group = self.client.create_group(payload)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(
                f"Error creating StorageGrid Group: {group_name}",
                f"Could not create group, unexpected error: {e}",
            )

        state = group_to_state(group, policy_text)
        state["group_name"] = group_name
        state["policies"]["management"] = management_to_state(payload.management)
        return Result(state=state)

    def read(self, state: dict[str, Any]) -> Result:
        group_id = state["id"]
        try:
            group = self.client.get_group(group_id)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                logger.info("Group %s no longer exists, removing from state", group_id)
                return removed_result()
            return error_result(
                "Error Reading StorageGrid Group",
                f"Could not read StorageGrid group {group_id}: {e}",
            )

        result = Result()
        api_policy = group.s3_policy.to_json()
        state_policy = (state.get("policies") or {}).get("s3")
        s3_policy = api_policy
        if state_policy:
            try:
                if policies_are_equivalent(api_policy, state_policy):
                    s3_policy = state_policy
            except DecodeError as e:
                result.diagnostics.add_error("JSON Comparison Error", f"Failed to compare S3 policies: {e}")
                return result

        result.state = group_to_state(group, s3_policy)
        return result

    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        group_name = state["group_name"]
        group_id = state["id"]
        try:
            payload, policy_text = self._payload(group_name, plan)
        except DecodeError as e:
            return error_result("Invalid S3 Policy JSON", f"Could not unmarshal the provided S3 policy string: {e}")

        try:
            self.client.update_group(group_id, payload)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(
                "Error Updating StorageGrid Group",
                f"Could not update group policies for ID {group_name}: {e}",
            )

        try:
            group = self.client.get_group(group_id)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(
                "Error Reading StorageGrid Group",
                f"Could not read updated group data for {group_name} after update: {e}",
            )

        new_state = group_to_state(group, policy_text)
        new_state["group_name"] = group_name
        return Result(state=new_state)

    def delete(self, state: dict[str, Any]) -> Result:
        group_id = state["id"]
        try:
            self.client.delete_group(group_id)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(
                "Error Deleting StorageGrid Group",
                f"Could not delete group with ID {group_id}: {e}",
            )
        return Result()

    def import_state(self, import_id: str) -> Result:
        try:
            group = self.client.get_group(GROUP_PREFIX + import_id)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                return error_result(
                    "Group Not Found",
                    f"Cannot import a group with unique name '{import_id}' because it does not exist.",
                )
            return error_result(
                "Error Importing StorageGrid Group",
                f"Could not import StorageGrid group with unique name {import_id}: {e}",
            )

        state = group_to_state(group, group.s3_policy.to_json())
        state["display_name"] = group.name
        return Result(state=state)
