"""storagegrid_s3_bucket_lifecycle_configuration resource.

Rules are written as blocks:

    rule = [{
        "id": "expire-logs",
        "status": "Enabled",
        "filter": {"prefix": "logs/"},
        "expiration": {"days": 30, "date": None},
        "noncurrent_version_expiration": {"noncurrent_days": 7},
    }]
"""

from typing import Any, Optional

import httpx

from storagegrid_provider.diagnostics import Result
from storagegrid_provider.errors import StorageGridError
from storagegrid_provider.lifecycle import Expiration, LifecycleConfiguration, LifecycleRule
from storagegrid_provider.resources.base import Resource, error_result


def rule_from_block(block: dict[str, Any]) -> LifecycleRule:
    expiration: Optional[Expiration] = None
    raw_expiration = block.get("expiration")
    if raw_expiration:
        expiration = Expiration(
            days=raw_expiration.get("days"),
            date=raw_expiration.get("date"),
        )

    noncurrent = block.get("noncurrent_version_expiration")
    return LifecycleRule(
        id=block.get("id", ""),
        status=block.get("status", "Enabled"),
        prefix=(block.get("filter") or {}).get("prefix"),
        expiration=expiration,
        noncurrent_days=noncurrent.get("noncurrent_days") if noncurrent else None,
    )


def rule_to_block(rule: LifecycleRule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "status": rule.status,
        "filter": {"prefix": rule.prefix} if rule.prefix else None,
        "expiration": (
            {"days": rule.expiration.days, "date": rule.expiration.date}
            if rule.expiration is not None
            else None
        ),
        "noncurrent_version_expiration": (
            {"noncurrent_days": rule.noncurrent_days} if rule.noncurrent_days else None
        ),
    }


def configuration_from_plan(plan: dict[str, Any]) -> LifecycleConfiguration:
    return LifecycleConfiguration(rules=[rule_from_block(b) for b in plan.get("rule") or []])


def lifecycle_state(bucket_name: str, configuration: LifecycleConfiguration) -> dict[str, Any]:
    return {
        "id": bucket_name,
        "bucket_name": bucket_name,
        "rule": [rule_to_block(r) for r in configuration.rules],
    }


class LifecycleConfigurationResource(Resource):
    type_name = "storagegrid_s3_bucket_lifecycle_configuration"

    def _apply(self, plan: dict[str, Any], action: str) -> Result:
        bucket_name = plan["bucket_name"]
        configuration = configuration_from_plan(plan)
        try:
            self.client.put_bucket_lifecycle(bucket_name, configuration)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to {action} S3 Bucket Lifecycle Configuration for {bucket_name}", e)
        return Result(state=lifecycle_state(bucket_name, configuration))

    def create(self, plan: dict[str, Any]) -> Result:
        return self._apply(plan, "Create")

    def read(self, state: dict[str, Any]) -> Result:
        bucket_name = state["bucket_name"]
        try:
            configuration = self.client.get_bucket_lifecycle(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Read S3 Bucket Lifecycle Configuration for {bucket_name}", e)
        return Result(state=lifecycle_state(bucket_name, configuration))

    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        return self._apply(plan, "Update")

    def delete(self, state: dict[str, Any]) -> Result:
        bucket_name = state["bucket_name"]
        try:
            self.client.delete_bucket_lifecycle(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Delete S3 Bucket Lifecycle Configuration for {bucket_name}", e)
        return Result()

    def import_state(self, import_id: str) -> Result:
        try:
            configuration = self.client.get_bucket_lifecycle(import_id)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(
                f"Unable to Import S3 Bucket Lifecycle Configuration for {import_id}",
                f"Bucket does not exist or lifecycle configuration is not accessible: {e}",
            )
        return Result(state=lifecycle_state(import_id, configuration))
