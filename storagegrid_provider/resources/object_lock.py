"""storagegrid_s3_bucket_object_lock_configuration resource.

Object lock can only be switched on when a bucket is created. This
resource manages the default retention of a bucket that already has it.
"""

import logging
from typing import Any, Optional

import httpx

from storagegrid_provider.diagnostics import Result
from storagegrid_provider.errors import StorageGridError
from storagegrid_provider.models import ObjectLockConfig, RetentionSetting
from storagegrid_provider.resources.base import Resource, error_result

logger = logging.getLogger(__name__)

# Error text returned when object lock cannot be turned off
INVALID_ENABLED_VALUE = "Invalid ObjectLockEnabled value"


def retention_from_plan(plan: dict[str, Any]) -> Optional[RetentionSetting]:
    setting = plan.get("default_retention_setting")
    if not setting:
        return None
    return RetentionSetting(
        mode=setting.get("mode", ""),
        days=int(setting.get("days") or 0),
        years=int(setting.get("years") or 0),
    )


def object_lock_state(bucket_name: str, config: ObjectLockConfig) -> dict[str, Any]:
    retention = config.default_retention_setting
    return {
        "id": bucket_name,
        "bucket_name": bucket_name,
        "default_retention_setting": (
            {"mode": retention.mode, "days": retention.days, "years": retention.years}
            if retention is not None
            else None
        ),
    }


class ObjectLockConfigurationResource(Resource):
    type_name = "storagegrid_s3_bucket_object_lock_configuration"

    def create(self, plan: dict[str, Any]) -> Result:
        bucket_name = plan["bucket_name"]
        try:
            current = self.client.get_bucket_object_lock(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Check Current Object Lock Status for {bucket_name}", e)

        if not current.enabled:
            return error_result(
                "Object Lock Not Enabled on Bucket",
                f"Bucket {bucket_name} does not have object lock enabled. Object lock must be "
                "enabled at bucket creation time using the storagegrid_s3_bucket resource with "
                "object_lock_enabled=true. This resource can only be used on buckets that "
                "already have object lock enabled.",
            )
        return self._apply(plan, "Create")

    def _apply(self, plan: dict[str, Any], action: str) -> Result:
        bucket_name = plan["bucket_name"]
        retention = retention_from_plan(plan)
        try:
            self.client.update_bucket_object_lock(bucket_name, True, retention)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to {action} S3 Bucket Object Lock Configuration for {bucket_name}", e)
        return Result(state=object_lock_state(bucket_name, ObjectLockConfig(True, retention)))

    def read(self, state: dict[str, Any]) -> Result:
        bucket_name = state["bucket_name"]
        try:
            config = self.client.get_bucket_object_lock(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Read S3 Bucket Object Lock Configuration for {bucket_name}", e)
        return Result(state=object_lock_state(bucket_name, config))

    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        return self._apply(plan, "Update")

    def delete(self, state: dict[str, Any]) -> Result:
        """Disable object lock, or clear the default retention if the grid refuses."""
        bucket_name = state["bucket_name"]
        result = Result()
        try:
            self.client.update_bucket_object_lock(bucket_name, False)
            return result
        except (StorageGridError, httpx.HTTPError) as e:
            if INVALID_ENABLED_VALUE not in str(e):
                return error_result(
                    f"Unable to Delete S3 Bucket Object Lock Configuration for {bucket_name}", e
                )

        try:
            self.client.update_bucket_object_lock(bucket_name, True)
        except (StorageGridError, httpx.HTTPError) as e:
            logger.warning("Could not clear default retention of bucket %s: %s", bucket_name, e)
            result.diagnostics.add_warning(
                "Cannot Disable Object Lock",
                f"Object lock cannot be disabled on bucket {bucket_name} once enabled. The object "
                "lock configuration resource has been removed from Terraform state, but object "
                "lock will remain enabled on the bucket with no default retention settings.",
            )
            return result

        result.diagnostics.add_warning(
            "Object Lock Remains Enabled",
            f"Object lock cannot be disabled on bucket {bucket_name} once enabled. Default "
            "retention settings have been cleared, but object lock remains active.",
        )
        return result

    def import_state(self, import_id: str) -> Result:
        try:
            config = self.client.get_bucket_object_lock(import_id)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(
                f"Unable to Import S3 Bucket Object Lock Configuration for {import_id}",
                f"Bucket does not exist or object lock configuration is not accessible: {e}",
            )

        if not config.enabled:
            return error_result(
                "Object Lock Not Enabled on Bucket",
                f"Cannot import object lock configuration for bucket {import_id} because object lock "
                "is not enabled. This resource can only be used on buckets that have object lock enabled.",
            )
        return Result(state=object_lock_state(import_id, config))
