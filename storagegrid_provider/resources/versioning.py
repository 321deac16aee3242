"""storagegrid_s3_bucket_versioning resource."""

from typing import Any

import httpx

from storagegrid_provider.diagnostics import Result
from storagegrid_provider.errors import DecodeError, StorageGridError
from storagegrid_provider.models import VersioningStatus
from storagegrid_provider.resources.base import Resource, error_result

# Error text returned when versioning is pinned by object lock
OBJECT_LOCK_CONFLICT = "Object Lock configuration is present"

OBJECT_LOCK_CONFLICT_SUMMARY = "Cannot Modify Versioning on Object Lock Enabled Bucket"


def versioning_state(bucket_name: str, status: VersioningStatus) -> dict[str, Any]:
    return {"id": bucket_name, "bucket_name": bucket_name, "status": status.value}


class BucketVersioningResource(Resource):
    """Manages the versioning status of a bucket.

    Removing the resource suspends versioning. Buckets with object lock
    keep versioning enabled no matter what.
    """

    type_name = "storagegrid_s3_bucket_versioning"

    def _apply(self, plan: dict[str, Any], action: str) -> Result:
        bucket_name = plan["bucket_name"]
        try:
            status = VersioningStatus.parse(plan.get("status"))
        except DecodeError as e:
            return error_result("Invalid Versioning Status", str(e))

        try:
            self.client.update_bucket_versioning(bucket_name, status)
        except (StorageGridError, httpx.HTTPError) as e:
            if OBJECT_LOCK_CONFLICT in str(e):
                return error_result(
                    OBJECT_LOCK_CONFLICT_SUMMARY,
                    f"Bucket {bucket_name} has object lock enabled. When object lock is enabled, "
                    "versioning cannot be modified. Object lock requires versioning to be "
                    "enabled and this cannot be changed.",
                )
            return error_result(f"Unable to {action} S3 Bucket Versioning Configuration for {bucket_name}", e)
        return Result(state=versioning_state(bucket_name, status))

    def create(self, plan: dict[str, Any]) -> Result:
        return self._apply(plan, "Create")

    def read(self, state: dict[str, Any]) -> Result:
        bucket_name = state["bucket_name"]
        try:
            status = self.client.get_bucket_versioning(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Read S3 Bucket Versioning Configuration for {bucket_name}", e)
        return Result(state=versioning_state(bucket_name, status))

    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        return self._apply(plan, "Update")

    def delete(self, state: dict[str, Any]) -> Result:
        bucket_name = state["bucket_name"]
        try:
            self.client.update_bucket_versioning(bucket_name, VersioningStatus.SUSPENDED)
        except (StorageGridError, httpx.HTTPError) as e:
            if OBJECT_LOCK_CONFLICT not in str(e):
                return error_result(
                    f"Unable to Delete S3 Bucket Versioning Configuration for {bucket_name}", e
                )
            result = Result()
            result.diagnostics.add_warning(
                OBJECT_LOCK_CONFLICT_SUMMARY,
                f"Bucket {bucket_name} has object lock enabled. Versioning state cannot be "
                "changed when object lock is present. The versioning configuration resource "
                "has been removed from Terraform state, but the bucket will retain its current "
                "versioning settings.",
            )
            return result
        return Result()

    def import_state(self, import_id: str) -> Result:
        try:
            status = self.client.get_bucket_versioning(import_id)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(
                f"Unable to Import S3 Bucket Versioning Configuration for {import_id}",
                f"Bucket does not exist or versioning configuration is not accessible: {e}",
            )
        return Result(state=versioning_state(import_id, status))
