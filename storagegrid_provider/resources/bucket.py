"""storagegrid_s3_bucket resource.

Every attribute (name, region, object_lock_enabled) forces replacement,
so the bucket is never updated in place.
"""

from typing import Any

import httpx

from storagegrid_provider.diagnostics import Result
from storagegrid_provider.errors import StorageGridError, is_not_found
from storagegrid_provider.models import DEFAULT_REGION, BucketRecord
from storagegrid_provider.resources.base import Resource, error_result, removed_result


def bucket_to_state(bucket: BucketRecord) -> dict[str, Any]:
    return {
        "id": bucket.name,
        "name": bucket.name,
        "region": bucket.effective_region,
        "object_lock_enabled": bucket.object_lock_enabled,
    }


class S3BucketResource(Resource):
    type_name = "storagegrid_s3_bucket"

    def create(self, plan: dict[str, Any]) -> Result:
        name = plan["name"]
        region = plan.get("region") or DEFAULT_REGION
        object_lock_enabled = bool(plan.get("object_lock_enabled", False))
        try:
            self.client.create_bucket(name, region, object_lock_enabled)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Create S3 Bucket {name}", e)

        return Result(state={
            "id": name,
            "name": name,
            "region": region,
            "object_lock_enabled": object_lock_enabled,
        })

    def read(self, state: dict[str, Any]) -> Result:
        name = state["name"]
        try:
            bucket = self.client.get_bucket(name)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                return removed_result(
                    f"S3 Bucket {name} not found",
                    "The bucket may have been deleted outside of Terraform. Removing from state.",
                )
            return error_result(f"Unable to Read S3 Bucket {name}", e)
        return Result(state=bucket_to_state(bucket))

    def update(self, plan: dict[str, Any], state: dict[str, Any]) -> Result:
        return error_result(
            "Unexpected Update Call",
            "All attributes of this resource require replacement and should "
            "trigger a destroy/create instead of update.",
        )

    def delete(self, state: dict[str, Any]) -> Result:
        name = state["name"]
        try:
            self.client.delete_bucket(name)
        except (StorageGridError, httpx.HTTPError) as e:
            if is_not_found(e):
                return Result()
            return error_result(f"Unable to Delete S3 Bucket {name}", e)
        return Result()

    def import_state(self, import_id: str) -> Result:
        try:
            bucket = self.client.get_bucket(import_id)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Import S3 Bucket {import_id}", e)
        return Result(state=bucket_to_state(bucket))
