"""Read-only data sources."""

from dataclasses import asdict
from typing import Any

import httpx

from storagegrid_provider.diagnostics import Result
from storagegrid_provider.errors import StorageGridError
from storagegrid_provider.resources.base import DataSource, error_result
from storagegrid_provider.resources.group import GROUP_PREFIX, group_to_state
from storagegrid_provider.resources.lifecycle import lifecycle_state
from storagegrid_provider.resources.object_lock import object_lock_state
from storagegrid_provider.resources.user import USER_PREFIX, user_to_state
from storagegrid_provider.resources.versioning import versioning_state


class GroupDataSource(DataSource):
    type_name = "storagegrid_group"

    def read(self, config: dict[str, Any]) -> Result:
        name = config["group_name"]
        try:
            group = self.client.get_group(GROUP_PREFIX + name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result("Unable to Read StorageGrid Group", f"Could not read group {name}: {e}")
        return Result(state=group_to_state(group, group.s3_policy.to_json()))


class UserDataSource(DataSource):
    type_name = "storagegrid_user"

    def read(self, config: dict[str, Any]) -> Result:
        name = config["user_name"]
        try:
            user = self.client.get_user(USER_PREFIX + name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result("Unable to Read StorageGrid User", f"Could not read user {name}: {e}")
        return Result(state=user_to_state(user))


class S3BucketDataSource(DataSource):
    """Exposes the full bucket record, including compliance and delete status."""

    type_name = "storagegrid_s3_bucket"

    def read(self, config: dict[str, Any]) -> Result:
        name = config["name"]
        try:
            bucket = self.client.get_bucket(name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Read S3 Bucket {name}", e)

        state = asdict(bucket)
        state["id"] = bucket.name
        state["region"] = bucket.effective_region
        return Result(state=state)


class BucketVersioningDataSource(DataSource):
    type_name = "storagegrid_s3_bucket_versioning"

    def read(self, config: dict[str, Any]) -> Result:
        bucket_name = config["bucket_name"]
        try:
            status = self.client.get_bucket_versioning(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Read S3 Bucket Versioning for {bucket_name}", e)
        return Result(state=versioning_state(bucket_name, status))


class ObjectLockConfigurationDataSource(DataSource):
    type_name = "storagegrid_s3_bucket_object_lock_configuration"

    def read(self, config: dict[str, Any]) -> Result:
        bucket_name = config["bucket_name"]
        try:
            object_lock = self.client.get_bucket_object_lock(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Read S3 Bucket Object Lock Configuration for {bucket_name}", e)
        state = object_lock_state(bucket_name, object_lock)
        state["enabled"] = object_lock.enabled
        return Result(state=state)


class LifecycleConfigurationDataSource(DataSource):
    type_name = "storagegrid_s3_bucket_lifecycle_configuration"

    def read(self, config: dict[str, Any]) -> Result:
        bucket_name = config["bucket_name"]
        try:
            configuration = self.client.get_bucket_lifecycle(bucket_name)
        except (StorageGridError, httpx.HTTPError) as e:
            return error_result(f"Unable to Read S3 Bucket Lifecycle Configuration for {bucket_name}", e)
        return Result(state=lifecycle_state(bucket_name, configuration))
