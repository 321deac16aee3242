"""Tests for bucket, versioning, object lock and lifecycle resources."""

from unittest.mock import MagicMock

import httpx
import pytest

from storagegrid_provider.client import StorageGridClient
from storagegrid_provider.errors import APIError, NotFoundError, S3OperationError
from storagegrid_provider.lifecycle import Expiration, LifecycleConfiguration, LifecycleRule
from storagegrid_provider.models import (
    BucketRecord,
    ObjectLockConfig,
    RetentionSetting,
    VersioningStatus,
)
from storagegrid_provider.resources.bucket import S3BucketResource
from storagegrid_provider.resources.lifecycle import LifecycleConfigurationResource
from storagegrid_provider.resources.object_lock import ObjectLockConfigurationResource
from storagegrid_provider.resources.versioning import BucketVersioningResource

LOCK_CONFLICT = APIError(409, '{"message": "Object Lock configuration is present"}')


@pytest.fixture
def client() -> MagicMock:
    return MagicMock(spec=StorageGridClient)


class TestS3BucketResource:
    """Tests for S3BucketResource."""

    def test_create_defaults_region(self, client):
        result = S3BucketResource(client).create({"name": "photos"})

        client.create_bucket.assert_called_once_with("photos", "us-east-1", False)
        assert result.state == {
            "id": "photos",
            "name": "photos",
            "region": "us-east-1",
            "object_lock_enabled": False,
        }

    def test_create_failure(self, client):
        client.create_bucket.side_effect = APIError(409, "bucket exists")

        result = S3BucketResource(client).create({"name": "photos", "region": "eu-west-1"})

        assert result.diagnostics.errors[0].summary == "Unable to Create S3 Bucket photos"

    def test_read(self, client):
        client.get_bucket.return_value = BucketRecord.from_dict({
            "name": "photos", "region": "", "s3ObjectLock": {"enabled": True},
        })

        result = S3BucketResource(client).read({"name": "photos"})

        assert result.state["region"] == "us-east-1"
        assert result.state["object_lock_enabled"] is True

    def test_read_missing_bucket_warns_and_removes(self, client):
        client.get_bucket.side_effect = NotFoundError("bucket photos not found")

        result = S3BucketResource(client).read({"name": "photos"})

        assert result.removed is True
        assert result.diagnostics.warnings[0].summary == "S3 Bucket photos not found"
        assert not result.diagnostics.has_error()

    def test_read_transport_error_is_not_removal(self, client):
        client.get_bucket.side_effect = httpx.ConnectError("refused")

        result = S3BucketResource(client).read({"name": "photos"})

        assert result.removed is False
        assert result.diagnostics.has_error()

    def test_update_is_rejected(self, client):
        result = S3BucketResource(client).update({"name": "a"}, {"name": "a"})
        assert result.diagnostics.errors[0].summary == "Unexpected Update Call"

    def test_delete(self, client):
        result = S3BucketResource(client).delete({"name": "photos"})

        assert result.ok
        client.delete_bucket.assert_called_once_with("photos")

    def test_delete_of_vanished_bucket(self, client):
        client.delete_bucket.side_effect = NotFoundError("status: 404, body: ")
        assert S3BucketResource(client).delete({"name": "photos"}).ok

    def test_delete_timeout(self, client):
        client.delete_bucket.side_effect = httpx.ReadTimeout("timed out")

        result = S3BucketResource(client).delete({"name": "photos"})

        assert result.diagnostics.errors[0].summary == "Unable to Delete S3 Bucket photos"


class TestBucketVersioningResource:
    """Tests for BucketVersioningResource."""

    def test_create(self, client):
        result = BucketVersioningResource(client).create({"bucket_name": "b", "status": "Suspended"})

        client.update_bucket_versioning.assert_called_once_with("b", VersioningStatus.SUSPENDED)
        assert result.state == {"id": "b", "bucket_name": "b", "status": "Suspended"}

    def test_unset_status_written_as_enabled(self, client):
        result = BucketVersioningResource(client).update({"bucket_name": "b"}, {})

        client.update_bucket_versioning.assert_called_once_with("b", VersioningStatus.ENABLED)
        assert result.state["status"] == "Enabled"

    @pytest.mark.parametrize("status", ["Disabled", "maybe"])
    def test_unwritable_status_rejected(self, client, status):
        """Only Enabled and Suspended can be written, so nothing else reaches the API or the state."""
        result = BucketVersioningResource(client).create({"bucket_name": "b", "status": status})

        assert result.diagnostics.errors[0].summary == "Invalid Versioning Status"
        assert result.state is None
        client.update_bucket_versioning.assert_not_called()

    def test_object_lock_conflict(self, client):
        client.update_bucket_versioning.side_effect = LOCK_CONFLICT

        result = BucketVersioningResource(client).create({"bucket_name": "b", "status": "Suspended"})

        assert result.diagnostics.errors[0].summary == "Cannot Modify Versioning on Object Lock Enabled Bucket"

    def test_read_disabled(self, client):
        client.get_bucket_versioning.return_value = VersioningStatus.DISABLED

        result = BucketVersioningResource(client).read({"bucket_name": "b"})

        assert result.state["status"] == "Disabled"

    def test_delete_suspends(self, client):
        result = BucketVersioningResource(client).delete({"bucket_name": "b"})

        assert result.ok
        client.update_bucket_versioning.assert_called_once_with("b", VersioningStatus.SUSPENDED)

    def test_delete_with_object_lock_only_warns(self, client):
        client.update_bucket_versioning.side_effect = LOCK_CONFLICT

        result = BucketVersioningResource(client).delete({"bucket_name": "b"})

        assert result.ok
        assert result.diagnostics.warnings[0].summary == "Cannot Modify Versioning on Object Lock Enabled Bucket"

    def test_delete_other_error(self, client):
        client.update_bucket_versioning.side_effect = APIError(500, "boom")

        result = BucketVersioningResource(client).delete({"bucket_name": "b"})

        assert result.diagnostics.has_error()

    def test_import(self, client):
        client.get_bucket_versioning.return_value = VersioningStatus.ENABLED

        result = BucketVersioningResource(client).import_state("b")

        assert result.state == {"id": "b", "bucket_name": "b", "status": "Enabled"}


class TestObjectLockConfigurationResource:
    """Tests for ObjectLockConfigurationResource."""

    def test_create_requires_object_lock(self, client):
        client.get_bucket_object_lock.return_value = ObjectLockConfig(enabled=False)

        result = ObjectLockConfigurationResource(client).create({"bucket_name": "b"})

        assert result.diagnostics.errors[0].summary == "Object Lock Not Enabled on Bucket"
        client.update_bucket_object_lock.assert_not_called()

    def test_create_with_retention(self, client):
        client.get_bucket_object_lock.return_value = ObjectLockConfig(enabled=True)
        plan = {"bucket_name": "b", "default_retention_setting": {"mode": "compliance", "days": 0, "years": 3}}

        result = ObjectLockConfigurationResource(client).create(plan)

        client.update_bucket_object_lock.assert_called_once_with("b", True, RetentionSetting("compliance", 0, 3))
        assert result.state["default_retention_setting"] == {"mode": "compliance", "days": 0, "years": 3}

    def test_read_without_retention(self, client):
        client.get_bucket_object_lock.return_value = ObjectLockConfig(enabled=True)

        result = ObjectLockConfigurationResource(client).read({"bucket_name": "b"})

        assert result.state["default_retention_setting"] is None

    def test_delete_disables(self, client):
        result = ObjectLockConfigurationResource(client).delete({"bucket_name": "b"})

        assert result.ok
        assert not result.diagnostics
        client.update_bucket_object_lock.assert_called_once_with("b", False)

    def test_delete_falls_back_to_clearing_retention(self, client):
        """Grids that refuse to disable object lock get their retention cleared."""
        client.update_bucket_object_lock.side_effect = [APIError(400, "Invalid ObjectLockEnabled value"), None]

        result = ObjectLockConfigurationResource(client).delete({"bucket_name": "b"})

        assert result.ok
        assert client.update_bucket_object_lock.call_args_list[1].args == ("b", True)
        assert result.diagnostics.warnings[0].summary == "Object Lock Remains Enabled"

    def test_delete_fallback_failure_warns(self, client):
        client.update_bucket_object_lock.side_effect = [
            APIError(400, "Invalid ObjectLockEnabled value"),
            APIError(500, "boom"),
        ]

        result = ObjectLockConfigurationResource(client).delete({"bucket_name": "b"})

        assert result.ok
        assert result.diagnostics.warnings[0].summary == "Cannot Disable Object Lock"

    def test_delete_other_error(self, client):
        client.update_bucket_object_lock.side_effect = APIError(500, "boom")

        result = ObjectLockConfigurationResource(client).delete({"bucket_name": "b"})

        assert result.diagnostics.has_error()
        assert client.update_bucket_object_lock.call_count == 1

    def test_import(self, client):
        client.get_bucket_object_lock.return_value = ObjectLockConfig(
            enabled=True, default_retention_setting=RetentionSetting("governance", years=1),
        )

        result = ObjectLockConfigurationResource(client).import_state("locked")

        assert result.state == {
            "id": "locked",
            "bucket_name": "locked",
            "default_retention_setting": {"mode": "governance", "days": 0, "years": 1},
        }

    def test_import_requires_object_lock(self, client):
        """A bucket without object lock cannot be imported."""
        client.get_bucket_object_lock.return_value = ObjectLockConfig(enabled=False)

        result = ObjectLockConfigurationResource(client).import_state("plain")

        assert result.state is None
        assert result.diagnostics.errors[0].summary == "Object Lock Not Enabled on Bucket"
        assert "bucket plain" in result.diagnostics.errors[0].detail


class TestLifecycleConfigurationResource:
    """Tests for LifecycleConfigurationResource."""

    PLAN = {
        "bucket_name": "b",
        "rule": [{
            "id": "expire-logs",
            "status": "Enabled",
            "filter": {"prefix": "logs/"},
            "expiration": {"days": 30, "date": None},
            "noncurrent_version_expiration": {"noncurrent_days": 7},
        }],
    }

    def test_create(self, client):
        result = LifecycleConfigurationResource(client).create(self.PLAN)

        bucket_name, configuration = client.put_bucket_lifecycle.call_args.args
        assert bucket_name == "b"
        assert configuration.rules == [LifecycleRule(
            id="expire-logs",
            status="Enabled",
            prefix="logs/",
            expiration=Expiration(days=30),
            noncurrent_days=7,
        )]
        assert result.state["rule"] == self.PLAN["rule"]

    def test_read(self, client):
        client.get_bucket_lifecycle.return_value = LifecycleConfiguration(rules=[
            LifecycleRule(id="r1", expiration=Expiration(date="2025-06-01T00:00:00.000Z")),
        ])

        result = LifecycleConfigurationResource(client).read({"bucket_name": "b"})

        assert result.state["rule"] == [{
            "id": "r1",
            "status": "Enabled",
            "filter": None,
            "expiration": {"days": None, "date": "2025-06-01T00:00:00.000Z"},
            "noncurrent_version_expiration": None,
        }]

    def test_s3_failure(self, client):
        client.put_bucket_lifecycle.side_effect = S3OperationError("failed after retry")

        result = LifecycleConfigurationResource(client).update(self.PLAN, {})

        assert result.diagnostics.errors[0].summary == "Unable to Update S3 Bucket Lifecycle Configuration for b"

    def test_delete(self, client):
        assert LifecycleConfigurationResource(client).delete({"bucket_name": "b"}).ok
        client.delete_bucket_lifecycle.assert_called_once_with("b")
