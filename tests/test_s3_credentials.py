"""Tests for the temporary S3 credential manager."""

import threading
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from storagegrid_provider.errors import APIError, S3OperationError
from storagegrid_provider.models import TemporaryS3Credential
from storagegrid_provider.s3_credentials import S3CredentialManager


def credential(n: int) -> TemporaryS3Credential:
    return TemporaryS3Credential(
        access_key=f"AK{n}",
        secret_key=f"SK{n}",
        credential_id=f"tmp-{n}",
        expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetBucketLifecycleConfiguration")


class TestGetS3Client:
    """Tests for lazy credential acquisition."""

    @pytest.fixture
    def api(self) -> MagicMock:
        api = MagicMock()
        api.endpoint_url = "https://grid.example.com:9443"
        api.create_temporary_access_key.side_effect = [credential(1), credential(2)]
        return api

    @patch("storagegrid_provider.s3_client.boto3.client")
    def test_client_is_cached(self, mock_boto_client: MagicMock, api: MagicMock):
        """Only one credential is minted for repeated calls."""
        manager = S3CredentialManager(api)

        first = manager.get_s3_client()
        second = manager.get_s3_client()

        assert first is second
        api.create_temporary_access_key.assert_called_once()
        mock_boto_client.assert_called_once()

    @patch("storagegrid_provider.s3_client.boto3.client")
    def test_endpoint_derived_from_management_url(self, mock_boto_client: MagicMock, api: MagicMock):
        """The S3 client talks to port 10443 of the management host."""
        S3CredentialManager(api).get_s3_client()

        kwargs = mock_boto_client.call_args.kwargs
        assert kwargs["endpoint_url"] == "https://grid.example.com:10443"
        assert kwargs["aws_access_key_id"] == "AK1"
        assert kwargs["aws_secret_access_key"] == "SK1"

    @patch("storagegrid_provider.s3_client.boto3.client")
    def test_explicit_s3_endpoint(self, mock_boto_client: MagicMock, api: MagicMock):
        S3CredentialManager(api, s3_endpoint="https://s3.example.com").get_s3_client()

        assert mock_boto_client.call_args.kwargs["endpoint_url"] == "https://s3.example.com"

    def test_key_creation_failure(self, api: MagicMock):
        """A failed key request is reported as an S3 operation error."""
        api.create_temporary_access_key.side_effect = APIError(403, "forbidden")

        with pytest.raises(S3OperationError, match="failed to create temporary access key"):
            S3CredentialManager(api).get_s3_client()


class TestExecute:
    """Tests for the single refresh-and-retry on auth errors."""

    @pytest.fixture
    def api(self) -> MagicMock:
        api = MagicMock()
        api.endpoint_url = "https://grid.example.com:9443"
        api.create_temporary_access_key.side_effect = [credential(1), credential(2), credential(3)]
        return api

    @pytest.fixture
    def mock_boto_client(self):
        with patch("storagegrid_provider.s3_client.boto3.client") as mock_boto_client:
            mock_boto_client.side_effect = lambda *args, **kwargs: MagicMock(name=kwargs["aws_access_key_id"])
            yield mock_boto_client

    def test_success_without_retry(self, api, mock_boto_client):
        manager = S3CredentialManager(api)
        operation = MagicMock(return_value="ok")

        assert manager.execute(operation, "reading") == "ok"
        assert operation.call_count == 1

    def test_expired_token_retries_once(self, api, mock_boto_client):
        """ExpiredToken mints exactly one new key and retries exactly once."""
        manager = S3CredentialManager(api)
        operation = MagicMock(side_effect=[client_error("ExpiredToken"), "ok"])

        result = manager.execute(operation, "reading")

        assert result == "ok"
        assert operation.call_count == 2
        assert api.create_temporary_access_key.call_count == 2
        api.delete_temporary_access_key.assert_called_once_with("tmp-1")
        assert manager.credential.credential_id == "tmp-2"

    def test_retry_uses_new_client(self, api, mock_boto_client):
        """The retry runs against the client built from the fresh key."""
        manager = S3CredentialManager(api)
        seen = []

        def operation(s3):
            seen.append(s3)
            if len(seen) == 1:
                raise client_error("AccessDenied")
            return "ok"

        manager.execute(operation, "reading")

        assert seen[0] is not seen[1]

    def test_second_failure_surfaces(self, api, mock_boto_client):
        """A failing retry raises S3OperationError without a third attempt."""
        manager = S3CredentialManager(api)
        operation = MagicMock(side_effect=[client_error("ExpiredToken"), client_error("ExpiredToken")])

        with pytest.raises(S3OperationError, match="failed after retry") as exc_info:
            manager.execute(operation, "reading")

        assert operation.call_count == 2
        assert api.create_temporary_access_key.call_count == 2
        assert isinstance(exc_info.value.__cause__, ClientError)

    def test_non_auth_error_not_retried(self, api, mock_boto_client):
        """Other S3 errors surface immediately."""
        manager = S3CredentialManager(api)
        operation = MagicMock(side_effect=client_error("NoSuchBucket"))

        with pytest.raises(S3OperationError, match="error reading"):
            manager.execute(operation, "reading")

        assert operation.call_count == 1
        api.delete_temporary_access_key.assert_not_called()

    def test_refresh_of_replaced_key_reuses_client(self, api, mock_boto_client):
        """A refresh for a key that was already replaced neither revokes nor mints."""
        manager = S3CredentialManager(api)
        manager.get_s3_client()
        stale = manager.credential
        fresh_client = manager.refresh(stale)

        assert manager.refresh(stale) is fresh_client
        assert api.create_temporary_access_key.call_count == 2
        api.delete_temporary_access_key.assert_called_once_with("tmp-1")

    def test_concurrent_failures_share_one_refresh(self, api):
        """Calls failing on the same expired key share one replacement key."""
        barrier = threading.Barrier(2, timeout=5)
        results = []

        def operation(s3):
            if s3.access_key == "AK1":
                barrier.wait()
                raise client_error("ExpiredToken")
            return "ok"

        def run():
            results.append(manager.execute(operation, "reading"))

        with patch("storagegrid_provider.s3_client.boto3.client") as mock_boto_client:
            mock_boto_client.side_effect = lambda *args, **kwargs: SimpleNamespace(
                access_key=kwargs["aws_access_key_id"],
            )
            manager = S3CredentialManager(api)
            threads = [threading.Thread(target=run) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=10)

        assert results == ["ok", "ok"]
        assert api.create_temporary_access_key.call_count == 2
        api.delete_temporary_access_key.assert_called_once_with("tmp-1")
        assert manager.credential.credential_id == "tmp-2"


class TestCleanup:
    """Tests for credential revocation."""

    @patch("storagegrid_provider.s3_client.boto3.client")
    def test_cleanup_revokes_key(self, mock_boto_client: MagicMock):
        api = MagicMock()
        api.endpoint_url = "https://grid.example.com:9443"
        api.create_temporary_access_key.return_value = credential(1)
        manager = S3CredentialManager(api)
        manager.get_s3_client()

        manager.cleanup()
        manager.cleanup()

        api.delete_temporary_access_key.assert_called_once_with("tmp-1")
        assert manager.credential is None

    def test_cleanup_without_credential(self):
        """Nothing is revoked when no key was issued."""
        api = MagicMock()

        S3CredentialManager(api).cleanup()

        api.delete_temporary_access_key.assert_not_called()

    @patch("storagegrid_provider.s3_client.boto3.client")
    def test_revocation_failure_is_logged(self, mock_boto_client: MagicMock, caplog):
        """A failed revocation is logged and not raised."""
        api = MagicMock()
        api.endpoint_url = "https://grid.example.com:9443"
        api.create_temporary_access_key.return_value = credential(1)
        api.delete_temporary_access_key.side_effect = APIError(500, "down")
        manager = S3CredentialManager(api)
        manager.get_s3_client()

        manager.cleanup()

        assert "Failed to delete temporary access key tmp-1" in caplog.text
