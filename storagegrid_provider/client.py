"""StorageGridClient - tenant management API client.

Handles the management API session and every management call the
provider makes:
- Sign-in and bearer-token requests
- Buckets, with a 5 minute bucket list cache
- Bucket versioning and object lock
- Users, user S3 access keys and groups
- Lifecycle configuration, over the S3 protocol with a temporary key

Example:
    client = StorageGridClient(
        endpoint="https://grid.example.com:9443",
        account_id="12345678901234567890",
        username="root",
        password="secret",
    )
    bucket = client.get_bucket("photos")
"""

import json
import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import quote

import httpx
from botocore.exceptions import ClientError

from storagegrid_provider.errors import (
    APIError,
    AuthenticationError,
    DecodeError,
    NotFoundError,
    StorageGridError,
)
from storagegrid_provider.lifecycle import LifecycleConfiguration
from storagegrid_provider.models import (
    AccessKeyRecord,
    BucketRecord,
    GroupPayload,
    GroupRecord,
    ObjectLockConfig,
    RetentionSetting,
    TemporaryS3Credential,
    UserPayload,
    UserRecord,
    VersioningStatus,
)
from storagegrid_provider.retry import is_timeout_error
from storagegrid_provider.s3_credentials import S3CredentialManager

logger = logging.getLogger(__name__)

# Bucket operations on large grids are slow
DEFAULT_TIMEOUT = 60.0

BUCKET_CACHE_TTL = 5 * 60

# Pause before checking whether a timed-out delete went through
DELETE_GRACE_SECONDS = 2.0

TEMPORARY_KEY_LIFETIME = timedelta(hours=24)

API_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.000Z"


def _segment(value: str) -> str:
    # Unique names such as "group/admins" are addressed with their slash
    return quote(value, safe="/")


class StorageGridClient:
    """Authenticated client for the StorageGRID tenant management API (v4).

    The client signs in once on construction. If any of ``account_id``,
    ``username`` or ``password`` is missing it stays unauthenticated.
    The bearer token is never refreshed.

    Args:
        endpoint: Management API base URL (e.g. "https://grid:9443")
        account_id: Tenant account ID
        username: Tenant user name
        password: Tenant user password
        s3_endpoint: S3 endpoint override for lifecycle operations
        timeout: Request timeout in seconds for every call
        transport: Optional httpx transport (used by tests)

    Raises:
        AuthenticationError: If sign-in fails.
    """

    def __init__(
        self,
        endpoint: str,
        account_id: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        s3_endpoint: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint_url = endpoint.rstrip("/")
        self.token: Optional[str] = None
        self._http = httpx.Client(
            base_url=self.endpoint_url,
            timeout=timeout,
            transport=transport,
        )

        self._bucket_cache: list[BucketRecord] = []
        self._bucket_cache_time: Optional[float] = None
        self._bucket_cache_lock = threading.Lock()

        self.s3 = S3CredentialManager(self, s3_endpoint=s3_endpoint)

        if account_id is None or username is None or password is None:
            return

        try:
            self.token = self.sign_in(account_id, username, password)
        except AuthenticationError:
            self._http.close()
            raise

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    # -- session -----------------------------------------------------------

    def sign_in(self, account_id: str, username: str, password: str) -> str:
        """Authenticate against ``/api/v4/authorize``.

        Returns:
            The bearer token.

        Raises:
            AuthenticationError: On a network error, a non-200 status or
                a response without a token.
        """
        payload = {
            "accountId": account_id,
            "username": username,
            "password": password,
            "cookie": True,
            "csrfToken": False,
        }
        logger.debug("Signing in to %s as %s", self.endpoint_url, username)

        try:
            response = self._http.post(
                "/api/v4/authorize",
                json=payload,
                headers={"accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"failed to sign in: {e}") from e

        if response.status_code != 200:
            raise AuthenticationError(
                f"failed to sign in: status: {response.status_code}, body: {response.text}"
            )

        try:
            token = response.json().get("data")
        except (json.JSONDecodeError, AttributeError) as e:
            raise AuthenticationError(f"failed to sign in: invalid auth response: {e}") from e

        if not isinstance(token, str) or not token:
            raise AuthenticationError("failed to sign in: no token in auth response")
        return token

    # -- request execution -------------------------------------------------

    def _do_request(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[dict] = None,
    ) -> bytes:
        """Execute an authenticated request and return the raw body.

        Raises:
            NotFoundError: On a 404 response.
            APIError: On any other status outside [200, 300).
            httpx.HTTPError: On transport failures, unchanged.
        """
        headers = {"accept": "application/json"}
        if self.token is not None:
            headers["Authorization"] = f"Bearer {self.token}"

        logger.debug("Executing %s request to URL: %s%s", method, self.endpoint_url, path)
        response = self._http.request(method, path, json=json_body, params=params, headers=headers)
        body = response.content

        if 200 <= response.status_code < 300:
            return body

        text = body.decode("utf-8", errors="replace")
        if response.status_code == 404:
            raise NotFoundError(f"status: 404, body: {text}", body=text)
        raise APIError(response.status_code, text)

    def _request_json(
        self,
        method: str,
        path: str,
        context: str,
        json_body: Optional[Any] = None,
        params: Optional[dict] = None,
    ) -> dict:
        """Execute a request and decode the JSON response envelope."""
        body = self._do_request(method, path, json_body=json_body, params=params)
        try:
            envelope = json.loads(body)
        except json.JSONDecodeError as e:
            raise DecodeError(f"error unmarshalling {context} response: {e}") from e
        if not isinstance(envelope, dict):
            raise DecodeError(f"error unmarshalling {context} response: not a JSON object")
        return envelope

    @staticmethod
    def _expect_success(envelope: dict, what: str) -> None:
        status = envelope.get("status")
        if status != "success":
            raise StorageGridError(f"{what} failed with status: {status}")

    @staticmethod
    def _decode(factory, data: Any, context: str):
        try:
            return factory(data)
        except (TypeError, AttributeError) as e:
            raise DecodeError(f"error unmarshalling {context} response: {e}") from e

    # -- buckets -----------------------------------------------------------

    def _fresh_bucket_cache(self) -> Optional[list[BucketRecord]]:
        cache_time = self._bucket_cache_time
        if not self._bucket_cache or cache_time is None:
            return None
        if time.monotonic() - cache_time >= BUCKET_CACHE_TTL:
            return None
        return list(self._bucket_cache)

    def get_bucket_list(self) -> list[BucketRecord]:
        """Return all buckets, from cache when it is under 5 minutes old."""
        buckets = self._fresh_bucket_cache()
        if buckets is not None:
            return buckets

        with self._bucket_cache_lock:
            buckets = self._fresh_bucket_cache()
            if buckets is not None:
                return buckets

            envelope = self._request_json("GET", "/api/v4/org/containers", "S3 bucket")
            data = envelope.get("data") or []
            if not isinstance(data, list):
                raise DecodeError("error unmarshalling S3 bucket response: data is not a list")
            records = [BucketRecord.from_dict(item) for item in data]

            self._bucket_cache = records
            self._bucket_cache_time = time.monotonic()
            return list(records)

    def invalidate_bucket_cache(self) -> None:
        with self._bucket_cache_lock:
            self._bucket_cache = []
            self._bucket_cache_time = None

    def get_bucket(self, name: str) -> BucketRecord:
        """Look up a bucket by name.

        Raises:
            NotFoundError: If no bucket has this name.
        """
        for bucket in self.get_bucket_list():
            if bucket.name == name:
                return bucket
        raise NotFoundError(f"bucket {name} not found")

    def create_bucket(self, name: str, region: str, object_lock_enabled: bool = False) -> None:
        """Create a bucket.

        Buckets created with object lock get a governance-mode default
        retention of one day, the lightest setting the grid accepts.
        """
        object_lock = ObjectLockConfig(enabled=object_lock_enabled)
        if object_lock_enabled:
            object_lock.default_retention_setting = RetentionSetting(mode="governance", days=1)

        payload = {"name": name, "region": region, "s3ObjectLock": object_lock.to_dict()}
        logger.info("Creating bucket %s in region %s", name, region)

        envelope = self._request_json(
            "POST", "/api/v4/org/containers", "bucket create", json_body=payload
        )
        self._expect_success(envelope, "bucket creation")
        self.invalidate_bucket_cache()

    def delete_bucket(self, name: str) -> None:
        """Delete a bucket.

        The grid sometimes drops the response to a slow delete that did
        succeed. On a timeout the bucket is looked up again, and a
        missing bucket counts as deleted.
        """
        logger.info("Deleting bucket %s", name)
        try:
            self._do_request("DELETE", f"/api/v4/org/containers/{_segment(name)}")
        except (httpx.HTTPError, StorageGridError) as e:
            if not is_timeout_error(e) or not self._bucket_gone_after_timeout(name):
                raise
            return
        self.invalidate_bucket_cache()

    def _bucket_gone_after_timeout(self, name: str) -> bool:
        logger.warning("Delete of bucket %s timed out, checking if it was deleted", name)
        time.sleep(DELETE_GRACE_SECONDS)
        self.invalidate_bucket_cache()
        try:
            self.get_bucket(name)
        except NotFoundError:
            logger.info("Bucket %s was deleted despite the timeout", name)
            self.invalidate_bucket_cache()
            return True
        except (httpx.HTTPError, StorageGridError) as e:
            logger.warning("Could not verify deletion of bucket %s: %s", name, e)
        return False

    def get_bucket_versioning(self, name: str) -> VersioningStatus:
        envelope = self._request_json(
            "GET", f"/api/v4/org/containers/{_segment(name)}/versioning", "S3 bucket versioning"
        )
        data = envelope.get("data") or {}
        return VersioningStatus.from_api_flags(
            bool(data.get("versioningEnabled", False)),
            bool(data.get("versioningSuspended", False)),
        )

    def update_bucket_versioning(self, name: str, status: VersioningStatus) -> None:
        enabled, suspended = status.to_api_flags()
        payload = {"versioningEnabled": enabled, "versioningSuspended": suspended}
        logger.info("Setting versioning of bucket %s to %s", name, status.value)

        envelope = self._request_json(
            "PUT",
            f"/api/v4/org/containers/{_segment(name)}/versioning",
            "bucket versioning update",
            json_body=payload,
        )
        self._expect_success(envelope, "bucket versioning update")

    def get_bucket_object_lock(self, name: str) -> ObjectLockConfig:
        envelope = self._request_json(
            "GET", f"/api/v4/org/containers/{_segment(name)}/object-lock", "S3 bucket object lock"
        )
        return self._decode(ObjectLockConfig.from_dict, envelope.get("data") or {}, "object lock")

    def update_bucket_object_lock(
        self,
        name: str,
        enabled: bool,
        default_retention_setting: Optional[RetentionSetting] = None,
    ) -> None:
        payload = ObjectLockConfig(enabled, default_retention_setting).to_dict()
        logger.debug("Object lock request body for %s: %s", name, json.dumps(payload))

        envelope = self._request_json(
            "PUT",
            f"/api/v4/org/containers/{_segment(name)}/object-lock",
            "bucket object lock update",
            json_body=payload,
        )
        self._expect_success(envelope, "bucket object lock update")

    # -- lifecycle (S3 protocol) -------------------------------------------

    def get_bucket_lifecycle(self, name: str) -> LifecycleConfiguration:
        """Fetch lifecycle rules. A bucket without rules yields an empty list."""

        def operation(s3) -> LifecycleConfiguration:
            logger.debug("Getting lifecycle configuration for bucket: %s", name)
            try:
                response = s3.get_bucket_lifecycle_configuration(Bucket=name)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") == "NoSuchLifecycleConfiguration":
                    return LifecycleConfiguration()
                raise
            return LifecycleConfiguration.from_boto(response)

        return self.s3.execute(operation, "getting bucket lifecycle configuration")

    def put_bucket_lifecycle(self, name: str, configuration: LifecycleConfiguration) -> None:
        lifecycle = configuration.to_boto()

        def operation(s3) -> None:
            logger.debug("Setting lifecycle configuration for bucket: %s", name)
            s3.put_bucket_lifecycle_configuration(Bucket=name, LifecycleConfiguration=lifecycle)

        self.s3.execute(operation, "setting bucket lifecycle configuration")

    def delete_bucket_lifecycle(self, name: str) -> None:
        def operation(s3) -> None:
            logger.debug("Deleting lifecycle configuration for bucket: %s", name)
            s3.delete_bucket_lifecycle(Bucket=name)

        self.s3.execute(operation, "removing bucket lifecycle configuration")

    # -- temporary S3 credentials ------------------------------------------

    def create_temporary_access_key(self) -> TemporaryS3Credential:
        """Mint a 24-hour S3 access key for the signed-in user."""
        expires_at = datetime.now(timezone.utc) + TEMPORARY_KEY_LIFETIME
        payload = {"expires": expires_at.strftime(API_TIME_FORMAT)}
        logger.debug("Creating temporary access key expiring %s", payload["expires"])

        envelope = self._request_json(
            "POST",
            "/api/v4/org/users/current-user/s3-access-keys",
            "access key",
            json_body=payload,
        )
        self._expect_success(envelope, "access key creation")

        key = self._decode(AccessKeyRecord.from_dict, envelope.get("data"), "access key")
        if not key.access_key or not key.secret_access_key:
            raise DecodeError("error unmarshalling access key response: missing key material")
        return TemporaryS3Credential(
            access_key=key.access_key,
            secret_key=key.secret_access_key,
            credential_id=key.id,
            expires_at=expires_at,
        )

    def delete_temporary_access_key(self, credential_id: str) -> None:
        logger.debug("Deleting temporary access key %s", credential_id)
        self._do_request(
            "DELETE", f"/api/v4/org/users/current-user/s3-access-keys/{_segment(credential_id)}"
        )

    def cleanup_s3_client(self) -> None:
        """Revoke the temporary S3 credential, if one was issued."""
        self.s3.cleanup()

    # -- users -------------------------------------------------------------

    def get_user(self, user_id: str) -> UserRecord:
        """Fetch a user by ID or by unique name ("user/<name>")."""
        envelope = self._request_json("GET", f"/api/v4/org/users/{_segment(user_id)}", "user")
        return self._decode(UserRecord.from_dict, envelope.get("data"), "user")

    def create_user(self, payload: UserPayload) -> UserRecord:
        logger.info("Creating user %s", payload.unique_name)
        envelope = self._request_json(
            "POST", "/api/v4/org/users", "create user", json_body=payload.to_dict()
        )
        return self._decode(UserRecord.from_dict, envelope.get("data"), "create user")

    def update_user(self, user_id: str, payload: UserPayload) -> UserRecord:
        logger.info("Updating user %s", user_id)
        envelope = self._request_json(
            "PUT",
            f"/api/v4/org/users/{_segment(user_id)}",
            "update user",
            json_body=payload.to_dict(),
        )
        return self._decode(UserRecord.from_dict, envelope.get("data"), "update user")

    def delete_user(self, user_id: str) -> None:
        logger.info("Deleting user %s", user_id)
        self._do_request("DELETE", f"/api/v4/org/users/{_segment(user_id)}")

    def change_user_password(self, short_name: str, password: str) -> None:
        """Set the password of a local user.

        Args:
            short_name: The user's unique name, e.g. "user/alice".
            password: The new password.
        """
        logger.info("Changing password of user %s", short_name)
        self._do_request(
            "POST",
            f"/api/v4/org/users/{_segment(short_name)}/change-password",
            json_body={"password": password},
        )

    # -- user S3 access keys -----------------------------------------------

    def list_access_keys(self, user_id: str) -> list[AccessKeyRecord]:
        envelope = self._request_json(
            "GET",
            f"/api/v4/org/users/{_segment(user_id)}/s3-access-keys",
            "list s3 access keys",
            params={"includeCloneStatus": "false"},
        )
        return [
            self._decode(AccessKeyRecord.from_dict, item, "list s3 access keys")
            for item in envelope.get("data") or []
        ]

    def create_access_key(self, user_id: str, expires: Optional[str] = None) -> AccessKeyRecord:
        """Create an S3 access key. The secret is only returned here."""
        payload = {"expires": expires} if expires else {}
        logger.info("Creating S3 access key for user %s", user_id)
        envelope = self._request_json(
            "POST",
            f"/api/v4/org/users/{_segment(user_id)}/s3-access-keys",
            "create s3 access key",
            json_body=payload,
        )
        return self._decode(AccessKeyRecord.from_dict, envelope.get("data"), "create s3 access key")

    def delete_access_key(self, user_id: str, key_id: str) -> None:
        logger.info("Deleting S3 access key %s of user %s", key_id, user_id)
        self._do_request(
            "DELETE",
            f"/api/v4/org/users/{_segment(user_id)}/s3-access-keys/{_segment(key_id)}",
        )

    # -- groups ------------------------------------------------------------

    def get_group(self, group_id: str) -> GroupRecord:
        """Fetch a group by ID or by unique name ("group/<name>")."""
        envelope = self._request_json("GET", f"/api/v4/org/groups/{_segment(group_id)}", "group")
        return self._decode(GroupRecord.from_dict, envelope.get("data"), "group")

    def create_group(self, payload: GroupPayload) -> GroupRecord:
        logger.info("Creating group %s", payload.unique_name)
        envelope = self._request_json(
            "POST", "/api/v4/org/groups", "create group", json_body=payload.to_dict()
        )
        return self._decode(GroupRecord.from_dict, envelope.get("data"), "create group")

    def update_group(self, group_id: str, payload: GroupPayload) -> GroupRecord:
        logger.info("Updating group %s", group_id)
        envelope = self._request_json(
            "PUT",
            f"/api/v4/org/groups/{_segment(group_id)}",
            "update group",
            json_body=payload.to_dict(),
        )
        return self._decode(GroupRecord.from_dict, envelope.get("data"), "update group")

    def delete_group(self, group_id: str) -> None:
        logger.info("Deleting group %s", group_id)
        self._do_request("DELETE", f"/api/v4/org/groups/{_segment(group_id)}")

    # -- lifetime ----------------------------------------------------------

    def close(self) -> None:
        """Revoke the temporary S3 credential and close the HTTP client."""
        self.cleanup_s3_client()
        self._http.close()

    def __enter__(self) -> "StorageGridClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
