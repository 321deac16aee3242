"""Temporary S3 credentials for S3-protocol operations.

Lifecycle configuration is only reachable over the S3 protocol, which
needs an access key rather than the management bearer token. The
manager mints a 24-hour access key for the signed-in user on first use,
builds a boto3 client from it, and revokes the key on cleanup.

A key can be revoked or expire behind our back. When an S3 call fails
with an authorization error the manager revokes its key, mints exactly
one new key, and retries the call exactly once. Callers that failed on
the same key share its single replacement.
"""

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from storagegrid_provider.errors import S3OperationError, StorageGridError
from storagegrid_provider.models import DEFAULT_REGION, TemporaryS3Credential
from storagegrid_provider.retry import (
    CredentialState,
    RetryExhausted,
    is_auth_error,
    retry_once,
)
from storagegrid_provider.s3_client import build_s3_client, derive_s3_endpoint

if TYPE_CHECKING:
    from storagegrid_provider.client import StorageGridClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class S3CredentialManager:
    """Owns the temporary credential and the S3 client built from it.

    Args:
        api: Management API client used to mint and revoke access keys
        s3_endpoint: Explicit S3 endpoint; derived from the management
            endpoint when not set
        region_name: Region used for request signing
    """

    def __init__(
        self,
        api: "StorageGridClient",
        s3_endpoint: Optional[str] = None,
        region_name: str = DEFAULT_REGION,
    ):
        self._api = api
        self._s3_endpoint = s3_endpoint
        self.region_name = region_name
        self._client: Any = None
        self._credential: Optional[TemporaryS3Credential] = None
        self._lock = threading.Lock()

    @property
    def endpoint_url(self) -> str:
        return derive_s3_endpoint(self._api.endpoint_url, self._s3_endpoint)

    @property
    def credential(self) -> Optional[TemporaryS3Credential]:
        """The credential currently in use, if one was issued."""
        return self._credential

    def _mint(self) -> Any:
        # Caller holds self._lock
        try:
            credential = self._api.create_temporary_access_key()
        except (StorageGridError, httpx.HTTPError) as e:
            raise S3OperationError(f"failed to create temporary access key: {e}") from e

        self._client = build_s3_client(credential, self.endpoint_url, self.region_name)
        self._credential = credential
        logger.info(
            "Created S3 client for %s with temporary access key %s",
            self.endpoint_url,
            credential.credential_id,
        )
        return self._client

    def _revoke(self, credential: TemporaryS3Credential) -> None:
        try:
            self._api.delete_temporary_access_key(credential.credential_id)
        except (StorageGridError, httpx.HTTPError) as e:
            logger.warning(
                "Failed to delete temporary access key %s: %s",
                credential.credential_id,
                e,
            )

    def get_s3_client(self) -> Any:
        """Return the cached S3 client, minting a credential if needed.

        Raises:
            S3OperationError: If no temporary access key could be created.
        """
        client = self._client
        if client is not None:
            return client

        with self._lock:
            if self._client is not None:
                return self._client
            return self._mint()

    def _current(self) -> tuple[Any, Optional[TemporaryS3Credential]]:
        with self._lock:
            if self._client is None:
                self._mint()
            return self._client, self._credential

    def refresh(self, stale: Optional[TemporaryS3Credential]) -> Any:
        """Replace a credential that failed authorization.

        Only the credential that failed is revoked. If another caller
        already replaced it, the client built from the newer key is
        returned as is.

        Args:
            stale: The credential the failed call was signed with.

        Returns:
            The S3 client to retry with.
        """
        with self._lock:
            if self._client is not None and self._credential is not stale:
                logger.debug("Temporary access key already refreshed, reusing it")
                return self._client

            self._client = None
            self._credential = None
            if stale is not None:
                self._revoke(stale)
            return self._mint()

    def clear(self) -> None:
        """Revoke the current credential and drop the cached client.

        Revocation failures are logged; the key expires on its own.
        """
        with self._lock:
            credential = self._credential
            self._credential = None
            self._client = None

        if credential is not None:
            self._revoke(credential)

    def cleanup(self) -> None:
        """Revoke the credential on shutdown. Safe to call repeatedly."""
        had_credential = self._credential is not None
        self.clear()
        if had_credential:
            logger.info("Cleaned up S3 client and deleted temporary access key")

    def execute(self, operation: Callable[[Any], T], description: str) -> T:
        """Run an S3 operation, refreshing the credential once on auth errors.

        Args:
            operation: Callable receiving the boto3 client.
            description: What the operation does, for logs and errors.

        Returns:
            The operation's return value.

        Raises:
            S3OperationError: If the operation fails, or fails again after
                the credential was refreshed.
        """
        self.get_s3_client()
        state = CredentialState.FRESH
        used: list[Optional[TemporaryS3Credential]] = []

        def attempt() -> T:
            client, credential = self._current()
            used.append(credential)
            return operation(client)

        def refresh(error: Exception) -> None:
            nonlocal state
            state = CredentialState.EXPIRED
            logger.warning(
                "S3 operation '%s' failed with auth error, refreshing credential: %s",
                description,
                error,
            )
            self.refresh(used[-1])
            state = CredentialState.REFRESHED

        try:
            result = retry_once(attempt, is_auth_error, refresh)
        except RetryExhausted as e:
            state = CredentialState.FATAL_EXPIRED
            raise S3OperationError(
                f"S3 operation '{description}' failed after retry "
                f"({state.value}): {e.last_error}"
            ) from e.last_error
        except (ClientError, BotoCoreError) as e:
            raise S3OperationError(f"error {description}: {e}") from e

        if state is CredentialState.REFRESHED:
            logger.info("S3 operation '%s' succeeded with a refreshed credential", description)
        return result
