"""Provider entry point: configuration, handler registry and shutdown cleanup.

Every configured client may hold a temporary S3 access key. Clients are
registered process-wide so the keys can be revoked on exit, whether the
process ends normally or on SIGINT/SIGTERM.
"""

import atexit
import logging
import signal
import sys
import threading
from typing import Any, Callable, Optional

import httpx

from storagegrid_provider.client import StorageGridClient
from storagegrid_provider.config import ConfigError, resolve_provider_config
from storagegrid_provider.diagnostics import Diagnostics
from storagegrid_provider.errors import StorageGridError
from storagegrid_provider.resources import (
    AccessKeyResource,
    BucketVersioningDataSource,
    BucketVersioningResource,
    DataSource,
    GroupDataSource,
    GroupResource,
    LifecycleConfigurationDataSource,
    LifecycleConfigurationResource,
    ObjectLockConfigurationDataSource,
    ObjectLockConfigurationResource,
    Resource,
    S3BucketDataSource,
    S3BucketResource,
    UserDataSource,
    UserResource,
)

logger = logging.getLogger(__name__)

_clients: list[StorageGridClient] = []
_clients_lock = threading.Lock()
_handlers_installed = False

RESOURCE_TYPES: list[type[Resource]] = [
    GroupResource,
    UserResource,
    AccessKeyResource,
    S3BucketResource,
    BucketVersioningResource,
    ObjectLockConfigurationResource,
    LifecycleConfigurationResource,
]

DATA_SOURCE_TYPES: list[type[DataSource]] = [
    GroupDataSource,
    UserDataSource,
    S3BucketDataSource,
    BucketVersioningDataSource,
    ObjectLockConfigurationDataSource,
    LifecycleConfigurationDataSource,
]


def register_client(client: StorageGridClient) -> None:
    """Track a client so its temporary S3 key is revoked on shutdown."""
    with _clients_lock:
        _clients.append(client)


def cleanup_all_clients() -> None:
    """Revoke the temporary S3 keys of every registered client.

    Each client is cleaned up once; later calls only see newly
    registered clients.
    """
    with _clients_lock:
        clients = list(_clients)
        _clients.clear()

    for client in clients:
        client.cleanup_s3_client()
    if clients:
        logger.info("Cleaned up %d StorageGRID client(s)", len(clients))


def _handle_signal(signum: int, frame: Any) -> None:
    logger.info("Received shutdown signal, cleaning up...")
    cleanup_all_clients()
    sys.exit(0)


def install_cleanup_handlers() -> None:
    """Run cleanup_all_clients on SIGINT, SIGTERM and normal exit.

    Signal handlers can only be installed from the main thread; elsewhere
    only the exit hook is registered.
    """
    global _handlers_installed
    if _handlers_installed:
        return
    _handlers_installed = True

    atexit.register(cleanup_all_clients)
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)


class StorageGridProvider:
    """Configures the API client and hands it to resource handlers.

    Args:
        version: Provider version string
        client_factory: Callable building the client from a ProviderConfig's
            fields (replaced in tests)
    """

    def __init__(
        self,
        version: str = "dev",
        client_factory: Callable[..., StorageGridClient] = StorageGridClient,
    ):
        self.version = version
        self._client_factory = client_factory
        self.client: Optional[StorageGridClient] = None

    def configure(
        self,
        explicit: Optional[dict[str, Optional[str]]] = None,
        config_path: Optional[str] = None,
    ) -> Diagnostics:
        """Resolve the configuration and sign in.

        Args:
            explicit: Settings from the provider block (endpoint,
                account_id, username, password, s3_endpoint)
            config_path: Optional JSON config file

        Returns:
            Diagnostics; on success ``self.client`` is set.
        """
        diagnostics = Diagnostics()
        logger.info("Configuring StorageGrid client")

        try:
            config = resolve_provider_config(explicit, config_path)
        except ConfigError as e:
            diagnostics.add_error("Invalid StorageGrid Provider Configuration", str(e))
            return diagnostics

        try:
            client = self._client_factory(
                endpoint=config.endpoint,
                account_id=config.account_id,
                username=config.username,
                password=config.password,
                s3_endpoint=config.s3_endpoint,
            )
        except (StorageGridError, httpx.HTTPError) as e:
            diagnostics.add_error(
                "Unable to Create StorageGrid API Client",
                f"An unexpected error occurred when creating the StorageGrid API client: {e}",
            )
            return diagnostics

        register_client(client)
        self.client = client
        logger.info("Configured StorageGrid client for %s", config.endpoint)
        return diagnostics

    @staticmethod
    def resources() -> dict[str, type[Resource]]:
        return {cls.type_name: cls for cls in RESOURCE_TYPES}

    @staticmethod
    def data_sources() -> dict[str, type[DataSource]]:
        return {cls.type_name: cls for cls in DATA_SOURCE_TYPES}

    def _require_client(self) -> StorageGridClient:
        if self.client is None:
            raise StorageGridError("provider is not configured")
        return self.client

    def resource(self, type_name: str) -> Resource:
        """Instantiate a resource handler bound to the configured client.

        Raises:
            KeyError: If the type name is unknown.
            StorageGridError: If configure has not succeeded.
        """
        return self.resources()[type_name](self._require_client())

    def data_source(self, type_name: str) -> DataSource:
        """Instantiate a data source handler bound to the configured client."""
        return self.data_sources()[type_name](self._require_client())
