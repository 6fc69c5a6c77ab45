"""Storage backends for the registry."""

from __future__ import annotations

from typing import Any

from ..exceptions import ConfigurationError, StorageNotConfiguredError
from ..k8s.client import Clients
from ..parameters import Parameters
from .azure import AzureDriver
from .base import StorageDriver
from .filesystem import FilesystemDriver
from .gcs import GCSDriver
from .s3 import S3Driver

DRIVERS: dict[str, type[StorageDriver]] = {
    "filesystem": FilesystemDriver,
    "s3": S3Driver,
    "azure": AzureDriver,
    "gcs": GCSDriver,
}


def new_driver(storage_spec: dict[str, Any] | None, clients: Clients, params: Parameters) -> StorageDriver:
    """Build the driver for the single storage variant configured.

    Args:
        storage_spec: ``spec.storage`` of the Config
        clients: Kubernetes clients
        params: Deployment parameters

    Returns:
        Storage driver for the configured variant

    Raises:
        StorageNotConfiguredError: If no variant is configured
        ConfigurationError: If more than one variant is configured
    """
    storage_spec = storage_spec or {}
    configured = [name for name in DRIVERS if storage_spec.get(name) is not None]
    if not configured:
        raise StorageNotConfiguredError()
    if len(configured) > 1:
        raise ConfigurationError(
            f"it is not possible to initialize more than one storage backend at the same time: {', '.join(configured)}"
        )
    name = configured[0]
    return DRIVERS[name](storage_spec[name], clients, params)


def new_driver_from_status(
    status_storage: dict[str, Any] | None,
    clients: Clients,
    params: Parameters,
) -> StorageDriver:
    """Build the driver for the storage recorded in ``status.storage``."""
    return new_driver(status_storage, clients, params)


__all__ = [
    "DRIVERS",
    "AzureDriver",
    "FilesystemDriver",
    "GCSDriver",
    "S3Driver",
    "StorageDriver",
    "new_driver",
    "new_driver_from_status",
]
