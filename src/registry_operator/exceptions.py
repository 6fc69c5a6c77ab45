"""Exceptions raised by the Image Registry Operator."""

from __future__ import annotations


class RegistryOperatorError(Exception):
    """Base class for all operator errors."""


class ConfigurationError(RegistryOperatorError):
    """The Config resource describes something that cannot be deployed.

    Retrying without a change to the Config cannot succeed.
    """


class StorageNotConfiguredError(ConfigurationError):
    """No storage backend is configured in the Config spec."""

    def __init__(self, message: str = "storage backend not configured") -> None:
        super().__init__(message)


class StorageSyncError(RegistryOperatorError):
    """Synchronizing the storage backend failed for a non-configuration reason."""


class ApplyError(RegistryOperatorError):
    """Applying a managed object failed."""

    def __init__(self, object_name: str, message: str) -> None:
        super().__init__(f"unable to apply {object_name}: {message}")
        self.object_name = object_name


class StorageTeardownError(RegistryOperatorError):
    """Removing the storage backend failed or timed out."""

    def __init__(self, message: str, last_error: Exception | None = None) -> None:
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.last_error = last_error
