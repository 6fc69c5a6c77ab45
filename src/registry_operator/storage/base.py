"""Base class for registry storage backends."""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import string
from abc import ABC, abstractmethod
from typing import Any

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..constants import PRIVATE_CONFIGURATION_SECRET_NAME, USER_CONFIGURATION_SECRET_NAME
from ..exceptions import ConfigurationError
from ..k8s.client import Clients, is_not_found
from ..parameters import Parameters

logger = logging.getLogger(__name__)


def generate_name(prefix: str, seed: str | None = None, max_length: int = 63) -> str:
    """Generate a lowercase DNS-compatible name with a 16 character suffix.

    With a seed the suffix is derived from it, so every pass for the same
    Config arrives at the same name. Without one it is random.
    """
    if seed:
        suffix = base64.b32encode(hashlib.sha256(seed.encode("utf-8")).digest()).decode("ascii").lower()[:16]
    else:
        suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(16))
    name = f"{prefix}-{suffix}".lower()
    return name[:max_length].rstrip("-")


def secret_env(name: str, key: str | None = None, optional: bool = False) -> dict[str, Any]:
    """Env var read from the private configuration secret."""
    return {
        "name": name,
        "valueFrom": {
            "secretKeyRef": {
                "name": PRIVATE_CONFIGURATION_SECRET_NAME,
                "key": key or name,
                "optional": optional,
            },
        },
    }


class StorageDriver(ABC):
    """A storage backend the registry keeps its blobs in.

    A driver is built from one variant of ``spec.storage`` (or, for teardown,
    of ``status.storage``). Besides managing the remote resource it tells the
    pod template which environment, volumes and secrets the registry needs.
    """

    storage_type: str = ""

    def __init__(self, config: dict[str, Any], clients: Clients, params: Parameters):
        self.config = dict(config or {})
        self.clients = clients
        self.params = params
        self.created = False
        self.previous_storage: dict[str, Any] = {}

    def validate_configuration(self, previous_state: dict[str, Any]) -> None:
        """Reject configurations that cannot be deployed.

        The identity stored with a matching storage type is kept for
        :meth:`storage_changed` and for reusing generated names.

        Args:
            previous_state: Last persisted config state (may be empty)

        Raises:
            ConfigurationError: If the storage type differs from the one
                previously deployed
        """
        previous_type = previous_state.get("storagetype")
        if previous_type and previous_type != self.storage_type:
            raise ConfigurationError(
                f"storage type change is not supported: expected storage type {previous_type}, "
                f"but got {self.storage_type}"
            )
        if previous_type == self.storage_type:
            self.previous_storage = dict(previous_state.get("storage") or {})

    def recorded_storage(self, cr: dict[str, Any]) -> dict[str, Any]:
        """Identity of this backend as recorded in the Config status."""
        return (cr.get("status", {}).get("storage") or {}).get(self.storage_type) or {}

    def storage_changed(self, cr: dict[str, Any]) -> bool:
        """Return True if the configured storage differs from the last applied one.

        The persisted config state is authoritative. Before the first
        successful pass only the Config status can be compared against.
        """
        if self.previous_storage:
            return self.previous_storage != self.state()
        return self.recorded_storage(cr) != self.state()

    def resolve_name(self, cr: dict[str, Any], field: str, prefix: str) -> None:
        """Fill an empty name field of the configuration.

        A name recorded in status or in the persisted config state is reused.
        Otherwise one is derived from the Config uid, so concurrent or repeated
        passes that have not seen each other's status agree on it.
        """
        if self.config.get(field):
            return
        for recorded in (self.recorded_storage(cr), self.previous_storage):
            if recorded.get(field):
                self.config[field] = recorded[field]
                return
        self.config[field] = generate_name(prefix, seed=cr.get("metadata", {}).get("uid"))
        logger.info(f"Generated {self.storage_type} {field} name {self.config[field]}")

    @abstractmethod
    def storage_exists(self, cr: dict[str, Any]) -> bool:
        """Return True if the remote storage is reachable and exists."""

    @abstractmethod
    def create_storage(self, cr: dict[str, Any]) -> None:
        """Create the remote storage if needed. Sets ``self.created``."""

    def remove_storage(self, cr: dict[str, Any]) -> tuple[bool, Exception | None]:
        """Remove the remote storage if the operator created it.

        Returns:
            Tuple of (retriable, error); error is None on success
        """
        if not cr.get("status", {}).get("storageManaged"):
            logger.info(f"Storage {self.storage_type} is not managed by the operator, leaving it in place")
            return False, None
        retriable, error = self.remove_remote_storage(cr)
        self.record_operation("remove", "success" if error is None else "error")
        return retriable, error

    def remove_remote_storage(self, cr: dict[str, Any]) -> tuple[bool, Exception | None]:
        """Delete the remote resource. Backends without one have nothing to do."""
        return False, None

    @abstractmethod
    def config_env(self) -> list[dict[str, Any]]:
        """Environment variables configuring the registry for this backend."""

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Volumes and volume mounts for the registry container."""
        return [], []

    def secrets(self) -> dict[str, str]:
        """Values to store in the private configuration secret."""
        return {}

    @abstractmethod
    def state(self) -> dict[str, Any]:
        """Identifying fields of the configured storage."""

    def user_credentials(self) -> dict[str, str]:
        """Read the user-provided credentials secret.

        Returns:
            Decoded secret data, empty if the secret does not exist
        """
        try:
            secret = self.clients.secrets.get(USER_CONFIGURATION_SECRET_NAME, self.params.namespace)
        except ApiException as e:
            if is_not_found(e):
                return {}
            raise
        data = secret.get("data") or {}
        return {key: base64.b64decode(value).decode("utf-8") for key, value in data.items()}

    def record_operation(self, operation: str, result: str) -> None:
        metrics.storage_operations_total.labels(
            storage_type=self.storage_type, operation=operation, result=result
        ).inc()
