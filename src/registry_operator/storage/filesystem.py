"""Filesystem storage backed by a pod volume."""

from __future__ import annotations

import copy
from typing import Any

from ..exceptions import ConfigurationError
from .base import StorageDriver

ROOT_DIRECTORY = "/registry"
VOLUME_NAME = "registry-storage"


class FilesystemDriver(StorageDriver):
    """Stores blobs on a volume mounted into the registry pod.

    The configuration is a Kubernetes volume source (``emptyDir``,
    ``persistentVolumeClaim``, ...). Nothing exists outside the cluster, so
    there is nothing to create or remove.
    """

    storage_type = "filesystem"

    def validate_configuration(self, previous_state: dict[str, Any]) -> None:
        super().validate_configuration(previous_state)
        if "hostPath" in self.config:
            raise ConfigurationError("HostPath is not supported")
        if not self.config:
            raise ConfigurationError("filesystem storage requires a volume source")

    def storage_exists(self, cr: dict[str, Any]) -> bool:
        return True

    def create_storage(self, cr: dict[str, Any]) -> None:
        self.created = False

    def config_env(self) -> list[dict[str, Any]]:
        return [
            {"name": "REGISTRY_STORAGE", "value": self.storage_type},
            {"name": "REGISTRY_STORAGE_FILESYSTEM_ROOTDIRECTORY", "value": ROOT_DIRECTORY},
        ]

    def volumes(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        volume = {"name": VOLUME_NAME, **copy.deepcopy(self.config)}
        mount = {"name": VOLUME_NAME, "mountPath": ROOT_DIRECTORY}
        return [volume], [mount]

    def state(self) -> dict[str, Any]:
        return copy.deepcopy(self.config)
