"""Snapshot of the last successfully applied storage configuration."""

from __future__ import annotations

import json
from typing import Any

from kubernetes.client.exceptions import ApiException

from ..constants import CONFIG_STATE_NAME, KIND_CONFIG_MAP
from ..k8s.client import ResourceClient, is_not_found
from ..parameters import Parameters
from ..storage import StorageDriver
from .mutator import Mutator


def read_config_state(client: ResourceClient, params: Parameters) -> dict[str, Any]:
    """Load the persisted config state.

    Returns:
        Dict with ``storagetype`` and ``storage`` keys, empty if nothing was
        persisted yet
    """
    try:
        obj = client.get(CONFIG_STATE_NAME, params.namespace)
    except ApiException as e:
        if is_not_found(e):
            return {}
        raise
    data = obj.get("data") or {}
    return {
        "storagetype": data.get("storagetype", ""),
        "storage": json.loads(data.get("storage") or "{}"),
    }


class ConfigStateMutator(Mutator):
    """Persists the storage type and identity once an apply pass succeeded.

    Going through the checksum gate means the ConfigMap is only rewritten
    when its content changes.
    """

    kind = KIND_CONFIG_MAP

    def __init__(self, client: ResourceClient, params: Parameters, cr: dict[str, Any], driver: StorageDriver):
        super().__init__(client, params, cr)
        self.driver = driver

    def object_name(self) -> str:
        return CONFIG_STATE_NAME

    def expected(self) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": self.kind,
            "metadata": self.metadata(),
            "data": {
                "storagetype": self.driver.storage_type,
                "storage": json.dumps(self.driver.state(), sort_keys=True, separators=(",", ":")),
            },
        }
