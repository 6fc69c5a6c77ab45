"""Service exposing the registry inside the cluster."""

from __future__ import annotations

import copy
from typing import Any

from ..constants import ANNOTATION_SERVING_CERT_SECRET, KIND_SERVICE, TLS_SECRET_NAME
from .mutator import Mutator


def tls_enabled(cr: dict[str, Any] | None) -> bool:
    """Return the effective ``spec.tls`` value (defaults to True)."""
    tls = (cr or {}).get("spec", {}).get("tls")
    return True if tls is None else bool(tls)


def internal_registry_hostname(service_name: str, namespace: str, port: int) -> str:
    return f"{service_name}.{namespace}.svc:{port}"


class ServiceMutator(Mutator):
    kind = KIND_SERVICE

    def object_name(self) -> str:
        return self.params.service_name

    def port_name(self) -> str:
        return f"{self.params.container_port}-tcp"

    def expected(self) -> dict[str, Any]:
        annotations = {ANNOTATION_SERVING_CERT_SECRET: TLS_SECRET_NAME} if tls_enabled(self.cr) else None
        return {
            "apiVersion": "v1",
            "kind": self.kind,
            "metadata": self.metadata(labels=dict(self.params.labels), annotations=annotations),
            "spec": {
                "type": "ClusterIP",
                "selector": dict(self.params.labels),
                "ports": [
                    {
                        "name": self.port_name(),
                        "port": self.params.container_port,
                        "protocol": "TCP",
                        "targetPort": self.params.container_port,
                    }
                ],
            },
        }

    def merge(self, current: dict[str, Any], desired: dict[str, Any]) -> None:
        # clusterIP and other allocated fields stay as the API server set them.
        spec = current.setdefault("spec", {})
        for key in ("selector", "type", "ports"):
            spec[key] = copy.deepcopy(desired["spec"][key])
