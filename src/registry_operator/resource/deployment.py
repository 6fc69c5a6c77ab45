"""Deployment running the registry."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_DEPLOYMENT
from ..k8s.client import Clients
from ..parameters import Parameters
from ..storage import StorageDriver
from .mutator import Mutator
from .podtemplate import make_pod_template_spec


def desired_replicas(cr: dict[str, Any]) -> int:
    replicas = cr.get("spec", {}).get("replicas")
    return 1 if replicas is None else int(replicas)


class DeploymentMutator(Mutator):
    kind = KIND_DEPLOYMENT

    def __init__(
        self,
        client: Any,
        params: Parameters,
        cr: dict[str, Any],
        driver: StorageDriver,
        clients: Clients,
    ):
        super().__init__(client, params, cr)
        self.driver = driver
        self.clients = clients

    def object_name(self) -> str:
        return self.params.deployment_name

    def expected(self) -> dict[str, Any]:
        cr = self.cr or {}
        template, annotations = make_pod_template_spec(cr, self.params, self.driver, self.clients)
        return {
            "apiVersion": "apps/v1",
            "kind": self.kind,
            "metadata": self.metadata(labels=dict(self.params.labels), annotations=annotations),
            "spec": {
                "replicas": desired_replicas(cr),
                "selector": {"matchLabels": dict(self.params.labels)},
                "template": template,
            },
        }
