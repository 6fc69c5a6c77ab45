"""Cluster image configuration advertising where the registry is reachable."""

from __future__ import annotations

from typing import Any

from ..constants import IMAGE_CONFIG_NAME, KIND_IMAGE_CONFIG, LABEL_CREATED_BY_OPERATOR
from ..k8s.client import ResourceClient
from ..parameters import Parameters
from .mutator import Mutator
from .service import internal_registry_hostname


def admitted_hosts(route: dict[str, Any]) -> list[str]:
    """Hosts under which a router admitted the route."""
    hosts = []
    for ingress in route.get("status", {}).get("ingress") or []:
        admitted = any(
            cond.get("type") == "Admitted" and cond.get("status") == "True"
            for cond in ingress.get("conditions") or []
        )
        if admitted and ingress.get("host"):
            hosts.append(ingress["host"])
    return hosts


class ImageConfigMutator(Mutator):
    """Publishes the registry hostnames on the cluster Image config.

    The internal hostname points at the registry Service. External hostnames
    are the admitted hosts of the routes created by the operator. Only the
    status is written and the object is never deleted.
    """

    kind = KIND_IMAGE_CONFIG

    def __init__(self, client: ResourceClient, routes: ResourceClient, params: Parameters):
        super().__init__(client, params)
        self.routes = routes

    def object_name(self) -> str:
        return IMAGE_CONFIG_NAME

    def object_namespace(self) -> str | None:
        return None

    def owned(self) -> bool:
        return False

    def expected(self) -> dict[str, Any]:
        return {
            "apiVersion": "config.openshift.io/v1",
            "kind": self.kind,
            "metadata": {"name": self.object_name()},
        }

    def external_hostnames(self) -> list[str]:
        routes = self.routes.list(self.params.namespace, label_selector=f"{LABEL_CREATED_BY_OPERATOR}=true")
        return sorted({host for route in routes for host in admitted_hosts(route)})

    def sync_status(self, obj: dict[str, Any]) -> bool:
        status = obj.get("status") or {}
        obj["status"] = status
        p = self.params
        internal = internal_registry_hostname(p.service_name, p.namespace, p.container_port)
        external = self.external_hostnames()
        changed = False
        if status.get("internalRegistryHostname") != internal:
            status["internalRegistryHostname"] = internal
            changed = True
        if (status.get("externalRegistryHostnames") or []) != external:
            status["externalRegistryHostnames"] = external
            changed = True
        return changed

    def create(self) -> dict[str, Any]:
        created = self.client.create(self.expected())
        self.sync_status(created)
        return self.client.replace_status(created)

    def update(self, current: dict[str, Any]) -> tuple[dict[str, Any] | None, bool]:
        if not self.sync_status(current):
            return None, False
        return self.client.replace_status(current), True
