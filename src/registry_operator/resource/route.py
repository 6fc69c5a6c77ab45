"""Routes exposing the registry outside the cluster."""

from __future__ import annotations

import base64
import copy
from typing import Any

from ..constants import DEFAULT_ROUTE_NAME, KIND_ROUTE, LABEL_CREATED_BY_OPERATOR
from ..k8s.client import ResourceClient
from ..parameters import Parameters
from .mutator import Mutator
from .service import tls_enabled


def route_is_created_by_operator(route: dict[str, Any]) -> bool:
    labels = route.get("metadata", {}).get("labels") or {}
    return labels.get(LABEL_CREATED_BY_OPERATOR) == "true"


def desired_routes(cr: dict[str, Any], params: Parameters) -> list[dict[str, Any]]:
    """Routes requested by the Config, the default route first."""
    spec = cr.get("spec", {})
    routes: list[dict[str, Any]] = []
    if spec.get("defaultRoute"):
        default: dict[str, Any] = {"name": DEFAULT_ROUTE_NAME}
        if params.default_route_domain:
            default["hostname"] = f"{DEFAULT_ROUTE_NAME}-{params.namespace}.{params.default_route_domain}"
        routes.append(default)
    routes.extend(spec.get("routes") or [])
    return routes


class RouteMutator(Mutator):
    """One Route, optionally terminating TLS with a certificate from a secret."""

    kind = KIND_ROUTE

    def __init__(
        self,
        client: ResourceClient,
        secrets: ResourceClient,
        params: Parameters,
        cr: dict[str, Any],
        route: dict[str, Any],
    ):
        super().__init__(client, params, cr)
        self.secrets = secrets
        self.route = route

    def object_name(self) -> str:
        return self.route["name"]

    def _tls(self) -> dict[str, Any]:
        tls: dict[str, Any] = {"termination": "reencrypt" if tls_enabled(self.cr) else "edge"}
        secret_name = self.route.get("secretName")
        if secret_name:
            secret = self.secrets.get(secret_name, self.params.namespace)
            data = secret.get("data") or {}
            for key, field in (("tls.crt", "certificate"), ("tls.key", "key"), ("ca.crt", "caCertificate")):
                if data.get(key):
                    tls[field] = base64.b64decode(data[key]).decode("utf-8")
        return tls

    def expected(self) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "to": {"kind": "Service", "name": self.params.service_name},
            "port": {"targetPort": f"{self.params.container_port}-tcp"},
            "tls": self._tls(),
        }
        if self.route.get("hostname"):
            spec["host"] = self.route["hostname"]
        return {
            "apiVersion": "route.openshift.io/v1",
            "kind": self.kind,
            "metadata": self.metadata(labels={LABEL_CREATED_BY_OPERATOR: "true"}),
            "spec": spec,
        }

    def merge(self, current: dict[str, Any], desired: dict[str, Any]) -> None:
        # A host assigned by the router is kept when none is requested.
        host = current.get("spec", {}).get("host")
        current["spec"] = copy.deepcopy(desired["spec"])
        if host and "host" not in desired["spec"]:
            current["spec"]["host"] = host
