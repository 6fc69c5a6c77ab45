"""ConfigMaps carrying the certificate authorities the registry trusts."""

from __future__ import annotations

from typing import Any

from kubernetes.client.exceptions import ApiException

from ..constants import (
    ANNOTATION_SERVICE_CA_INJECT,
    CERTIFICATES_CONFIG_MAP_NAME,
    KIND_CONFIG_MAP,
    SERVICE_CA_CONFIG_MAP_NAME,
)
from ..k8s.client import is_not_found
from .mutator import Mutator

SERVICE_CA_KEY = "service-ca.crt"


class ServiceCAConfigMapMutator(Mutator):
    """Empty ConfigMap the service CA operator injects its bundle into.

    Only metadata is declared, so the injected data survives updates.
    """

    kind = KIND_CONFIG_MAP

    def object_name(self) -> str:
        return SERVICE_CA_CONFIG_MAP_NAME

    def expected(self) -> dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": self.kind,
            "metadata": self.metadata(annotations={ANNOTATION_SERVICE_CA_INJECT: "true"}),
        }


class CertificatesConfigMapMutator(Mutator):
    """Trust anchors mounted into the registry pod.

    Maps the internal registry hostnames (``host..port``) to the service CA so
    that clients pulling through the service name trust the serving cert.
    """

    kind = KIND_CONFIG_MAP

    def object_name(self) -> str:
        return CERTIFICATES_CONFIG_MAP_NAME

    def _service_ca(self) -> str | None:
        try:
            service_ca = self.client.get(SERVICE_CA_CONFIG_MAP_NAME, self.params.namespace)
        except ApiException as e:
            if is_not_found(e):
                return None
            raise
        return (service_ca.get("data") or {}).get(SERVICE_CA_KEY)

    def expected(self) -> dict[str, Any]:
        data: dict[str, str] = {}
        ca = self._service_ca()
        if ca:
            service = f"{self.params.service_name}.{self.params.namespace}.svc"
            for host in (service, f"{service}.cluster.local"):
                data[f"{host}..{self.params.container_port}"] = ca
        return {
            "apiVersion": "v1",
            "kind": self.kind,
            "metadata": self.metadata(),
            "data": data,
        }
