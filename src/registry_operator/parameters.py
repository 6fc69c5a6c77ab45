"""Fixed deployment topology for the registry."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class Parameters:
    """Topology values shared by every mutator.

    These do not come from the Config resource; they describe where and how
    the registry is deployed and are read once from the environment.
    """

    namespace: str = "openshift-image-registry"
    deployment_name: str = "image-registry"
    labels: dict[str, str] = field(default_factory=lambda: {"docker-registry": "default"})
    service_name: str = "image-registry"
    service_account: str = "registry"
    container_name: str = "registry"
    container_port: int = 5000
    healthz_route: str = "/healthz"
    healthz_timeout_seconds: int = 5
    default_image: str = "quay.io/openshift/origin-docker-registry:latest"
    default_route_domain: str = ""
    cluster_name: str = "cluster"

    @classmethod
    def from_env(cls) -> Parameters:
        """Build parameters from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            namespace=os.getenv("WATCH_NAMESPACE") or defaults.namespace,
            deployment_name=os.getenv("REGISTRY_DEPLOYMENT_NAME", defaults.deployment_name),
            service_name=os.getenv("REGISTRY_SERVICE_NAME", defaults.service_name),
            service_account=os.getenv("REGISTRY_SERVICE_ACCOUNT", defaults.service_account),
            container_port=int(os.getenv("REGISTRY_PORT", str(defaults.container_port))),
            default_image=os.getenv("IMAGE", defaults.default_image),
            default_route_domain=os.getenv("DEFAULT_ROUTE_DOMAIN", defaults.default_route_domain),
            cluster_name=os.getenv("CLUSTER_NAME", defaults.cluster_name),
        )
