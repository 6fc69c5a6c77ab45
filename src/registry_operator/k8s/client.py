"""Access to the Kubernetes objects managed by the operator.

Every managed kind is reached through a :class:`ResourceClient`, which speaks
plain dict manifests (camelCase keys, as they appear in YAML). Typed API
responses are serialized to dicts so mutators can treat all kinds the same
way, and so tests can substitute an in-memory client.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..constants import API_GROUP, API_VERSION, CONFIG_PLURAL
from ..utils.rate_limit import rate_limit_k8s


@dataclass
class DeleteOptions:
    """Options for deleting a managed object."""

    grace_period_seconds: int | None = 0
    propagation_policy: str | None = "Foreground"


def is_not_found(error: BaseException) -> bool:
    """Return True if the error is a Kubernetes 404."""
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error: BaseException) -> bool:
    """Return True if the error is an optimistic concurrency conflict (409)."""
    return isinstance(error, ApiException) and error.status == 409


def is_already_exists(error: BaseException) -> bool:
    """Return True if a create failed because the object already exists."""
    return is_conflict(error) and "AlreadyExists" in (getattr(error, "body", None) or "")


class ResourceClient(Protocol):
    """Protocol defining the operations the operator needs for one kind."""

    kind: str

    def get(self, name: str, namespace: str | None = None) -> dict[str, Any]:
        """Get an object. Raises ApiException(404) if it does not exist."""
        ...

    def list(self, namespace: str | None = None, label_selector: str | None = None) -> list[dict[str, Any]]:
        """List objects, optionally filtered by a label selector."""
        ...

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        """Create an object."""
        ...

    def replace(self, body: dict[str, Any]) -> dict[str, Any]:
        """Replace an object. Fails with 409 if resourceVersion is stale."""
        ...

    def replace_status(self, body: dict[str, Any]) -> dict[str, Any]:
        """Replace the status of an object."""
        ...

    def delete(self, name: str, namespace: str | None = None, options: DeleteOptions | None = None) -> None:
        """Delete an object."""
        ...


def _namespace_of(body: dict[str, Any]) -> str | None:
    return body.get("metadata", {}).get("namespace")


def _name_of(body: dict[str, Any]) -> str:
    return body["metadata"]["name"]


class _InstrumentedClient:
    """Shared call wrapper recording API metrics and applying rate limiting."""

    kind = ""

    def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        op_name = f"{operation}_{self.kind.lower()}"
        try:
            result = rate_limit_k8s(func)(*args, **kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=op_name, result="success").inc()
            return result
        except ApiException:
            metrics.api_call_total.labels(api_type="k8s", operation=op_name, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=op_name).observe(duration)


class KubeResourceClient(_InstrumentedClient):
    """ResourceClient backed by one of the typed Kubernetes APIs.

    The typed APIs follow a fixed naming scheme: ``read_namespaced_<resource>``
    for namespaced kinds and ``read_<resource>`` for cluster-scoped ones, and
    likewise for create, replace, delete and list.
    """

    def __init__(self, api: Any, api_client: client.ApiClient, kind: str, resource: str, namespaced: bool = True):
        self.api = api
        self.api_client = api_client
        self.kind = kind
        self.namespaced = namespaced
        self._prefix = f"namespaced_{resource}" if namespaced else resource

    def _method(self, verb: str) -> Callable[..., Any]:
        return getattr(self.api, f"{verb}_{self._prefix}")

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        return self.api_client.sanitize_for_serialization(obj)

    def _scope(self, namespace: str | None) -> dict[str, Any]:
        return {"namespace": namespace} if self.namespaced else {}

    def get(self, name: str, namespace: str | None = None) -> dict[str, Any]:
        obj = self._call("get", self._method("read"), name=name, **self._scope(namespace))
        return self._to_dict(obj)

    def list(self, namespace: str | None = None, label_selector: str | None = None) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = self._scope(namespace)
        if label_selector:
            kwargs["label_selector"] = label_selector
        result = self._to_dict(self._call("list", self._method("list"), **kwargs))
        return result.get("items") or []

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        obj = self._call("create", self._method("create"), body=body, **self._scope(_namespace_of(body)))
        return self._to_dict(obj)

    def replace(self, body: dict[str, Any]) -> dict[str, Any]:
        obj = self._call(
            "replace", self._method("replace"), name=_name_of(body), body=body, **self._scope(_namespace_of(body))
        )
        return self._to_dict(obj)

    def replace_status(self, body: dict[str, Any]) -> dict[str, Any]:
        return self.replace(body)

    def delete(self, name: str, namespace: str | None = None, options: DeleteOptions | None = None) -> None:
        options = options or DeleteOptions()
        body = client.V1DeleteOptions(
            grace_period_seconds=options.grace_period_seconds,
            propagation_policy=options.propagation_policy,
        )
        self._call("delete", self._method("delete"), name=name, body=body, **self._scope(namespace))


class CustomResourceClient(_InstrumentedClient):
    """ResourceClient backed by the CustomObjectsApi (Routes, ClusterOperators, Configs)."""

    def __init__(
        self,
        api: client.CustomObjectsApi,
        kind: str,
        group: str,
        version: str,
        plural: str,
        namespaced: bool = True,
    ):
        self.api = api
        self.kind = kind
        self.group = group
        self.version = version
        self.plural = plural
        self.namespaced = namespaced

    def _coords(self, namespace: str | None) -> dict[str, Any]:
        coords = {"group": self.group, "version": self.version, "plural": self.plural}
        if self.namespaced:
            coords["namespace"] = namespace
        return coords

    def _scope(self) -> str:
        return "namespaced" if self.namespaced else "cluster"

    def get(self, name: str, namespace: str | None = None) -> dict[str, Any]:
        method = getattr(self.api, f"get_{self._scope()}_custom_object")
        return self._call("get", method, name=name, **self._coords(namespace))

    def list(self, namespace: str | None = None, label_selector: str | None = None) -> list[dict[str, Any]]:
        method = getattr(self.api, f"list_{self._scope()}_custom_object")
        kwargs = self._coords(namespace)
        if label_selector:
            kwargs["label_selector"] = label_selector
        return self._call("list", method, **kwargs).get("items") or []

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        method = getattr(self.api, f"create_{self._scope()}_custom_object")
        return self._call("create", method, body=body, **self._coords(_namespace_of(body)))

    def replace(self, body: dict[str, Any]) -> dict[str, Any]:
        method = getattr(self.api, f"replace_{self._scope()}_custom_object")
        return self._call("replace", method, name=_name_of(body), body=body, **self._coords(_namespace_of(body)))

    def replace_status(self, body: dict[str, Any]) -> dict[str, Any]:
        method = getattr(self.api, f"replace_{self._scope()}_custom_object_status")
        return self._call(
            "replace_status", method, name=_name_of(body), body=body, **self._coords(_namespace_of(body))
        )

    def delete(self, name: str, namespace: str | None = None, options: DeleteOptions | None = None) -> None:
        options = options or DeleteOptions()
        method = getattr(self.api, f"delete_{self._scope()}_custom_object")
        self._call(
            "delete",
            method,
            name=name,
            grace_period_seconds=options.grace_period_seconds,
            propagation_policy=options.propagation_policy,
            **self._coords(namespace),
        )


@dataclass
class Clients:
    """One ResourceClient per kind the operator reads or writes."""

    cluster_roles: ResourceClient
    cluster_role_bindings: ResourceClient
    service_accounts: ResourceClient
    config_maps: ResourceClient
    secrets: ResourceClient
    services: ResourceClient
    deployments: ResourceClient
    routes: ResourceClient
    cluster_operators: ResourceClient
    image_configs: ResourceClient
    namespaces: ResourceClient
    configs: ResourceClient

    @classmethod
    def from_api_client(cls, api_client: client.ApiClient) -> Clients:
        """Build clients for every managed kind from one ApiClient."""
        core = client.CoreV1Api(api_client)
        apps = client.AppsV1Api(api_client)
        rbac = client.RbacAuthorizationV1Api(api_client)
        custom = client.CustomObjectsApi(api_client)
        return cls(
            cluster_roles=KubeResourceClient(rbac, api_client, "ClusterRole", "cluster_role", namespaced=False),
            cluster_role_bindings=KubeResourceClient(
                rbac, api_client, "ClusterRoleBinding", "cluster_role_binding", namespaced=False
            ),
            service_accounts=KubeResourceClient(core, api_client, "ServiceAccount", "service_account"),
            config_maps=KubeResourceClient(core, api_client, "ConfigMap", "config_map"),
            secrets=KubeResourceClient(core, api_client, "Secret", "secret"),
            services=KubeResourceClient(core, api_client, "Service", "service"),
            deployments=KubeResourceClient(apps, api_client, "Deployment", "deployment"),
            routes=CustomResourceClient(custom, "Route", "route.openshift.io", "v1", "routes"),
            cluster_operators=CustomResourceClient(
                custom, "ClusterOperator", "config.openshift.io", "v1", "clusteroperators", namespaced=False
            ),
            image_configs=CustomResourceClient(
                custom, "Image", "config.openshift.io", "v1", "images", namespaced=False
            ),
            namespaces=KubeResourceClient(core, api_client, "Namespace", "namespace", namespaced=False),
            configs=CustomResourceClient(custom, "Config", API_GROUP, API_VERSION, CONFIG_PLURAL, namespaced=False),
        )


def get_api_client() -> client.ApiClient:
    """Load in-cluster configuration, falling back to kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.ApiClient()
