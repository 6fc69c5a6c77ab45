"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
import uuid
from typing import Any
from unittest.mock import patch

import pytest
from kubernetes.client.exceptions import ApiException

from registry_operator.constants import (
    ANNOTATION_SUPPLEMENTAL_GROUPS,
    API_GROUP_VERSION,
    CONFIG_NAME,
    KIND_CONFIG,
)
from registry_operator.handlers.shared import set_generator
from registry_operator.k8s.client import Clients, DeleteOptions
from registry_operator.parameters import Parameters
from registry_operator.resource.generator import Generator


def api_error(status: int, reason: str = "") -> ApiException:
    error = ApiException(status=status, reason=reason)
    error.body = reason
    return error


def _matches(obj: dict[str, Any], label_selector: str | None) -> bool:
    if not label_selector:
        return True
    labels = obj.get("metadata", {}).get("labels") or {}
    for term in label_selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeResourceClient:
    """In-memory ResourceClient with resourceVersion-based optimistic concurrency."""

    def __init__(self, kind: str, namespaced: bool = True):
        self.kind = kind
        self.namespaced = namespaced
        self.objects: dict[tuple[str | None, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.conflicts = 0
        self._version = 0

    def _key(self, name: str, namespace: str | None) -> tuple[str | None, str]:
        return (namespace if self.namespaced else None, name)

    def _store(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._version += 1
        stored = copy.deepcopy(obj)
        meta = stored.setdefault("metadata", {})
        meta["resourceVersion"] = str(self._version)
        meta.setdefault("uid", str(uuid.uuid4()))
        self.objects[self._key(meta["name"], meta.get("namespace"))] = stored
        return copy.deepcopy(stored)

    def seed(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Put an object in place without recording a write."""
        return self._store(obj)

    @property
    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "get" and call[0] != "list"]

    def get(self, name: str, namespace: str | None = None) -> dict[str, Any]:
        self.calls.append(("get", name))
        key = self._key(name, namespace)
        if key not in self.objects:
            raise api_error(404, "NotFound")
        return copy.deepcopy(self.objects[key])

    def list(self, namespace: str | None = None, label_selector: str | None = None) -> list[dict[str, Any]]:
        self.calls.append(("list", label_selector or ""))
        return [
            copy.deepcopy(obj)
            for (ns, _), obj in sorted(self.objects.items(), key=lambda item: item[0][1])
            if (not self.namespaced or namespace is None or ns == namespace) and _matches(obj, label_selector)
        ]

    def create(self, body: dict[str, Any]) -> dict[str, Any]:
        meta = body["metadata"]
        self.calls.append(("create", meta["name"]))
        if self._key(meta["name"], meta.get("namespace")) in self.objects:
            raise api_error(409, "AlreadyExists")
        return self._store(body)

    def _check_replace(self, body: dict[str, Any]) -> dict[str, Any]:
        meta = body["metadata"]
        if self.conflicts > 0:
            self.conflicts -= 1
            raise api_error(409, "Conflict")
        key = self._key(meta["name"], meta.get("namespace"))
        if key not in self.objects:
            raise api_error(404, "NotFound")
        stored = self.objects[key]
        if meta.get("resourceVersion") != stored["metadata"]["resourceVersion"]:
            raise api_error(409, "Conflict")
        return stored

    def replace(self, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("replace", body["metadata"]["name"]))
        stored = self._check_replace(body)
        updated = copy.deepcopy(body)
        if "status" in stored:
            updated["status"] = copy.deepcopy(stored["status"])
        return self._store(updated)

    def replace_status(self, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("replace_status", body["metadata"]["name"]))
        stored = copy.deepcopy(self._check_replace(body))
        stored["status"] = copy.deepcopy(body.get("status") or {})
        return self._store(stored)

    def delete(self, name: str, namespace: str | None = None, options: DeleteOptions | None = None) -> None:
        self.calls.append(("delete", name))
        key = self._key(name, namespace)
        if key not in self.objects:
            raise api_error(404, "NotFound")
        del self.objects[key]


def make_clients() -> Clients:
    return Clients(
        cluster_roles=FakeResourceClient("ClusterRole", namespaced=False),
        cluster_role_bindings=FakeResourceClient("ClusterRoleBinding", namespaced=False),
        service_accounts=FakeResourceClient("ServiceAccount"),
        config_maps=FakeResourceClient("ConfigMap"),
        secrets=FakeResourceClient("Secret"),
        services=FakeResourceClient("Service"),
        deployments=FakeResourceClient("Deployment"),
        routes=FakeResourceClient("Route"),
        cluster_operators=FakeResourceClient("ClusterOperator", namespaced=False),
        image_configs=FakeResourceClient("Image", namespaced=False),
        namespaces=FakeResourceClient("Namespace", namespaced=False),
        configs=FakeResourceClient("Config", namespaced=False),
    )


def all_writes(clients: Clients) -> list[tuple[str, str, str]]:
    """Every write recorded by every fake client as (kind, verb, name)."""
    writes = []
    for fake in vars(clients).values():
        writes.extend((fake.kind, verb, name) for verb, name in fake.writes)
    return writes


def reset_calls(clients: Clients) -> None:
    for fake in vars(clients).values():
        fake.calls.clear()


def make_config(storage: dict[str, Any] | None = None, **spec: Any) -> dict[str, Any]:
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_CONFIG,
        "metadata": {"name": CONFIG_NAME, "generation": 1},
        "spec": {
            "managementState": "Managed",
            "replicas": 1,
            "storage": storage if storage is not None else {"filesystem": {"emptyDir": {}}},
            **spec,
        },
    }


@pytest.fixture
def params() -> Parameters:
    return Parameters()


@pytest.fixture
def clients(params: Parameters) -> Clients:
    clients = make_clients()
    clients.namespaces.seed(
        {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {
                "name": params.namespace,
                "annotations": {ANNOTATION_SUPPLEMENTAL_GROUPS: "1000430000/10000"},
            },
        }
    )
    return clients


@pytest.fixture
def config_cr(clients: Clients) -> dict[str, Any]:
    """A Managed Config with filesystem storage, as stored in the cluster."""
    return clients.configs.seed(make_config())


@pytest.fixture
def generator(clients: Clients, params: Parameters) -> Generator:
    return Generator(clients, params, remove_interval=0.0, remove_timeout=1.0)


@pytest.fixture
def installed_generator(generator: Generator):
    """Make the handlers use the fake-backed generator."""
    set_generator(generator)
    yield generator
    set_generator(None)


@pytest.fixture
def kopf_events():
    """Capture Kubernetes events instead of posting them."""
    with patch("kopf.event") as event:
        yield event


def event_reasons(kopf_events: Any) -> list[str]:
    return [call.kwargs["reason"] for call in kopf_events.call_args_list]
