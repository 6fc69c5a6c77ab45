"""ClusterRole granting the registry access to image metadata."""

from __future__ import annotations

from typing import Any

from ..constants import CLUSTER_ROLE_NAME, KIND_CLUSTER_ROLE
from .mutator import Mutator

RULES: list[dict[str, Any]] = [
    {"verbs": ["list"], "apiGroups": [""], "resources": ["limitranges", "resourcequotas"]},
    {
        "verbs": ["get"],
        "apiGroups": ["", "image.openshift.io"],
        "resources": ["imagestreamimages", "imagestreams/secrets"],
    },
    {"verbs": ["list", "get", "update"], "apiGroups": ["", "image.openshift.io"], "resources": ["imagestreams"]},
    {"verbs": ["get", "delete"], "apiGroups": ["", "image.openshift.io"], "resources": ["imagestreamtags"]},
    {"verbs": ["get", "update"], "apiGroups": ["", "image.openshift.io"], "resources": ["images"]},
    {"verbs": ["create"], "apiGroups": ["", "image.openshift.io"], "resources": ["imagestreammappings"]},
    {"verbs": ["get"], "apiGroups": [""], "resources": ["namespaces"]},
]


class ClusterRoleMutator(Mutator):
    kind = KIND_CLUSTER_ROLE

    def object_name(self) -> str:
        return CLUSTER_ROLE_NAME

    def object_namespace(self) -> str | None:
        return None

    def expected(self) -> dict[str, Any]:
        return {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": self.kind,
            "metadata": self.metadata(),
            "rules": [dict(rule) for rule in RULES],
        }
