"""ClusterRoleBinding binding the registry service account to its role."""

from __future__ import annotations

from typing import Any

from ..constants import CLUSTER_ROLE_BINDING_NAME, CLUSTER_ROLE_NAME, KIND_CLUSTER_ROLE_BINDING
from .mutator import Mutator


class ClusterRoleBindingMutator(Mutator):
    kind = KIND_CLUSTER_ROLE_BINDING

    def object_name(self) -> str:
        return CLUSTER_ROLE_BINDING_NAME

    def object_namespace(self) -> str | None:
        return None

    def expected(self) -> dict[str, Any]:
        return {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": self.kind,
            "metadata": self.metadata(),
            "subjects": [
                {
                    "kind": "ServiceAccount",
                    "name": self.params.service_account,
                    "namespace": self.params.namespace,
                }
            ],
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": CLUSTER_ROLE_NAME,
            },
        }
