"""ClusterOperator status reporting the health of the registry."""

from __future__ import annotations

from typing import Any

from kubernetes.client.exceptions import ApiException

from ..constants import (
    API_GROUP,
    CLUSTER_OPERATOR_NAME,
    COND_AVAILABLE,
    COND_DEGRADED,
    COND_PROGRESSING,
    CONFIG_PLURAL,
    KIND_CLUSTER_OPERATOR,
)
from ..k8s.client import ResourceClient, is_not_found
from ..parameters import Parameters
from ..utils.conditions import (
    find_condition,
    set_available_condition,
    set_degraded_condition,
    set_progressing_condition,
)
from ..utils.errors import sanitize_exception
from .mutator import Mutator

MSG_AVAILABLE = "deployment has minimum availability"
MSG_NOT_AVAILABLE = "deployment does not have available replicas"
MSG_NOT_FOUND = "deployment does not exist"
MSG_PROGRESSING = "deployment is progressing"
MSG_PROGRESSED = "deployment successfully progressed"

REASON_PROGRESSED = "DeploymentProgressed"
REASON_IN_PROGRESS = "DeploymentInProgress"


def is_deployment_available(deployment: dict[str, Any]) -> bool:
    return (deployment.get("status", {}).get("availableReplicas") or 0) > 0


def is_deployment_complete(deployment: dict[str, Any]) -> bool:
    """Return True once every replica runs the current template.

    The spec replica count defaults to 1 when unset.
    """
    replicas = deployment.get("spec", {}).get("replicas")
    if replicas is None:
        replicas = 1
    status = deployment.get("status", {})
    generation = deployment.get("metadata", {}).get("generation") or 0
    return (
        (status.get("updatedReplicas") or 0) == replicas
        and (status.get("replicas") or 0) == replicas
        and (status.get("availableReplicas") or 0) == replicas
        and (status.get("observedGeneration") or 0) >= generation
    )


def deployment_conditions(deployment: dict[str, Any] | None) -> dict[str, tuple[bool, str, str]]:
    """Compute Available and Progressing from the registry Deployment.

    Returns:
        Mapping of condition type to (status, reason, message)
    """
    if deployment is None:
        return {
            COND_AVAILABLE: (False, "DeploymentNotFound", MSG_NOT_FOUND),
            COND_PROGRESSING: (True, REASON_IN_PROGRESS, MSG_PROGRESSING),
        }
    if is_deployment_available(deployment):
        available = (True, "MinimumAvailability", MSG_AVAILABLE)
    else:
        available = (False, "NoReplicasAvailable", MSG_NOT_AVAILABLE)
    if is_deployment_complete(deployment):
        progressing = (False, REASON_PROGRESSED, MSG_PROGRESSED)
    else:
        progressing = (True, REASON_IN_PROGRESS, MSG_PROGRESSING)
    return {COND_AVAILABLE: available, COND_PROGRESSING: progressing}


class ClusterOperatorMutator(Mutator):
    """Writes Available, Progressing and Degraded onto the ClusterOperator.

    The object is cluster scoped and its status is written through the status
    subresource. It is never deleted by the operator.

    Degraded reflects the outcome of the last full pass. With keep_degraded
    set and no error, a stored Degraded condition is left as it is, so a
    status-only refresh cannot clear a failure.
    """

    kind = KIND_CLUSTER_OPERATOR

    def __init__(
        self,
        client: ResourceClient,
        deployments: ResourceClient,
        params: Parameters,
        cr: dict[str, Any] | None = None,
        error: BaseException | None = None,
        keep_degraded: bool = False,
    ):
        super().__init__(client, params, cr)
        self.deployments = deployments
        self.error = error
        self.keep_degraded = keep_degraded

    def object_name(self) -> str:
        return CLUSTER_OPERATOR_NAME

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

    def _deployment(self) -> dict[str, Any] | None:
        try:
            return self.deployments.get(self.params.deployment_name, self.params.namespace)
        except ApiException as e:
            if is_not_found(e):
                return None
            raise

    def related_objects(self) -> list[dict[str, Any]]:
        related = [{"group": "", "resource": "namespaces", "name": self.params.namespace}]
        if self.cr is not None:
            related.append(
                {"group": API_GROUP, "resource": CONFIG_PLURAL, "name": self.cr.get("metadata", {}).get("name")}
            )
        return related

    def sync_status(self, obj: dict[str, Any]) -> bool:
        """Update the status of obj in place.

        Returns:
            True if anything changed
        """
        status = obj.get("status") or {}
        obj["status"] = status
        conditions = status.get("conditions") or []
        status["conditions"] = conditions

        computed = deployment_conditions(self._deployment())
        changed = set_available_condition(conditions, *computed[COND_AVAILABLE])
        changed = set_progressing_condition(conditions, *computed[COND_PROGRESSING]) or changed
        if self.error is not None:
            changed = set_degraded_condition(conditions, True, "Error", sanitize_exception(self.error)) or changed
        elif not self.keep_degraded or find_condition(conditions, COND_DEGRADED) is None:
            changed = set_degraded_condition(conditions, False, "AsExpected", "") or changed

        related = self.related_objects()
        if status.get("relatedObjects") != related:
            status["relatedObjects"] = related
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
