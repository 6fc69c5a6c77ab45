"""Handlers for events on the objects the operator owns."""

from __future__ import annotations

import copy
from typing import Any, Callable

import kopf
from kubernetes.client.exceptions import ApiException

from ..constants import (
    API_GROUP_VERSION,
    KIND_CLUSTER_ROLE,
    KIND_CLUSTER_ROLE_BINDING,
    KIND_CONFIG,
    KIND_CONFIG_MAP,
    KIND_DEPLOYMENT,
    KIND_ROUTE,
    KIND_SECRET,
    KIND_SERVICE,
    KIND_SERVICE_ACCOUNT,
    MANAGEMENT_STATE_MANAGED,
)
from ..k8s.client import is_not_found
from ..resource.generator import Generator
from ..resource.mutator import get_controller_of, is_controlled_by
from .base import BaseHandler
from .shared import get_generator, persist_config_status

EVENT_DELETED = "DELETED"

# (group, version, plural) of every kind a Config owns.
OWNED_RESOURCES = {
    KIND_CLUSTER_ROLE: ("rbac.authorization.k8s.io", "v1", "clusterroles"),
    KIND_CLUSTER_ROLE_BINDING: ("rbac.authorization.k8s.io", "v1", "clusterrolebindings"),
    KIND_SERVICE_ACCOUNT: ("", "v1", "serviceaccounts"),
    KIND_CONFIG_MAP: ("", "v1", "configmaps"),
    KIND_SECRET: ("", "v1", "secrets"),
    KIND_SERVICE: ("", "v1", "services"),
    KIND_DEPLOYMENT: ("apps", "v1", "deployments"),
    KIND_ROUTE: ("route.openshift.io", "v1", "routes"),
}


def is_owned_by_config(body: kopf.Body, **_: Any) -> bool:
    """Filter for kopf: only objects whose controller is a Config."""
    ref = get_controller_of(dict(body))
    return ref is not None and ref.get("kind") == KIND_CONFIG and ref.get("apiVersion") == API_GROUP_VERSION


class OwnedObjectHandler(BaseHandler):
    """Routes owned-object events to the pass that repairs them."""

    def __init__(self):
        """Initialize owned object handler."""
        super().__init__(KIND_CONFIG)
        self.handlers: dict[str, Callable[[Generator, dict[str, Any], str | None], None]] = {
            KIND_CLUSTER_ROLE: self.on_object_event,
            KIND_CLUSTER_ROLE_BINDING: self.on_object_event,
            KIND_SERVICE_ACCOUNT: self.on_object_event,
            KIND_CONFIG_MAP: self.on_object_event,
            KIND_SECRET: self.on_object_event,
            KIND_SERVICE: self.on_object_event,
            KIND_DEPLOYMENT: self.on_deployment_event,
            KIND_ROUTE: self.on_object_event,
        }

    def resolve_config(self, generator: Generator, obj: dict[str, Any]) -> dict[str, Any] | None:
        """Return the managed Config controlling obj, or None.

        Objects whose Config is gone, not Managed, being deleted, or a
        different incarnation than the one in the owner reference are ignored.
        """
        ref = get_controller_of(obj)
        if ref is None or ref.get("kind") != KIND_CONFIG or ref.get("apiVersion") != API_GROUP_VERSION:
            return None
        try:
            cr = generator.clients.configs.get(ref["name"])
        except ApiException as e:
            if is_not_found(e):
                return None
            raise
        if (cr.get("spec", {}).get("managementState") or MANAGEMENT_STATE_MANAGED) != MANAGEMENT_STATE_MANAGED:
            return None
        if cr.get("metadata", {}).get("deletionTimestamp"):
            return None
        if not is_controlled_by(obj, cr):
            return None
        return cr

    def on_deployment_event(self, generator: Generator, cr: dict[str, Any], event_type: str | None) -> None:
        """A deleted Deployment is recreated; any other change only moves status.

        Only the ClusterOperator's Available and Progressing and the Config's
        Progressing are refreshed. Degraded and the Config's Available
        condition describe the last full pass.
        """
        if event_type == EVENT_DELETED:
            generator.apply(cr)
            return
        generator.apply_cluster_operator(cr, keep_degraded=True)
        generator.refresh_config_progress(cr)

    def on_object_event(self, generator: Generator, cr: dict[str, Any], event_type: str | None) -> None:
        generator.apply(cr)

    def handle(self, event_type: str | None, body: dict[str, Any]) -> None:
        """Dispatch one watch event on an owned object."""
        obj = dict(body)
        kind = obj.get("kind", "")
        handler = self.handlers.get(kind)
        if handler is None:
            self.log_warning(obj.get("metadata", {}), f"No handler for owned kind {kind}", reason="UnknownKind")
            return

        generator = get_generator()
        cr = self.resolve_config(generator, obj)
        if cr is None:
            return

        self.log_info(
            cr.get("metadata", {}),
            f"{kind} {obj.get('metadata', {}).get('name')} changed",
            event="owned_object_event",
            reason=event_type or "Unknown",
        )
        previous = copy.deepcopy(cr.get("status") or {})
        try:
            self.reconcile_with_metrics(
                cr, f"event_{kind.lower()}", lambda: handler(generator, cr, event_type), announce=False
            )
        finally:
            persist_config_status(generator, cr, previous)


# Global handler instance
_handler = OwnedObjectHandler()


def handle_owned_event(event: dict[str, Any], body: kopf.Body, **kwargs: Any) -> None:
    """Handle a watch event on an owned object."""
    _handler.handle(event.get("type"), body)


for _group, _version, _plural in OWNED_RESOURCES.values():
    kopf.on.event(
        f"{_group}/{_version}" if _group else _version,
        _plural,
        when=is_owned_by_config,
        id=f"owned-{_plural}",
    )(handle_owned_event)
