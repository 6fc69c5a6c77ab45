"""Handler for the registry Config resource."""

from __future__ import annotations

import copy
import os
from typing import Any

import kopf

from ..constants import (
    API_GROUP_VERSION,
    KIND_CONFIG,
    MANAGEMENT_STATE_MANAGED,
    MANAGEMENT_STATE_REMOVED,
    MANAGEMENT_STATE_UNMANAGED,
)
from ..exceptions import ConfigurationError
from ..resource.generator import Generator
from ..utils.conditions import set_available_condition
from ..utils.events import (
    emit_reconcile_succeeded,
    emit_resources_removed,
    emit_storage_created,
    emit_storage_removed,
)
from .base import BaseHandler
from .shared import get_generator

RESYNC_INTERVAL_SECONDS = int(os.getenv("RESYNC_INTERVAL_SECONDS", "600"))

REASON_REMOVED = "Removed"


def management_state(cr: dict[str, Any]) -> str:
    return cr.get("spec", {}).get("managementState") or MANAGEMENT_STATE_MANAGED


def status_merge_patch(previous: dict[str, Any], current: dict[str, Any]) -> dict[str, Any]:
    """Build a JSON merge patch turning previous into current.

    Keys that disappeared from nested mappings are set to None so the API
    server drops them.
    """
    patch: dict[str, Any] = {}
    for key, value in current.items():
        old = previous.get(key)
        if isinstance(value, dict) and isinstance(old, dict):
            patch[key] = status_merge_patch(old, value)
        else:
            patch[key] = value
    for key in previous:
        if key not in current:
            patch[key] = None
    return patch


class ConfigHandler(BaseHandler):
    """Drives apply or remove passes for the Config by management state."""

    def __init__(self):
        """Initialize config handler."""
        super().__init__(KIND_CONFIG)

    def reconcile(self, body: dict[str, Any], patch: kopf.Patch) -> None:
        """Run one pass for the Config and patch its status.

        Raises:
            kopf.PermanentError: If the Config cannot be deployed
            kopf.TemporaryError: If the pass failed and should be retried
        """
        cr = copy.deepcopy(dict(body))
        meta = cr.get("metadata", {})
        state = management_state(cr)
        if state == MANAGEMENT_STATE_UNMANAGED:
            self.log_info(meta, "Config is unmanaged, nothing to do", event="skipped", reason=state)
            return

        generator = get_generator()
        previous = copy.deepcopy(cr.get("status") or {})
        try:
            if state == MANAGEMENT_STATE_REMOVED:
                self.reconcile_with_metrics(cr, "remove", lambda: self.remove(generator, cr))
            else:
                writes = self.reconcile_with_metrics(cr, "apply", lambda: generator.apply(cr))
                if writes:
                    emit_reconcile_succeeded(cr)
        except ConfigurationError as e:
            patch.status.update(status_merge_patch(previous, cr.get("status") or {}))
            self.handle_validation_error(cr, e)
        except Exception as e:
            patch.status.update(status_merge_patch(previous, cr.get("status") or {}))
            self.handle_reconciliation_error(cr, e)

        current = cr.get("status") or {}
        if current.get("storageManaged") and not previous.get("storageManaged"):
            emit_storage_created(cr, ", ".join(current.get("storage") or {}))
        patch.status.update(status_merge_patch(previous, current))

    def remove(self, generator: Generator, cr: dict[str, Any]) -> None:
        """Remove every registry object and the storage, then mark the Config removed."""
        had_storage = bool((cr.get("status") or {}).get("storage"))
        generator.remove(cr)
        status = cr.setdefault("status", {})
        conditions = status.get("conditions") or []
        set_available_condition(conditions, False, REASON_REMOVED, "registry resources removed")
        status["conditions"] = conditions
        status["observedGeneration"] = cr.get("metadata", {}).get("generation", 0)
        if had_storage:
            emit_storage_removed(cr)
        emit_resources_removed(cr)

    def delete(self, body: dict[str, Any], patch: kopf.Patch) -> None:
        """Tear the registry down before the Config goes away.

        An unmanaged Config is released without touching its objects.

        Raises:
            kopf.TemporaryError: If anything could not be removed; the
                finalizer stays until a later attempt succeeds
        """
        cr = copy.deepcopy(dict(body))
        meta = cr.get("metadata", {})
        self.log_info(meta, "Config is being deleted", event="deletion", reason="Deletion")
        if management_state(cr) != MANAGEMENT_STATE_UNMANAGED:
            generator = get_generator()
            try:
                self.reconcile_with_metrics(cr, "remove", lambda: self.remove(generator, cr), announce=False)
            except Exception as e:
                self.handle_reconciliation_error(cr, e)
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = ConfigHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_CONFIG)
@kopf.on.update(API_GROUP_VERSION, KIND_CONFIG)
@kopf.on.resume(API_GROUP_VERSION, KIND_CONFIG)
@kopf.timer(API_GROUP_VERSION, KIND_CONFIG, interval=RESYNC_INTERVAL_SECONDS)
def handle_config(
    body: kopf.Body,
    meta: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Config resource reconciliation."""
    _handler.ensure_finalizer(meta, patch)
    _handler.reconcile(body, patch)


@kopf.on.delete(API_GROUP_VERSION, KIND_CONFIG)
def handle_config_delete(
    body: kopf.Body,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle Config resource deletion."""
    _handler.delete(body, patch)
