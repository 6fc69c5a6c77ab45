"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_RECONCILE_SUCCEEDED,
    EVENT_REASON_RESOURCES_REMOVED,
    EVENT_REASON_STORAGE_CREATED,
    EVENT_REASON_STORAGE_REMOVED,
    EVENT_REASON_VALIDATE_FAILED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource the event is about
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_succeeded(body: dict[str, Any]) -> None:
    """Emit reconcile succeeded event."""
    emit_event(body, EVENT_REASON_RECONCILE_SUCCEEDED, "All resources applied")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_failed(body: dict[str, Any], message: str) -> None:
    """Emit validation failed event."""
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_storage_created(body: dict[str, Any], storage_type: str) -> None:
    """Emit storage created event."""
    emit_event(body, EVENT_REASON_STORAGE_CREATED, f"Storage backend {storage_type} created")


def emit_storage_removed(body: dict[str, Any]) -> None:
    """Emit storage removed event."""
    emit_event(body, EVENT_REASON_STORAGE_REMOVED, "Storage backend removed")


def emit_resources_removed(body: dict[str, Any]) -> None:
    """Emit resources removed event."""
    emit_event(body, EVENT_REASON_RESOURCES_REMOVED, "All registry resources removed")
