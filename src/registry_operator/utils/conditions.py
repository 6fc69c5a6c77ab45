"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_AVAILABLE,
    COND_DEGRADED,
    COND_PROGRESSING,
    STATUS_FALSE,
    STATUS_TRUE,
)


def now_timestamp() -> str:
    """Return the current time in the format Kubernetes uses for conditions."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def find_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, or None."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
) -> bool:
    """Update or add a condition in place.

    A condition list holds at most one entry per type. Replacing an entry only
    moves ``lastTransitionTime`` when the status value changes.

    Args:
        conditions: List of existing conditions, modified in place
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message

    Returns:
        True if the list changed
    """
    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now_timestamp(),
    }

    for idx, existing in enumerate(conditions):
        if existing.get("type") != condition_type:
            continue
        if existing.get("status") == status:
            if existing.get("reason") == reason and existing.get("message") == message:
                return False
            new_condition["lastTransitionTime"] = existing.get(
                "lastTransitionTime", new_condition["lastTransitionTime"]
            )
        conditions[idx] = new_condition
        return True

    conditions.append(new_condition)
    return True


def set_available_condition(conditions: list[dict[str, Any]], available: bool, reason: str, message: str) -> bool:
    """Set the Available condition."""
    return update_condition(conditions, COND_AVAILABLE, STATUS_TRUE if available else STATUS_FALSE, reason, message)


def set_progressing_condition(conditions: list[dict[str, Any]], progressing: bool, reason: str, message: str) -> bool:
    """Set the Progressing condition."""
    return update_condition(
        conditions, COND_PROGRESSING, STATUS_TRUE if progressing else STATUS_FALSE, reason, message
    )


def set_degraded_condition(conditions: list[dict[str, Any]], degraded: bool, reason: str, message: str) -> bool:
    """Set the Degraded condition."""
    return update_condition(conditions, COND_DEGRADED, STATUS_TRUE if degraded else STATUS_FALSE, reason, message)
