"""Checksum-gated apply of a single mutator with conflict retries."""

from __future__ import annotations

import copy
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import metrics
from ..k8s.client import is_conflict, is_not_found
from ..logging import log_resource_event
from ..tracing import annotate_span, trace_span
from .mutator import Mutator

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


@dataclass(frozen=True)
class Backoff:
    """Exponential backoff parameters."""

    steps: int
    duration: float
    factor: float
    jitter: float


# Same values as client-go's retry.DefaultBackoff.
DEFAULT_BACKOFF = Backoff(steps=4, duration=0.01, factor=5.0, jitter=0.1)


def retry_on_conflict(fn: Callable[[], _T], backoff: Backoff = DEFAULT_BACKOFF, kind: str = "") -> _T:
    """Run fn, re-running it while it fails with an HTTP 409 conflict.

    Args:
        fn: Function performing one complete read-modify-write attempt
        backoff: Retry budget
        kind: Object kind, used as a metrics label

    Returns:
        Whatever fn returns

    Raises:
        ApiException: The last conflict once the budget is exhausted, or any
            other API error immediately
    """
    delay = backoff.duration
    for attempt in range(1, backoff.steps + 1):
        try:
            return fn()
        except ApiException as e:
            if not is_conflict(e) or attempt == backoff.steps:
                raise
            metrics.conflict_retries_total.labels(kind=kind).inc()
            logger.debug(f"Conflict on {kind or 'object'}, retrying (attempt {attempt}/{backoff.steps})")
            time.sleep(delay + random.uniform(0, delay * backoff.jitter))
            delay *= backoff.factor
    raise AssertionError("unreachable")


def _log_write(mutator: Mutator, event: str, obj: dict[str, Any] | None) -> None:
    meta = (obj or {}).get("metadata", {})
    log_resource_event(
        logger,
        resource_kind=mutator.kind,
        resource_name=mutator.object_name(),
        namespace=mutator.object_namespace() or "",
        event=event,
        reason=f"Object{event.capitalize()}",
        message=f"object {mutator.name()} {event}",
        resource_version=meta.get("resourceVersion"),
    )
    metrics.object_writes_total.labels(kind=mutator.kind, action=event).inc()


def apply_mutator(mutator: Mutator) -> bool:
    """Create or update the object described by mutator.

    The live object is fetched, a deep copy is handed to the mutator and the
    result written back. The whole read-modify-write runs again on conflict.

    Args:
        mutator: Mutator to apply

    Returns:
        True if the object was created or updated
    """

    def attempt() -> bool:
        try:
            current = mutator.get()
        except ApiException as e:
            if not is_not_found(e):
                raise
            created = mutator.create()
            _log_write(mutator, "created", created)
            return True

        updated, changed = mutator.update(copy.deepcopy(current))
        if changed:
            _log_write(mutator, "updated", updated)
        return changed

    attributes = {"k8s.name": mutator.object_name(), "k8s.namespace": mutator.object_namespace()}
    with trace_span("apply_mutator", kind=mutator.kind, attributes=attributes):
        changed = retry_on_conflict(attempt, kind=mutator.kind)
        annotate_span(object_changed=changed)
    return changed
