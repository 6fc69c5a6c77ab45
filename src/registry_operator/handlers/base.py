"""Base handler class with common functionality for all handlers."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

import kopf

from .. import metrics
from ..constants import FINALIZER
from ..logging import log_resource_event
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started, emit_validate_failed

_T = TypeVar("_T")


class BaseHandler:
    """Base class for all handlers with common functionality."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Config", "Deployment")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata.

        Args:
            meta: Kubernetes resource metadata

        Returns:
            Dictionary with resource context fields
        """
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace") or "",
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            uid=ctx["uid"],
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def handle_validation_error(self, body: dict[str, Any], error: Exception) -> None:
        """Report a configuration error and stop retrying.

        Raises:
            kopf.PermanentError: Always
        """
        message = sanitize_exception(error)
        self.log_error(body.get("metadata", {}), message, error=error, reason="ValidationFailed")
        emit_validate_failed(body, message)
        raise kopf.PermanentError(message) from error

    def handle_reconciliation_error(self, body: dict[str, Any], error: Exception) -> None:
        """Report a failed pass and ask kopf to retry it.

        Raises:
            kopf.TemporaryError: Always
        """
        message = f"Reconciliation failed: {sanitize_exception(error)}"
        raise kopf.TemporaryError(message) from error

    def ensure_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Ensure finalizer is present in metadata."""
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER not in finalizers:
            finalizers.append(FINALIZER)
            patch.metadata["finalizers"] = finalizers

    def remove_finalizer(self, meta: dict[str, Any], patch: kopf.Patch) -> None:
        """Remove finalizer from metadata."""
        finalizers = list(meta.get("finalizers") or [])
        if FINALIZER in finalizers:
            finalizers.remove(FINALIZER)
            patch.metadata["finalizers"] = finalizers if finalizers else None

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        operation: str,
        reconcile_fn: Callable[[], _T],
        announce: bool = True,
    ) -> _T:
        """Execute reconciliation with metrics and error handling.

        Args:
            body: Resource the pass runs for, used for events and logs
            operation: Name of the pass, used as a metrics label
            reconcile_fn: Function to execute for reconciliation
            announce: Emit a started event on the resource

        Returns:
            Whatever reconcile_fn returns
        """
        meta = body.get("metadata", {})
        if announce:
            emit_reconcile_started(body)
        metrics.reconcile_total.labels(operation=operation, result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
            metrics.reconcile_total.labels(operation=operation, result="success").inc()
            return result
        except Exception as e:
            self.log_error(meta, f"Reconciliation failed: {operation}", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitize_exception(e)}")
            metrics.reconcile_total.labels(operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(operation=operation).observe(duration)
