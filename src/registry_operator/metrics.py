"""Prometheus metrics for the Image Registry Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "image_registry_operator_reconcile_total",
    "Total number of reconciliations",
    ["operation", "result"],
)

reconcile_duration_seconds = Histogram(
    "image_registry_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["operation"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Managed object metrics
object_writes_total = Counter(
    "image_registry_operator_object_writes_total",
    "Total number of writes to managed objects",
    ["kind", "action"],
)

conflict_retries_total = Counter(
    "image_registry_operator_conflict_retries_total",
    "Total number of writes retried after an optimistic concurrency conflict",
    ["kind"],
)

# Storage backend metrics
storage_operations_total = Counter(
    "image_registry_operator_storage_operations_total",
    "Total number of storage backend operations",
    ["storage_type", "operation", "result"],
)

# API call metrics
api_call_total = Counter(
    "image_registry_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "image_registry_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)
