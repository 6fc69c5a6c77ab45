"""Tests for Prometheus metrics."""

from __future__ import annotations

from registry_operator.metrics import (
    api_call_duration_seconds,
    api_call_total,
    conflict_retries_total,
    object_writes_total,
    reconcile_duration_seconds,
    reconcile_total,
    storage_operations_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_names(self):
        """Test metric names; counters drop the _total suffix in _name."""
        assert reconcile_total._name == "image_registry_operator_reconcile"
        assert reconcile_duration_seconds._name == "image_registry_operator_reconcile_duration_seconds"
        assert object_writes_total._name == "image_registry_operator_object_writes"
        assert conflict_retries_total._name == "image_registry_operator_conflict_retries"
        assert storage_operations_total._name == "image_registry_operator_storage_operations"
        assert api_call_total._name == "image_registry_operator_api_call"
        assert api_call_duration_seconds._name == "image_registry_operator_api_call_duration_seconds"


class TestMetricLabels:
    """Test that metrics accept their labels."""

    def test_reconcile_total_labels(self):
        reconcile_total.labels(operation="apply", result="success").inc(0)
        reconcile_total.labels(operation="event_deployment", result="error").inc(0)

    def test_object_writes_labels(self):
        object_writes_total.labels(kind="Deployment", action="updated").inc(0)

    def test_storage_operations_labels(self):
        storage_operations_total.labels(storage_type="s3", operation="create", result="success").inc(0)

    def test_api_call_labels(self):
        api_call_total.labels(api_type="k8s", operation="get_secret", result="success").inc(0)
        api_call_duration_seconds.labels(api_type="k8s", operation="get_secret").observe(0.05)


class TestMetricOperations:
    """Test metric operations."""

    def test_counter_increment(self):
        """Test that counters can be incremented."""
        counter = conflict_retries_total.labels(kind="TestCounter")
        initial = counter._value.get()

        counter.inc()

        assert counter._value.get() == initial + 1

    def test_different_label_values_independent(self):
        """Test that metrics with different labels are independent."""
        object_writes_total.labels(kind="TestKind", action="created").inc(3)
        object_writes_total.labels(kind="TestKind", action="deleted").inc(5)

        assert object_writes_total.labels(kind="TestKind", action="created")._value.get() == 3
        assert object_writes_total.labels(kind="TestKind", action="deleted")._value.get() == 5
