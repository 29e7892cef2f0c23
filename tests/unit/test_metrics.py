"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import REGISTRY

from litellm_operator.metrics import (
    child_write_total,
    drift_detected_total,
    error_total,
    external_call_duration_seconds,
    external_call_total,
    reconcile_duration_seconds,
    reconcile_total,
    resource_status_total,
    write_conflict_retries_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_counter_names(self):
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_total._name == "litellm_operator_reconcile"
        assert error_total._name == "litellm_operator_error"
        assert resource_status_total._name == "litellm_operator_resource_status"
        assert drift_detected_total._name == "litellm_operator_drift_detected"
        assert external_call_total._name == "litellm_operator_external_call"
        assert child_write_total._name == "litellm_operator_child_write"
        assert write_conflict_retries_total._name == "litellm_operator_write_conflict_retries"

    def test_histogram_names(self):
        assert reconcile_duration_seconds._name == "litellm_operator_reconcile_duration_seconds"
        assert external_call_duration_seconds._name == "litellm_operator_external_call_duration_seconds"


class TestMetricsRecord:
    """Test that labelled metrics record samples."""

    def test_reconcile_total_increments(self):
        labels = {"kind": "MetricsTestKind", "result": "success"}
        before = REGISTRY.get_sample_value("litellm_operator_reconcile_total", labels) or 0

        reconcile_total.labels(**labels).inc()

        assert REGISTRY.get_sample_value("litellm_operator_reconcile_total", labels) == before + 1

    def test_external_call_duration_observed(self):
        labels = {"operation": "metrics_test"}

        external_call_duration_seconds.labels(**labels).observe(0.2)

        assert REGISTRY.get_sample_value("litellm_operator_external_call_duration_seconds_count", labels) >= 1
