"""Prometheus metrics for the LiteLLM Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "litellm_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "litellm_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0],
)

error_total = Counter(
    "litellm_operator_error_total",
    "Total number of reconcile errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "litellm_operator_resource_status_total",
    "Resource readiness observations",
    ["kind", "status"],
)

# Configuration drift detection metrics
drift_detected_total = Counter(
    "litellm_operator_drift_detected_total",
    "Total number of external record drift detections",
    ["kind"],
)

# LiteLLM API call metrics
external_call_total = Counter(
    "litellm_operator_external_call_total",
    "Total number of LiteLLM API calls",
    ["operation", "result"],
)

external_call_duration_seconds = Histogram(
    "litellm_operator_external_call_duration_seconds",
    "Duration of LiteLLM API calls in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Owned child object metrics
child_write_total = Counter(
    "litellm_operator_child_write_total",
    "Total number of owned child object writes",
    ["child_kind", "action"],
)

write_conflict_retries_total = Counter(
    "litellm_operator_write_conflict_retries_total",
    "Total number of optimistic-concurrency retries",
    ["child_kind"],
)
