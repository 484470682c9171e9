"""Prometheus metrics for the gardenlogin controller."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "gardenlogin_reconcile_total",
    "Total number of shoot reconciliations",
    ["result"],
)

reconcile_duration_seconds = Histogram(
    "gardenlogin_reconcile_duration_seconds",
    "Duration of shoot reconciliations in seconds",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

error_total = Counter(
    "gardenlogin_error_total",
    "Total number of reconciliation errors",
    ["error_type"],
)

namespace_limit_hits_total = Counter(
    "gardenlogin_namespace_limit_hits_total",
    "Total number of reconciles deferred because the namespace limit was reached",
)

# Watch event filtering
events_total = Counter(
    "gardenlogin_events_total",
    "Total number of watch events seen by the predicates",
    ["kind", "decision"],
)

# Kubeconfig ConfigMap writes
kubeconfig_operations_total = Counter(
    "gardenlogin_kubeconfig_operations_total",
    "Total number of kubeconfig ConfigMap operations",
    ["operation"],
)

# API call metrics
api_call_total = Counter(
    "gardenlogin_api_call_total",
    "Total number of Kubernetes API calls",
    ["operation", "result"],
)

api_call_duration_seconds = Histogram(
    "gardenlogin_api_call_duration_seconds",
    "Duration of Kubernetes API calls in seconds",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

# Admission webhook
admission_total = Counter(
    "gardenlogin_admission_total",
    "Total number of ConfigMap admission reviews",
    ["result"],
)

workqueue_depth = Gauge(
    "gardenlogin_workqueue_depth",
    "Number of reconcile keys waiting to be processed",
)
