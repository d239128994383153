"""Prometheus metrics for orchestration API calls.

These metrics show how the health check's reads and remediation writes
against the API server behave, independent of etcd member health.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from etcdadm_healthcheck.infra.metrics.prometheus import DEFAULT_LATENCY_BUCKETS, REGISTRY

orchestration_requests_total = Counter(
    "etcd_healthcheck_api_requests_total",
    "Total orchestration API requests issued by the health check. "
    "Usage: Increment after each request, labelled by operation and outcome.",
    ["operation", "status"],  # status: success, failure
    registry=REGISTRY,
)

orchestration_errors_total = Counter(
    "etcd_healthcheck_api_errors_total",
    "Total orchestration API errors. "
    "Categorized by operation and error type for debugging.",
    ["operation", "error_type"],  # error_type: timeout, connection, http_error, not_found
    registry=REGISTRY,
)

orchestration_request_duration_seconds = Histogram(
    "etcd_healthcheck_api_request_duration_seconds",
    "Duration of orchestration API requests in seconds.",
    ["operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)
