"""Prometheus metrics for the etcd member health check.

Usage:
    from etcdadm_healthcheck.features.healthcheck.metrics import (
        healthcheck_probes_total,
        healthcheck_removals_total,
    )

    healthcheck_probes_total.labels(result="unreachable").inc()
    healthcheck_removals_total.labels(status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

from etcdadm_healthcheck.infra.metrics.prometheus import CYCLE_DURATION_BUCKETS, REGISTRY

# ──────────────────────────────────────────────────────────────
# Probing
# ──────────────────────────────────────────────────────────────

healthcheck_probes_total = Counter(
    "etcd_healthcheck_probes_total",
    "Total etcd endpoint reachability probes. "
    "Usage: Increment once per endpoint per cycle.",
    ["result"],  # result: reachable, unreachable
    registry=REGISTRY,
)

healthcheck_unowned_endpoints_total = Counter(
    "etcd_healthcheck_unowned_endpoints_total",
    "Unhealthy endpoints that could not be mapped to a machine. "
    "A steady rate means the recorded endpoint list is stale.",
    registry=REGISTRY,
)

# ──────────────────────────────────────────────────────────────
# Cycles
# ──────────────────────────────────────────────────────────────

healthcheck_cycles_total = Counter(
    "etcd_healthcheck_cycles_total",
    "Total health check cycles run. "
    "Categorized by outcome for alerting on persistent failures.",
    ["outcome"],  # outcome: ok, quorum_blocked, remediation_failed, error
    registry=REGISTRY,
)

healthcheck_cycle_duration_seconds = Histogram(
    "etcd_healthcheck_cycle_duration_seconds",
    "Duration of one health check cycle for one etcd cluster in seconds.",
    buckets=CYCLE_DURATION_BUCKETS,
    registry=REGISTRY,
)

healthcheck_skipped_total = Counter(
    "etcd_healthcheck_skipped_total",
    "Etcd clusters skipped by a scheduler tick. "
    "Usage: Increment with the reason the cycle did not run.",
    ["reason"],  # reason: paused, owner_paused, provisioning, no_endpoints, busy
    registry=REGISTRY,
)

# ──────────────────────────────────────────────────────────────
# Remediation
# ──────────────────────────────────────────────────────────────

healthcheck_removals_total = Counter(
    "etcd_healthcheck_removals_total",
    "Machine removals requested for unhealthy etcd members.",
    ["status"],  # status: success, failure
    registry=REGISTRY,
)

healthcheck_sessions = Gauge(
    "etcd_healthcheck_sessions",
    "Number of etcd clusters with a live health session.",
    registry=REGISTRY,
)
