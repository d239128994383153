"""Metrics infrastructure for Prometheus monitoring."""

from __future__ import annotations

from prometheus_client import generate_latest

from etcdadm_healthcheck.infra.metrics.prometheus import (
    CYCLE_DURATION_BUCKETS,
    DEFAULT_LATENCY_BUCKETS,
    REGISTRY,
)

__all__ = [
    "CYCLE_DURATION_BUCKETS",
    "DEFAULT_LATENCY_BUCKETS",
    "REGISTRY",
    "generate_latest",
]
