"""Shared Prometheus registry and bucket definitions."""

from __future__ import annotations

from prometheus_client import CollectorRegistry

# Custom registry so tests and the CLI exporter see only this service's metrics
REGISTRY = CollectorRegistry()

# Covers API call latencies from 1ms to 10s
DEFAULT_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)

# A cycle waits on every probe, so it can run up to the probe timeout and beyond
CYCLE_DURATION_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
)
