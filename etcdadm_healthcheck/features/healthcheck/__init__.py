"""Periodic etcd member health check and self-healing.

This package provides:
- ReachabilityProbe / tcp_probe: is an endpoint accepting connections
- resolve_endpoints: map recorded endpoints to the machines hosting them
- ClusterHealthSession: per-cluster failure counters and pending removals
- HealthCheckCycle: one probe-and-remediate pass over a cluster
- HealthCheckScheduler / start_health_check_loop: the background loop

Usage:
    from etcdadm_healthcheck.features.healthcheck import start_health_check_loop

    stop = asyncio.Event()
    await start_health_check_loop(stop, client)

Configuration:
    HEALTHCHECK_INTERVAL_SECONDS=30
    HEALTHCHECK_REMOVAL_THRESHOLD=5
    HEALTHCHECK_PROBE_TIMEOUT=5
"""

from etcdadm_healthcheck.features.healthcheck.cycle import CycleResult, HealthCheckCycle
from etcdadm_healthcheck.features.healthcheck.ledger import ClusterHealthSession
from etcdadm_healthcheck.features.healthcheck.probe import (
    ReachabilityProbe,
    make_tcp_probe,
    split_endpoint,
    tcp_probe,
)
from etcdadm_healthcheck.features.healthcheck.resolver import parse_endpoints, resolve_endpoints
from etcdadm_healthcheck.features.healthcheck.scheduler import (
    HealthCheckScheduler,
    start_health_check_loop,
)

__all__ = [
    # Probing
    "ReachabilityProbe",
    "make_tcp_probe",
    "split_endpoint",
    "tcp_probe",
    # Resolution
    "parse_endpoints",
    "resolve_endpoints",
    # Ledger and cycle
    "ClusterHealthSession",
    "CycleResult",
    "HealthCheckCycle",
    # Scheduling
    "HealthCheckScheduler",
    "start_health_check_loop",
]
