"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
    - Environment Fixtures: isolate settings from the host environment
    - Orchestration Fixtures: in-memory API server and object factories
    - Health Check Fixtures: settings and scripted reachability probes

When adding new tests:
    1. Prefer InMemoryOrchestrationClient over mocking individual calls
    2. Build objects through the factories so field names stay in one place
    3. Keep tick intervals sub-second; the algorithm does not depend on them
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest

from etcdadm_healthcheck.core.settings import HealthCheckSettings, clear_all_caches
from etcdadm_healthcheck.infra.orchestration import (
    Cluster,
    EtcdCluster,
    InMemoryOrchestrationClient,
    Machine,
)
from etcdadm_healthcheck.infra.orchestration.models import (
    CLUSTER_NAME_LABEL,
    ETCD_CLUSTER_LABEL,
    PAUSED_ANNOTATION,
)

# Ensure tests never read a real service account or cluster config
os.environ.setdefault("ORCHESTRATION_API_URL", "https://api.test.invalid")
os.environ.setdefault("ORCHESTRATION_TOKEN_FILE", "/nonexistent/token")
os.environ.setdefault("ORCHESTRATION_CA_FILE", "/nonexistent/ca.crt")


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every YAML config directory at an empty temp dir and reset caches."""
    empty = tmp_path / "conf"
    empty.mkdir()
    for var in ("HEALTHCHECK_CONFIG_DIR", "ORCHESTRATION_CONFIG_DIR", "LOG_CONFIG_DIR"):
        monkeypatch.setenv(var, str(empty))
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Orchestration Fixtures
# ============================================================================


@pytest.fixture
def api() -> InMemoryOrchestrationClient:
    """In-memory orchestration API server."""
    return InMemoryOrchestrationClient()


@pytest.fixture
def make_machine() -> Callable[..., Machine]:
    """Factory for Machines that host etcd members.

    Example:
        machine = make_machine("etcd-0", "10.0.0.1")
    """

    def factory(
        name: str,
        *addresses: str,
        etcd_cluster: str = "etcd-a",
        cluster: str = "workload",
        namespace: str = "default",
        deleting: bool = False,
    ) -> Machine:
        metadata: dict[str, Any] = {
            "name": name,
            "namespace": namespace,
            "labels": {ETCD_CLUSTER_LABEL: etcd_cluster, CLUSTER_NAME_LABEL: cluster},
        }
        if deleting:
            metadata["deletionTimestamp"] = "2026-01-01T00:00:00Z"
        return Machine.model_validate(
            {
                "metadata": metadata,
                "status": {
                    "addresses": [{"type": "InternalIP", "address": a} for a in addresses],
                },
            }
        )

    return factory


@pytest.fixture
def make_etcd_cluster() -> Callable[..., EtcdCluster]:
    """Factory for EtcdadmCluster objects.

    Example:
        etcd = make_etcd_cluster(endpoints=["https://10.0.0.1:2379"])
    """

    def factory(
        name: str = "etcd-a",
        *,
        endpoints: list[str] | None = None,
        creation_complete: bool = True,
        paused: bool = False,
        replicas: int | None = None,
        namespace: str = "default",
        uid: str | None = None,
        cluster: str = "workload",
        deleting: bool = False,
    ) -> EtcdCluster:
        metadata: dict[str, Any] = {
            "name": name,
            "namespace": namespace,
            "uid": uid if uid is not None else f"uid-{name}",
            "ownerReferences": [
                {"apiVersion": "cluster.x-k8s.io/v1beta1", "kind": "Cluster", "name": cluster}
            ],
        }
        if paused:
            metadata["annotations"] = {PAUSED_ANNOTATION: "true"}
        if deleting:
            metadata["deletionTimestamp"] = "2026-01-01T00:00:00Z"
        return EtcdCluster.model_validate(
            {
                "metadata": metadata,
                "spec": {"replicas": replicas},
                "status": {
                    "endpoints": ",".join(endpoints or []),
                    "creationComplete": creation_complete,
                    "ready": creation_complete,
                },
            }
        )

    return factory


@pytest.fixture
def make_cluster() -> Callable[..., Cluster]:
    """Factory for the Cluster API Cluster that owns an etcd cluster."""

    def factory(name: str = "workload", *, paused: bool = False, namespace: str = "default") -> Cluster:
        return Cluster.model_validate(
            {"metadata": {"name": name, "namespace": namespace}, "spec": {"paused": paused}}
        )

    return factory


# ============================================================================
# Health Check Fixtures
# ============================================================================


@pytest.fixture
def hc_settings() -> HealthCheckSettings:
    """Health check settings with a fast tick and a threshold of 3."""
    return HealthCheckSettings(
        interval_seconds=0.05,
        probe_timeout=0.05,
        removal_threshold=3,
    )


class ScriptedProbe:
    """Reachability probe with a fixed answer per endpoint.

    Endpoints not in ``unreachable`` are reported reachable. Every call is
    recorded in ``calls``.
    """

    def __init__(self, unreachable: set[str] | None = None) -> None:
        self.unreachable = set(unreachable or ())
        self.calls: list[str] = []

    async def __call__(self, endpoint: str) -> bool:
        self.calls.append(endpoint)
        return endpoint not in self.unreachable


@pytest.fixture
def scripted_probe() -> Callable[..., ScriptedProbe]:
    """Factory for ScriptedProbe instances."""
    return ScriptedProbe
