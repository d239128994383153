"""In-memory orchestration client for tests and dry runs.

This module provides InMemoryOrchestrationClient, which implements
OrchestrationClientProtocol and keeps all objects in memory.

Usage in tests:
    from etcdadm_healthcheck.infra.orchestration.mock_client import InMemoryOrchestrationClient

    @pytest.fixture
    def api():
        return InMemoryOrchestrationClient()

    async def test_removal(api):
        api.add_etcd_cluster(etcd_cluster)
        api.add_machine(machine)
        ...
        assert api.deleted_machines == ["etcd-0"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from etcdadm_healthcheck.core.exceptions import OrchestrationApiError, ResourceNotFoundError
from etcdadm_healthcheck.infra.orchestration.models import (
    CLUSTER_NAME_LABEL,
    ETCD_CLUSTER_LABEL,
    Cluster,
    EtcdCluster,
    Machine,
)

logger = logging.getLogger(__name__)


@dataclass
class CallRecord:
    """Record of a method call for assertion in tests."""

    method: str
    args: dict[str, Any]
    success: bool


class InMemoryOrchestrationClient:
    """In-memory orchestration client.

    Attributes:
        etcd_clusters: EtcdClusters keyed by "namespace/name".
        clusters: Cluster API Clusters keyed by "namespace/name".
        machines: Machines keyed by "namespace/name".
        call_history: List of all method calls for assertion.
        deleted_machines: Names of machines deleted, in order.
        endpoint_updates: (etcd cluster name, endpoints) pairs, in order.
        fail_next_call: Set to True to make the next call raise.
        fail_operations: Operation names that always raise.
        closed: Whether close() has been called.
    """

    def __init__(self) -> None:
        self.etcd_clusters: dict[str, EtcdCluster] = {}
        self.clusters: dict[str, Cluster] = {}
        self.machines: dict[str, Machine] = {}
        self.call_history: list[CallRecord] = []
        self.deleted_machines: list[str] = []
        self.endpoint_updates: list[tuple[str, list[str]]] = []
        self.fail_next_call: bool = False
        self.fail_operations: set[str] = set()
        self.closed: bool = False

    # ──────────────────────────────────────────────────────────────
    # Fixture helpers
    # ──────────────────────────────────────────────────────────────

    def add_etcd_cluster(self, etcd_cluster: EtcdCluster) -> None:
        self.etcd_clusters[_key(etcd_cluster.namespace, etcd_cluster.name)] = etcd_cluster

    def add_cluster(self, cluster: Cluster) -> None:
        self.clusters[_key(cluster.metadata.namespace, cluster.name)] = cluster

    def add_machine(self, machine: Machine) -> None:
        self.machines[_key(machine.namespace, machine.name)] = machine

    def remove_machine(self, machine: Machine) -> None:
        """Drop a machine without recording a deletion (out-of-band removal)."""
        self.machines.pop(_key(machine.namespace, machine.name), None)

    def remove_etcd_cluster(self, etcd_cluster: EtcdCluster) -> None:
        self.etcd_clusters.pop(_key(etcd_cluster.namespace, etcd_cluster.name), None)

    def calls(self, method: str) -> list[CallRecord]:
        """Return recorded calls of one method."""
        return [c for c in self.call_history if c.method == method]

    def _check_failure(self, method: str, args: dict[str, Any]) -> None:
        should_fail = self.fail_next_call or method in self.fail_operations
        self.fail_next_call = False
        self.call_history.append(CallRecord(method=method, args=args, success=not should_fail))
        if should_fail:
            logger.debug("In-memory orchestration call failing on request", extra={"operation": method})
            raise OrchestrationApiError(
                f"{method} failed (simulated)",
                operation=method,
                status_code=500,
            )

    # ──────────────────────────────────────────────────────────────
    # OrchestrationClientProtocol
    # ──────────────────────────────────────────────────────────────

    async def list_etcd_clusters(self) -> list[EtcdCluster]:
        self._check_failure("list_etcd_clusters", {})
        return list(self.etcd_clusters.values())

    async def get_etcd_cluster(self, namespace: str, name: str) -> EtcdCluster:
        self._check_failure("get_etcd_cluster", {"namespace": namespace, "name": name})
        try:
            return self.etcd_clusters[_key(namespace, name)]
        except KeyError:
            raise ResourceNotFoundError(
                f"etcd cluster {namespace}/{name} not found",
                operation="get_etcd_cluster",
            ) from None

    async def get_owner_cluster(self, etcd_cluster: EtcdCluster) -> Cluster | None:
        self._check_failure("get_owner_cluster", {"etcd_cluster": etcd_cluster.name})
        if etcd_cluster.cluster_name is None:
            return None
        return self.clusters.get(_key(etcd_cluster.namespace, etcd_cluster.cluster_name))

    async def list_etcd_machines(self, etcd_cluster: EtcdCluster) -> list[Machine]:
        self._check_failure("list_etcd_machines", {"etcd_cluster": etcd_cluster.name})
        cluster_name = etcd_cluster.cluster_name
        result = []
        for machine in self.machines.values():
            labels = machine.metadata.labels
            if machine.namespace != etcd_cluster.namespace:
                continue
            if labels.get(ETCD_CLUSTER_LABEL) != etcd_cluster.name:
                continue
            if cluster_name and labels.get(CLUSTER_NAME_LABEL) != cluster_name:
                continue
            result.append(machine)
        return result

    async def delete_machine(self, machine: Machine) -> None:
        self._check_failure("delete_machine", {"machine": machine.name})
        self.machines.pop(_key(machine.namespace, machine.name), None)
        self.deleted_machines.append(machine.name)

    async def update_etcd_endpoints(self, etcd_cluster: EtcdCluster, endpoints: list[str]) -> None:
        self._check_failure(
            "update_etcd_endpoints",
            {"etcd_cluster": etcd_cluster.name, "endpoints": list(endpoints)},
        )
        key = _key(etcd_cluster.namespace, etcd_cluster.name)
        current = self.etcd_clusters.get(key, etcd_cluster)
        status = current.status.model_copy(update={"endpoints": ",".join(endpoints), "ready": False})
        self.etcd_clusters[key] = current.model_copy(update={"status": status})
        self.endpoint_updates.append((etcd_cluster.name, list(endpoints)))

    async def close(self) -> None:
        self.closed = True


def _key(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"
