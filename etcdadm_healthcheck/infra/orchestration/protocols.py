"""Protocol definitions for the orchestration API client abstraction.

This module defines the OrchestrationClientProtocol that allows for:
- Testing with the in-memory implementation
- Dependency injection of a cached and an uncached client into the scheduler
- A clear contract for what the health check needs from the API server
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from etcdadm_healthcheck.infra.orchestration.models import Cluster, EtcdCluster, Machine


@runtime_checkable
class OrchestrationClientProtocol(Protocol):
    """Protocol for the orchestration API operations used by the health check.

    Failures raise OrchestrationApiError (ResourceNotFoundError for 404s
    where the object is required). Callers decide whether a failure is fatal
    for the current cycle; none of them is fatal for the scheduler.
    """

    async def list_etcd_clusters(self) -> list[EtcdCluster]:
        """List etcdadm clusters (in the configured namespace, or all)."""
        ...

    async def get_etcd_cluster(self, namespace: str, name: str) -> EtcdCluster:
        """Read a single etcdadm cluster.

        Raises:
            ResourceNotFoundError: If the cluster no longer exists.
        """
        ...

    async def get_owner_cluster(self, etcd_cluster: EtcdCluster) -> Cluster | None:
        """Read the Cluster API Cluster that owns ``etcd_cluster``.

        Returns:
            The owning Cluster, or None if it has no owner or the owner is gone.
        """
        ...

    async def list_etcd_machines(self, etcd_cluster: EtcdCluster) -> list[Machine]:
        """List the Machines that host members of ``etcd_cluster``."""
        ...

    async def delete_machine(self, machine: Machine) -> None:
        """Request deletion of ``machine``.

        A machine that is already gone counts as deleted.
        """
        ...

    async def update_etcd_endpoints(self, etcd_cluster: EtcdCluster, endpoints: list[str]) -> None:
        """Record a new endpoint list on the cluster status and mark it not ready."""
        ...

    async def close(self) -> None:
        """Close the client and release resources."""
        ...
