"""Orchestration API access for the etcd health check.

This package provides:
- OrchestrationClientProtocol: what the health check needs from the API server
- OrchestrationClient: httpx implementation against the Kubernetes REST API
- InMemoryOrchestrationClient: in-memory implementation for tests and dry runs
- Pydantic models for EtcdadmCluster, Cluster and Machine objects

Usage:
    from etcdadm_healthcheck.core.settings import get_orchestration_settings
    from etcdadm_healthcheck.infra.orchestration import OrchestrationClient

    client = OrchestrationClient(get_orchestration_settings())
    clusters = await client.list_etcd_clusters()
    await client.close()

Configuration:
    ORCHESTRATION_API_URL=https://kubernetes.default.svc
    ORCHESTRATION_TOKEN=...
    ORCHESTRATION_VERIFY_SSL=true
"""

from etcdadm_healthcheck.infra.orchestration.client import OrchestrationClient
from etcdadm_healthcheck.infra.orchestration.mock_client import InMemoryOrchestrationClient
from etcdadm_healthcheck.infra.orchestration.models import (
    Cluster,
    EtcdCluster,
    Machine,
    MachineAddress,
    ObjectMeta,
)
from etcdadm_healthcheck.infra.orchestration.protocols import OrchestrationClientProtocol

__all__ = [
    # Protocol
    "OrchestrationClientProtocol",
    # Clients
    "InMemoryOrchestrationClient",
    "OrchestrationClient",
    # Models
    "Cluster",
    "EtcdCluster",
    "Machine",
    "MachineAddress",
    "ObjectMeta",
]
