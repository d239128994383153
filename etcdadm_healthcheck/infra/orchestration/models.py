"""Orchestration API object models.

Pydantic models for the subset of Cluster API and etcdadm objects the health
check reads. They parse the camelCase JSON the API server returns and ignore
every field not listed here.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PAUSED_ANNOTATION = "cluster.x-k8s.io/paused"
CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
ETCD_CLUSTER_LABEL = "cluster.x-k8s.io/etcd-cluster"


class ResourceModel(BaseModel):
    """Base model for API objects (camelCase aliases, unknown fields ignored)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class OwnerReference(ResourceModel):
    api_version: str = ""
    kind: str
    name: str
    uid: str = ""


class ObjectMeta(ResourceModel):
    """Object metadata shared by every API object."""

    name: str
    namespace: str = "default"
    uid: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_references: list[OwnerReference] = Field(default_factory=list)
    deletion_timestamp: datetime | None = None


class MachineAddress(ResourceModel):
    type: str = ""
    address: str


class MachineStatus(ResourceModel):
    addresses: list[MachineAddress] = Field(default_factory=list)
    phase: str | None = None


class Machine(ResourceModel):
    """A Cluster API Machine hosting one etcd member."""

    metadata: ObjectMeta
    status: MachineStatus = Field(default_factory=MachineStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def address_set(self) -> frozenset[str]:
        """Every address the machine reports, regardless of type."""
        return frozenset(a.address for a in self.status.addresses if a.address)

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None


class EtcdClusterSpec(ResourceModel):
    replicas: int | None = None


class EtcdClusterStatus(ResourceModel):
    """Status subresource of an EtcdadmCluster.

    ``endpoints`` is the comma-separated client URL list recorded by the
    controller, e.g. "https://10.0.0.1:2379,https://10.0.0.2:2379".
    """

    endpoints: str = ""
    creation_complete: bool = False
    ready: bool = False


class EtcdCluster(ResourceModel):
    """An EtcdadmCluster object."""

    metadata: ObjectMeta
    spec: EtcdClusterSpec = Field(default_factory=EtcdClusterSpec)
    status: EtcdClusterStatus = Field(default_factory=EtcdClusterStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def uid(self) -> str:
        """Stable identity used to key health sessions.

        Falls back to namespace/name for objects that never got a UID
        (hand-built fixtures, dry runs).
        """
        return self.metadata.uid or f"{self.namespace}/{self.name}"

    @property
    def paused(self) -> bool:
        return PAUSED_ANNOTATION in self.metadata.annotations

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    @property
    def cluster_name(self) -> str | None:
        """Name of the owning Cluster API Cluster, if known."""
        for ref in self.metadata.owner_references:
            if ref.kind == "Cluster":
                return ref.name
        return self.metadata.labels.get(CLUSTER_NAME_LABEL)


class ClusterSpec(ResourceModel):
    paused: bool = False


class Cluster(ResourceModel):
    """A Cluster API Cluster that owns an etcd cluster."""

    metadata: ObjectMeta
    spec: ClusterSpec = Field(default_factory=ClusterSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def paused(self) -> bool:
        return self.spec.paused or PAUSED_ANNOTATION in self.metadata.annotations
