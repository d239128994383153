"""Per-cluster member health ledger.

A ClusterHealthSession accumulates consecutive probe failures per endpoint
across ticks and tracks which machines are waiting to be removed. The
scheduler owns one session per etcd cluster UID; a cycle holds the
session's lock for its whole run so two cycles never mutate it at once.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from etcdadm_healthcheck.features.healthcheck.resolver import resolve_endpoints

if TYPE_CHECKING:
    from collections.abc import Iterable

    from etcdadm_healthcheck.infra.orchestration.models import Cluster, Machine


@dataclass
class ClusterHealthSession:
    """Health bookkeeping for one etcd cluster.

    Attributes:
        cluster_uid: Identity of the etcd cluster this session belongs to.
        failure_frequency: Endpoint to consecutive failed probe count.
        pending_removal: Endpoint to the machine waiting to be removed.
        pending_write_back: Endpoints whose machine is gone but which are
            still recorded on the cluster status.
        endpoint_to_node: Endpoint to owning machine, None when no machine
            reports the endpoint's address. Rebuilt every cycle.
        owned_nodes: Machines owned by the cluster, keyed by machine name.
        cluster: Owning Cluster API Cluster, read-only reference.
        lock: Held for the duration of a cycle.
    """

    cluster_uid: str
    failure_frequency: dict[str, int] = field(default_factory=dict)
    pending_removal: dict[str, Machine] = field(default_factory=dict)
    pending_write_back: set[str] = field(default_factory=set)
    endpoint_to_node: dict[str, Machine | None] = field(default_factory=dict)
    owned_nodes: dict[str, Machine] = field(default_factory=dict)
    cluster: Cluster | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def refresh(self, machines: Iterable[Machine], endpoints: Iterable[str]) -> None:
        """Replace the owned machines and rebuild the endpoint mapping."""
        machines = list(machines)
        self.owned_nodes = {m.name: m for m in machines}
        self.endpoint_to_node = resolve_endpoints(endpoints, machines)

    def record_outcome(self, endpoint: str, reachable: bool) -> None:
        """Update the endpoint's counter with one probe result.

        A reachable probe resets the counter and cancels a pending removal,
        since the member has recovered.
        """
        if reachable:
            self.failure_frequency[endpoint] = 0
            self.pending_removal.pop(endpoint, None)
        else:
            self.failure_frequency[endpoint] = self.failure_frequency.get(endpoint, 0) + 1

    def evaluate_for_removal(self, endpoint: str, threshold: int) -> bool:
        """Decide whether the endpoint just became due for removal.

        Returns True when the failure count has reached ``threshold`` and the
        endpoint is not already pending. If the endpoint resolves to a machine,
        that machine is queued in ``pending_removal``; an unresolved endpoint
        keeps returning True on later cycles so the miss stays visible.
        Endpoints whose machine was already removed are never due again.
        """
        if endpoint in self.pending_removal or endpoint in self.pending_write_back:
            return False
        if self.failure_frequency.get(endpoint, 0) < threshold:
            return False

        machine = self.endpoint_to_node.get(endpoint)
        if machine is not None:
            self.pending_removal[endpoint] = machine
        return True

    def prune(self, current_endpoints: Iterable[str]) -> list[str]:
        """Drop entries for endpoints that are no longer listed.

        Returns:
            The endpoints that were dropped.
        """
        current = set(current_endpoints)
        stale = {
            ep
            for ep in (
                *self.failure_frequency,
                *self.pending_removal,
                *self.pending_write_back,
                *self.endpoint_to_node,
            )
            if ep not in current
        }
        for endpoint in stale:
            self.failure_frequency.pop(endpoint, None)
            self.pending_removal.pop(endpoint, None)
            self.pending_write_back.discard(endpoint)
            self.endpoint_to_node.pop(endpoint, None)
        return sorted(stale)

    def complete_removal(self, endpoint: str) -> None:
        """Record that the endpoint's machine is gone.

        The endpoint stays in ``pending_write_back`` until the cluster
        status no longer lists it.
        """
        self.pending_removal.pop(endpoint, None)
        self.failure_frequency.pop(endpoint, None)
        self.pending_write_back.add(endpoint)

    def complete_write_back(self, endpoints: Iterable[str]) -> None:
        """Forget endpoints that were written out of the cluster status."""
        self.pending_write_back.difference_update(endpoints)

    def failure_count(self, endpoint: str) -> int:
        return self.failure_frequency.get(endpoint, 0)

    def snapshot(self) -> dict[str, Any]:
        """Return a plain-data view of the session for logs and the CLI."""
        return {
            "cluster_uid": self.cluster_uid,
            "cluster": self.cluster.name if self.cluster is not None else None,
            "failure_frequency": dict(self.failure_frequency),
            "pending_removal": {ep: m.name for ep, m in self.pending_removal.items()},
            "pending_write_back": sorted(self.pending_write_back),
            "unowned_endpoints": sorted(ep for ep, m in self.endpoint_to_node.items() if m is None),
            "owned_nodes": sorted(self.owned_nodes),
        }
