"""One health check pass over a single etcd cluster.

A cycle:
1. Re-reads the etcd cluster and its machines through the uncached client
2. Probes every recorded endpoint concurrently
3. Updates the session's failure counters and queues removals
4. Prunes ledger entries for endpoints that are no longer listed
5. Deletes the machines of members that stayed unreachable, unless that
   would leave the cluster below quorum, and records the shrunken
   endpoint list on the cluster status

Probe failures are data, not errors. Only a failed removal or status
update is reported, as RemediationError, after the ledger is consistent.
Both are retried on the next cycle: failed deletions stay pending, and
removed members stay queued for the status update until it succeeds.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from opentelemetry import trace

from etcdadm_healthcheck.core.exceptions import (
    OrchestrationApiError,
    RemediationError,
    ResourceNotFoundError,
)
from etcdadm_healthcheck.features.healthcheck.metrics import (
    healthcheck_cycle_duration_seconds,
    healthcheck_cycles_total,
    healthcheck_probes_total,
    healthcheck_removals_total,
    healthcheck_unowned_endpoints_total,
)
from etcdadm_healthcheck.features.healthcheck.resolver import parse_endpoints

if TYPE_CHECKING:
    from etcdadm_healthcheck.core.settings.healthcheck import HealthCheckSettings
    from etcdadm_healthcheck.features.healthcheck.ledger import ClusterHealthSession
    from etcdadm_healthcheck.features.healthcheck.probe import ReachabilityProbe
    from etcdadm_healthcheck.infra.orchestration.models import EtcdCluster
    from etcdadm_healthcheck.infra.orchestration.protocols import OrchestrationClientProtocol

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class CycleResult:
    """Summary of one cycle.

    Attributes:
        cluster_uid: Etcd cluster the cycle ran for.
        healthy: Endpoints that accepted a connection.
        unhealthy: Endpoints that did not.
        removals_issued: Machines removed (or found already gone) this cycle.
        unowned: Unhealthy endpoints due for removal with no owning machine.
        quorum_blocked: Removals were held back to protect quorum.
    """

    cluster_uid: str
    healthy: int = 0
    unhealthy: int = 0
    removals_issued: int = 0
    unowned: tuple[str, ...] = ()
    quorum_blocked: bool = False


class HealthCheckCycle:
    """Runs health check cycles against one orchestration client.

    The client should read live state; the cycle decides removals from the
    machines it lists, and a cached view is what makes endpoints resolve
    to machines that no longer exist.
    """

    def __init__(
        self,
        client: OrchestrationClientProtocol,
        probe: ReachabilityProbe,
        settings: HealthCheckSettings,
    ) -> None:
        self.client = client
        self.probe = probe
        self._settings = settings

    async def run(self, session: ClusterHealthSession, etcd_cluster: EtcdCluster) -> CycleResult:
        """Run one cycle for ``etcd_cluster``.

        The caller must hold ``session.lock``.

        Raises:
            RemediationError: A machine removal or the endpoint status update failed.
            OrchestrationApiError: Reading the cluster or its machines failed.
        """
        start_time = time.perf_counter()

        with tracer.start_as_current_span("healthcheck.cycle") as span:
            span.set_attribute("etcd_cluster.name", etcd_cluster.name)
            span.set_attribute("etcd_cluster.namespace", etcd_cluster.namespace)

            try:
                result = await self._run(session, etcd_cluster)
            except RemediationError as e:
                span.record_exception(e)
                healthcheck_cycles_total.labels(outcome="remediation_failed").inc()
                raise
            except Exception as e:
                span.record_exception(e)
                healthcheck_cycles_total.labels(outcome="error").inc()
                raise
            finally:
                healthcheck_cycle_duration_seconds.observe(time.perf_counter() - start_time)

            span.set_attribute("etcd_cluster.healthy", result.healthy)
            span.set_attribute("etcd_cluster.unhealthy", result.unhealthy)
            outcome = "quorum_blocked" if result.quorum_blocked else "ok"
            healthcheck_cycles_total.labels(outcome=outcome).inc()
            return result

    async def _run(self, session: ClusterHealthSession, etcd_cluster: EtcdCluster) -> CycleResult:
        try:
            current = await self.client.get_etcd_cluster(etcd_cluster.namespace, etcd_cluster.name)
        except ResourceNotFoundError:
            logger.debug("Etcd cluster disappeared before its health check ran")
            return CycleResult(cluster_uid=session.cluster_uid)

        endpoints = parse_endpoints(current.status.endpoints)
        if not endpoints:
            session.prune([])
            return CycleResult(cluster_uid=session.cluster_uid)

        machines = await self.client.list_etcd_machines(current)
        session.refresh(machines, endpoints)

        outcomes = await asyncio.gather(*(self._probe(ep) for ep in endpoints))
        reachable = {ep for ep, ok in zip(endpoints, outcomes, strict=True) if ok}
        for endpoint in endpoints:
            ok = endpoint in reachable
            session.record_outcome(endpoint, ok)
            healthcheck_probes_total.labels(result="reachable" if ok else "unreachable").inc()

        threshold = self._settings.removal_threshold
        unowned: list[str] = []
        for endpoint in endpoints:
            if not session.evaluate_for_removal(endpoint, threshold):
                continue
            machine = session.endpoint_to_node.get(endpoint)
            if machine is None:
                unowned.append(endpoint)
                healthcheck_unowned_endpoints_total.inc()
                logger.warning(
                    "No machine found for unhealthy etcd member, skipping removal",
                    extra={"endpoint": endpoint, "failures": session.failure_count(endpoint)},
                )
            else:
                logger.warning(
                    "Marking unhealthy etcd member for removal",
                    extra={
                        "endpoint": endpoint,
                        "machine": machine.name,
                        "failures": session.failure_count(endpoint),
                    },
                )

        session.prune(endpoints)

        removed: list[str] = []
        failed: list[str] = []
        quorum_blocked = False
        if session.pending_removal:
            if self._quorum_at_risk(current, endpoints, reachable):
                quorum_blocked = True
                logger.warning(
                    "Too few healthy etcd members to remove unhealthy ones safely, deferring removal",
                    extra={
                        "healthy": len(reachable),
                        "endpoints": len(endpoints),
                        "pending": sorted(session.pending_removal),
                    },
                )
            else:
                removed, failed = await self._remove_machines(session)

        # Includes removals from earlier cycles whose status update failed
        if session.pending_write_back:
            failed.extend(await self._write_back(session, current, endpoints))

        if failed:
            raise RemediationError(
                f"Remediation failed for {len(failed)} etcd member(s)",
                failed_endpoints=failed,
                extra={"removed": removed},
            )

        result = CycleResult(
            cluster_uid=session.cluster_uid,
            healthy=len(reachable),
            unhealthy=len(endpoints) - len(reachable),
            removals_issued=len(removed),
            unowned=tuple(unowned),
            quorum_blocked=quorum_blocked,
        )

        logger.debug(
            "Etcd health check cycle finished",
            extra={
                "healthy": result.healthy,
                "unhealthy": result.unhealthy,
                "removals_issued": result.removals_issued,
            },
        )
        return result

    async def _probe(self, endpoint: str) -> bool:
        """Run the configured probe with the cycle's deadline; never raises."""
        try:
            async with asyncio.timeout(self._settings.probe_timeout):
                return bool(await self.probe(endpoint))
        except TimeoutError:
            return False
        except Exception as e:
            logger.warning(
                "Reachability probe failed, treating endpoint as unreachable",
                extra={"endpoint": endpoint, "error": str(e)},
            )
            return False

    def _quorum_at_risk(
        self,
        etcd_cluster: EtcdCluster,
        endpoints: list[str],
        reachable: set[str],
    ) -> bool:
        if not self._settings.quorum_guard:
            return False
        members = etcd_cluster.spec.replicas or len(endpoints)
        return len(reachable) < members // 2 + 1

    async def _remove_machines(self, session: ClusterHealthSession) -> tuple[list[str], list[str]]:
        """Delete the machine of every pending endpoint.

        Machines that are gone or already being deleted count as removed
        without another delete request.

        Returns:
            Removed endpoints and endpoints whose deletion failed.
        """
        removed: list[str] = []
        failed: list[str] = []

        for endpoint, machine in sorted(session.pending_removal.items()):
            owned = session.owned_nodes.get(machine.name)
            if owned is None or owned.is_deleting:
                logger.info(
                    "Machine for unhealthy etcd member already gone",
                    extra={"endpoint": endpoint, "machine": machine.name},
                )
                session.complete_removal(endpoint)
                removed.append(endpoint)
                continue

            try:
                await self.client.delete_machine(owned)
            except OrchestrationApiError as e:
                healthcheck_removals_total.labels(status="failure").inc()
                logger.warning(
                    "Failed to remove machine of unhealthy etcd member, will retry next tick",
                    extra={"endpoint": endpoint, "machine": machine.name, **e.to_log_extra()},
                )
                failed.append(endpoint)
                continue

            healthcheck_removals_total.labels(status="success").inc()
            session.complete_removal(endpoint)
            removed.append(endpoint)
            logger.info(
                "Removed machine of unhealthy etcd member",
                extra={"endpoint": endpoint, "machine": machine.name},
            )

        return removed, failed

    async def _write_back(
        self,
        session: ClusterHealthSession,
        etcd_cluster: EtcdCluster,
        endpoints: list[str],
    ) -> list[str]:
        """Record the endpoint list without members whose machine is gone.

        Returns:
            The endpoints still to be written out if the update failed,
            otherwise an empty list.
        """
        stale = sorted(session.pending_write_back)
        remaining = [ep for ep in endpoints if ep not in session.pending_write_back]
        try:
            await self.client.update_etcd_endpoints(etcd_cluster, remaining)
        except OrchestrationApiError as e:
            logger.warning(
                "Failed to record etcd endpoints after member removal, will retry next tick",
                extra={"stale_endpoints": stale, **e.to_log_extra()},
            )
            return stale

        session.complete_write_back(stale)
        return []
