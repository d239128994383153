"""Background scheduler for periodic etcd member health checks.

The HealthCheckScheduler owns the table of per-cluster health sessions and
runs a tick every ``interval`` seconds until stopped. On each tick it
re-reads every etcd cluster and, for each one that is eligible, runs one
HealthCheckCycle under that cluster's session lock.

One cluster never stops the loop. Each cluster is checked in its own task
with its own error handling, and API failures are retried by the next
tick. Only the stop event, or cancelling the task, ends the loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from etcdadm_healthcheck.core.exceptions import OrchestrationApiError, RemediationError
from etcdadm_healthcheck.features.healthcheck.cycle import CycleResult, HealthCheckCycle
from etcdadm_healthcheck.features.healthcheck.ledger import ClusterHealthSession
from etcdadm_healthcheck.features.healthcheck.metrics import (
    healthcheck_sessions,
    healthcheck_skipped_total,
)
from etcdadm_healthcheck.features.healthcheck.probe import make_tcp_probe
from etcdadm_healthcheck.features.healthcheck.resolver import parse_endpoints
from etcdadm_healthcheck.infra.logging.context import clear_log_context, set_log_context

if TYPE_CHECKING:
    from etcdadm_healthcheck.core.settings.healthcheck import HealthCheckSettings
    from etcdadm_healthcheck.features.healthcheck.probe import ReachabilityProbe
    from etcdadm_healthcheck.infra.orchestration.models import EtcdCluster
    from etcdadm_healthcheck.infra.orchestration.protocols import OrchestrationClientProtocol

logger = logging.getLogger(__name__)


class HealthCheckScheduler:
    """Periodic health check loop over all etcd clusters.

    Two clients can be injected: ``client`` lists clusters each tick and may
    be backed by a cache, while ``uncached_client`` is used by the cycle for
    the reads that decide removals. When only one is given it serves both.

    Example:
        scheduler = HealthCheckScheduler(client, interval=0.5)
        scheduler.set_reachability_probe(always_reachable)

        stop = asyncio.Event()
        task = asyncio.create_task(scheduler.start(stop))
        ...
        stop.set()
        await task
    """

    def __init__(
        self,
        client: OrchestrationClientProtocol,
        *,
        uncached_client: OrchestrationClientProtocol | None = None,
        settings: HealthCheckSettings | None = None,
        probe: ReachabilityProbe | None = None,
        interval: float | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            client: Client used to list etcd clusters and their owners.
            uncached_client: Client for live reads during a cycle. Defaults to ``client``.
            settings: HealthCheckSettings. If None, loads from environment.
            probe: Reachability probe. If None, uses a TCP connect probe.
            interval: Tick interval override in seconds (sub-second allowed).
        """
        from etcdadm_healthcheck.core.settings import get_healthcheck_settings

        self._settings = settings or get_healthcheck_settings()
        self._client = client
        self._uncached_client = uncached_client or client
        self._interval = interval if interval is not None else self._settings.interval_seconds
        if self._interval <= 0:
            raise ValueError(f"interval must be positive, got {self._interval}")

        if probe is None:
            probe = make_tcp_probe(
                timeout=self._settings.probe_timeout,
                default_port=self._settings.etcd_client_port,
            )
        self._cycle = HealthCheckCycle(self._uncached_client, probe, self._settings)

        self.sessions: dict[str, ClusterHealthSession] = {}

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def probe(self) -> ReachabilityProbe:
        return self._cycle.probe

    def set_reachability_probe(self, probe: ReachabilityProbe) -> None:
        """Replace the reachability probe used by subsequent cycles."""
        self._cycle.probe = probe

    def forget_cluster(self, cluster_uid: str) -> bool:
        """Discard the health session of a deleted etcd cluster.

        Returns:
            True if a session existed.
        """
        session = self.sessions.pop(cluster_uid, None)
        healthcheck_sessions.set(len(self.sessions))
        if session is None:
            return False
        logger.debug("Dropped health session of deleted etcd cluster", extra={"cluster_uid": cluster_uid})
        return True

    async def run_once(self) -> dict[str, CycleResult]:
        """Run one tick over every etcd cluster.

        Returns:
            Cycle results keyed by cluster UID, for clusters whose cycle ran
            to completion. Skipped and failed clusters are absent.

        Raises:
            OrchestrationApiError: Listing the etcd clusters failed.
        """
        clusters = await self._client.list_etcd_clusters()
        if self._settings.namespace:
            clusters = [c for c in clusters if c.namespace == self._settings.namespace]

        live = {c.uid for c in clusters}
        for uid in [uid for uid in self.sessions if uid not in live]:
            self.forget_cluster(uid)

        results = await asyncio.gather(*(self._check_cluster(c) for c in clusters))
        return {c.uid: r for c, r in zip(clusters, results, strict=True) if r is not None}

    async def start(self, stop_event: asyncio.Event | None = None) -> None:
        """Run ticks until ``stop_event`` is set or the task is cancelled.

        A stop that arrives mid-tick abandons the tick; cycles leave their
        sessions valid at every await point, so nothing is lost but the
        remaining probes.
        """
        stop_event = stop_event or asyncio.Event()

        logger.info(
            "Etcd health check loop started",
            extra={
                "interval_seconds": self._interval,
                "removal_threshold": self._settings.removal_threshold,
            },
        )

        while not stop_event.is_set():
            if not await self._tick_until_stopped(stop_event):
                break

            # Wait for next interval or stop signal
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
                break
            except TimeoutError:
                continue

        logger.debug("Etcd health check loop stopped", extra={"sessions": len(self.sessions)})

    async def _tick_until_stopped(self, stop_event: asyncio.Event) -> bool:
        """Race one tick against the stop event.

        Returns:
            False if the stop fired before the tick finished.
        """
        tick = asyncio.create_task(self.run_once(), name="etcd-healthcheck-tick")
        stopped = asyncio.create_task(stop_event.wait(), name="etcd-healthcheck-stop")
        try:
            await asyncio.wait({tick, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            tick_finished = tick.done()
            tick.cancel()
            stopped.cancel()
            await asyncio.gather(tick, stopped, return_exceptions=True)

        if not tick_finished:
            logger.debug("Stop requested during health check tick, abandoning it")
            return False

        error = tick.exception()
        if error is not None:
            logger.warning(
                "Error in etcd health check tick",
                extra={"error": str(error), "error_type": type(error).__name__},
            )
        return True

    async def _check_cluster(self, etcd_cluster: EtcdCluster) -> CycleResult | None:
        """Check one cluster; never raises except on cancellation."""
        clear_log_context()
        set_log_context(
            etcd_cluster=etcd_cluster.name,
            namespace=etcd_cluster.namespace,
            cluster_uid=etcd_cluster.uid,
        )
        try:
            return await self._check(etcd_cluster)
        except RemediationError as e:
            logger.warning("Etcd member remediation incomplete", extra=e.to_log_extra())
        except OrchestrationApiError as e:
            logger.warning("Orchestration API error during etcd health check", extra=e.to_log_extra())
        except Exception:
            logger.exception("Unexpected error during etcd health check")
        return None

    async def _check(self, etcd_cluster: EtcdCluster) -> CycleResult | None:
        uid = etcd_cluster.uid

        if etcd_cluster.is_deleting:
            self.forget_cluster(uid)
            return None

        if etcd_cluster.paused:
            healthcheck_skipped_total.labels(reason="paused").inc()
            logger.info("Health check paused for etcd cluster, skipping")
            return None

        if not etcd_cluster.status.creation_complete:
            healthcheck_skipped_total.labels(reason="provisioning").inc()
            logger.info("Etcd cluster not yet provisioned, skipping health check")
            return None

        if not parse_endpoints(etcd_cluster.status.endpoints):
            healthcheck_skipped_total.labels(reason="no_endpoints").inc()
            logger.debug("Etcd cluster records no endpoints, nothing to check")
            return None

        owner = await self._client.get_owner_cluster(etcd_cluster)
        if owner is not None and owner.paused:
            healthcheck_skipped_total.labels(reason="owner_paused").inc()
            logger.info("Owning cluster paused, skipping health check", extra={"cluster": owner.name})
            return None

        session = self.sessions.get(uid)
        if session is None:
            session = ClusterHealthSession(cluster_uid=uid)
            self.sessions[uid] = session
            healthcheck_sessions.set(len(self.sessions))
        session.cluster = owner

        if session.lock.locked():
            healthcheck_skipped_total.labels(reason="busy").inc()
            logger.debug("Previous health check cycle still running, skipping")
            return None

        async with session.lock:
            return await self._cycle.run(session, etcd_cluster)


async def start_health_check_loop(
    stop_event: asyncio.Event,
    client: OrchestrationClientProtocol,
    *,
    uncached_client: OrchestrationClientProtocol | None = None,
    settings: HealthCheckSettings | None = None,
    probe: ReachabilityProbe | None = None,
    interval: float | None = None,
) -> HealthCheckScheduler:
    """Build a scheduler and run it until ``stop_event`` is set.

    This is the main entry point for the health check. It blocks until the
    loop ends and returns the scheduler so callers can inspect its sessions.

    Example:
        stop = asyncio.Event()
        loop_task = asyncio.create_task(start_health_check_loop(stop, client))
        ...
        stop.set()
        scheduler = await loop_task
    """
    from etcdadm_healthcheck.core.settings import get_healthcheck_settings

    settings = settings or get_healthcheck_settings()
    scheduler = HealthCheckScheduler(
        client,
        uncached_client=uncached_client,
        settings=settings,
        probe=probe,
        interval=interval,
    )

    if not settings.enabled:
        logger.info("Etcd health check disabled, not starting loop")
        return scheduler

    await scheduler.start(stop_event)
    return scheduler
