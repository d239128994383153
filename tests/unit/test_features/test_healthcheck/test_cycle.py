"""Tests for a single health check cycle.

Tests cover:
- Probing every recorded endpoint and counting failures
- Removal after the threshold, and the endpoint status update
- Endpoints with no owning machine never fail the cycle
- Quorum protection
- Orchestration API failures during remediation
- Misbehaving probes
"""

from __future__ import annotations

import asyncio

import pytest

from etcdadm_healthcheck.core.exceptions import OrchestrationApiError, RemediationError
from etcdadm_healthcheck.core.settings import HealthCheckSettings
from etcdadm_healthcheck.features.healthcheck.cycle import CycleResult, HealthCheckCycle
from etcdadm_healthcheck.features.healthcheck.ledger import ClusterHealthSession

EP0 = "https://10.0.0.1:2379"
EP1 = "https://10.0.0.2:2379"
EP2 = "https://10.0.0.3:2379"


@pytest.fixture
def etcd_cluster(api, make_etcd_cluster, make_machine):
    """Three-member etcd cluster with one machine per member."""
    etcd = make_etcd_cluster(endpoints=[EP0, EP1, EP2], replicas=3)
    api.add_etcd_cluster(etcd)
    for i in range(3):
        api.add_machine(make_machine(f"etcd-{i}", f"10.0.0.{i + 1}"))
    return etcd


@pytest.fixture
def session(etcd_cluster) -> ClusterHealthSession:
    return ClusterHealthSession(cluster_uid=etcd_cluster.uid)


def build_cycle(api, probe, settings: HealthCheckSettings) -> HealthCheckCycle:
    return HealthCheckCycle(api, probe, settings)


@pytest.mark.unit
class TestHealthyCluster:
    """Test cycles where every member answers."""

    async def test_all_reachable(self, api, etcd_cluster, session, scripted_probe, hc_settings) -> None:
        """Test that a healthy cluster leaves every counter at zero."""
        probe = scripted_probe()
        cycle = build_cycle(api, probe, hc_settings)

        result = await cycle.run(session, etcd_cluster)

        assert result == CycleResult(cluster_uid=session.cluster_uid, healthy=3, unhealthy=0)
        assert sorted(probe.calls) == [EP0, EP1, EP2]
        assert session.failure_frequency == {EP0: 0, EP1: 0, EP2: 0}
        assert api.deleted_machines == []

    async def test_reads_cluster_through_client(
        self, api, etcd_cluster, session, scripted_probe, hc_settings, make_etcd_cluster
    ) -> None:
        """Test that the cycle uses the live endpoint list, not the one it was handed."""
        stale = make_etcd_cluster(endpoints=[EP0])
        probe = scripted_probe()

        await build_cycle(api, probe, hc_settings).run(session, stale)

        assert sorted(probe.calls) == [EP0, EP1, EP2]
        assert api.calls("get_etcd_cluster")
        assert api.calls("list_etcd_machines")

    async def test_empty_endpoint_list_is_noop(
        self, api, make_etcd_cluster, scripted_probe, hc_settings
    ) -> None:
        """Test that a cluster with no endpoints is checked without probing."""
        etcd = make_etcd_cluster(endpoints=[])
        api.add_etcd_cluster(etcd)
        probe = scripted_probe()

        result = await build_cycle(api, probe, hc_settings).run(
            ClusterHealthSession(cluster_uid=etcd.uid), etcd
        )

        assert result == CycleResult(cluster_uid=etcd.uid)
        assert probe.calls == []

    async def test_vanished_cluster_is_noop(
        self, api, make_etcd_cluster, scripted_probe, hc_settings
    ) -> None:
        """Test that a cluster deleted since it was listed yields an empty result."""
        etcd = make_etcd_cluster(endpoints=[EP0])  # never added to the API
        probe = scripted_probe()

        result = await build_cycle(api, probe, hc_settings).run(
            ClusterHealthSession(cluster_uid=etcd.uid), etcd
        )

        assert result == CycleResult(cluster_uid=etcd.uid)
        assert probe.calls == []


@pytest.mark.unit
class TestRemoval:
    """Test removal of persistently unreachable members."""

    async def test_removes_after_threshold(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that a member is removed on exactly the threshold-th failure."""
        cycle = build_cycle(api, scripted_probe({EP1}), hc_settings)

        for expected_failures in (1, 2):
            result = await cycle.run(session, etcd_cluster)
            assert result.removals_issued == 0
            assert session.failure_count(EP1) == expected_failures
            assert api.deleted_machines == []

        result = await cycle.run(session, etcd_cluster)

        assert result.removals_issued == 1
        assert result.unhealthy == 1
        assert api.deleted_machines == ["etcd-1"]
        assert session.pending_removal == {}
        assert session.failure_count(EP1) == 0

    async def test_records_remaining_endpoints(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that the status loses the removed member and is marked not ready."""
        cycle = build_cycle(api, scripted_probe({EP1}), hc_settings)
        for _ in range(3):
            await cycle.run(session, etcd_cluster)

        assert api.endpoint_updates == [("etcd-a", [EP0, EP2])]
        stored = api.etcd_clusters["default/etcd-a"]
        assert stored.status.endpoints == f"{EP0},{EP2}"
        assert stored.status.ready is False

    async def test_removed_endpoint_is_pruned_next_cycle(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that the ledger forgets a member once it leaves the endpoint list."""
        probe = scripted_probe({EP1})
        cycle = build_cycle(api, probe, hc_settings)
        for _ in range(3):
            await cycle.run(session, etcd_cluster)
        probe.calls.clear()

        result = await cycle.run(session, etcd_cluster)

        assert sorted(probe.calls) == [EP0, EP2]
        assert EP1 not in session.failure_frequency
        assert EP1 not in session.endpoint_to_node
        assert result.healthy == 2

    async def test_recovery_before_threshold_prevents_removal(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that a blip shorter than the threshold never removes a member."""
        probe = scripted_probe({EP1})
        cycle = build_cycle(api, probe, hc_settings)

        await cycle.run(session, etcd_cluster)
        await cycle.run(session, etcd_cluster)
        probe.unreachable.clear()
        await cycle.run(session, etcd_cluster)
        probe.unreachable.add(EP1)
        await cycle.run(session, etcd_cluster)

        assert session.failure_count(EP1) == 1
        assert api.deleted_machines == []

    async def test_machine_already_gone(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that a queued machine deleted out-of-band counts as removed."""
        cycle = build_cycle(api, scripted_probe({EP1}), hc_settings)
        api.fail_operations.add("delete_machine")
        for _ in range(2):
            await cycle.run(session, etcd_cluster)
        with pytest.raises(RemediationError):
            await cycle.run(session, etcd_cluster)
        assert EP1 in session.pending_removal

        api.fail_operations.clear()
        api.remove_machine(session.pending_removal[EP1])
        result = await cycle.run(session, etcd_cluster)

        assert result.removals_issued == 1
        assert api.deleted_machines == []
        assert session.pending_removal == {}
        assert api.endpoint_updates == [("etcd-a", [EP0, EP2])]

    async def test_machine_already_deleting(
        self, api, etcd_cluster, session, scripted_probe, make_machine
    ) -> None:
        """Test that a machine with a deletion timestamp is not deleted again."""
        api.add_machine(make_machine("etcd-1", "10.0.0.2", deleting=True))
        settings = HealthCheckSettings(interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1)

        result = await build_cycle(api, scripted_probe({EP1}), settings).run(session, etcd_cluster)

        assert result.removals_issued == 1
        assert api.calls("delete_machine") == []
        assert api.endpoint_updates == [("etcd-a", [EP0, EP2])]


@pytest.mark.unit
class TestUnownedEndpoints:
    """Test endpoints that resolve to no machine."""

    async def test_endpoint_without_machine_does_not_fail(
        self, api, make_etcd_cluster, make_machine, scripted_probe
    ) -> None:
        """Test one machine, endpoint list [E], and E resolving to no machine."""
        endpoint = "https://10.0.0.1:2379"
        etcd = make_etcd_cluster(endpoints=[endpoint])
        api.add_etcd_cluster(etcd)
        api.add_machine(make_machine("etcd-0", "10.0.0.50"))
        settings = HealthCheckSettings(
            interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1, quorum_guard=False
        )
        session = ClusterHealthSession(cluster_uid=etcd.uid)

        result = await build_cycle(api, scripted_probe({endpoint}), settings).run(session, etcd)

        assert session.endpoint_to_node == {endpoint: None}
        assert result.unowned == (endpoint,)
        assert result.removals_issued == 0
        assert api.deleted_machines == []
        assert session.failure_count(endpoint) == 1

    async def test_owned_endpoint_mapped_to_no_machine(
        self, api, make_etcd_cluster, make_machine, scripted_probe
    ) -> None:
        """Test one machine reporting E, endpoint list [E], and the map preset to E -> None."""
        endpoint = "https://10.0.0.1:2379"
        etcd = make_etcd_cluster(endpoints=[endpoint])
        api.add_etcd_cluster(etcd)
        api.add_machine(make_machine("etcd-0", "10.0.0.1"))
        session = ClusterHealthSession(cluster_uid=etcd.uid)
        session.endpoint_to_node = {endpoint: None}

        result = await build_cycle(api, scripted_probe({endpoint}), HealthCheckSettings()).run(session, etcd)

        assert result.unhealthy == 1
        assert result.removals_issued == 0
        assert api.calls("delete_machine") == []
        assert session.failure_count(endpoint) == 1

    async def test_counting_continues_without_machines(
        self, api, make_etcd_cluster, scripted_probe, hc_settings
    ) -> None:
        """Test that failure accounting proceeds with an empty machine inventory."""
        etcd = make_etcd_cluster(endpoints=[EP0, EP1])
        api.add_etcd_cluster(etcd)
        session = ClusterHealthSession(cluster_uid=etcd.uid)
        cycle = build_cycle(api, scripted_probe({EP0}), hc_settings)

        for _ in range(4):
            await cycle.run(session, etcd)

        assert session.failure_count(EP0) == 4
        assert session.failure_count(EP1) == 0
        assert session.owned_nodes == {}
        assert api.deleted_machines == []

    async def test_unowned_endpoint_is_logged(
        self, api, make_etcd_cluster, scripted_probe, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that the resolution miss is visible in the logs."""
        etcd = make_etcd_cluster(endpoints=[EP0])
        api.add_etcd_cluster(etcd)
        settings = HealthCheckSettings(
            interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1, quorum_guard=False
        )

        await build_cycle(api, scripted_probe({EP0}), settings).run(
            ClusterHealthSession(cluster_uid=etcd.uid), etcd
        )

        assert "No machine found for unhealthy etcd member, skipping removal" in caplog.text


@pytest.mark.unit
class TestQuorumGuard:
    """Test that removals never leave the cluster below quorum."""

    async def test_blocks_when_majority_unreachable(
        self, api, etcd_cluster, session, scripted_probe
    ) -> None:
        """Test that two of three members down defers removal."""
        settings = HealthCheckSettings(interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1)
        cycle = build_cycle(api, scripted_probe({EP1, EP2}), settings)

        result = await cycle.run(session, etcd_cluster)

        assert result.quorum_blocked is True
        assert api.deleted_machines == []
        assert set(session.pending_removal) == {EP1, EP2}

    async def test_removal_resumes_when_quorum_returns(
        self, api, etcd_cluster, session, scripted_probe
    ) -> None:
        """Test that deferred removals run once enough members answer again."""
        settings = HealthCheckSettings(interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1)
        probe = scripted_probe({EP1, EP2})
        cycle = build_cycle(api, probe, settings)
        await cycle.run(session, etcd_cluster)

        probe.unreachable = {EP2}
        result = await cycle.run(session, etcd_cluster)

        assert result.quorum_blocked is False
        assert api.deleted_machines == ["etcd-2"]
        assert session.pending_removal == {}

    async def test_single_member_cluster(self, api, make_etcd_cluster, make_machine, scripted_probe) -> None:
        """Test that the only member of a cluster is never removed with the guard on."""
        etcd = make_etcd_cluster(endpoints=[EP0])
        api.add_etcd_cluster(etcd)
        api.add_machine(make_machine("etcd-0", "10.0.0.1"))
        settings = HealthCheckSettings(interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1)

        result = await build_cycle(api, scripted_probe({EP0}), settings).run(
            ClusterHealthSession(cluster_uid=etcd.uid), etcd
        )

        assert result.quorum_blocked is True
        assert api.deleted_machines == []

    async def test_guard_disabled(self, api, make_etcd_cluster, make_machine, scripted_probe) -> None:
        """Test that removal proceeds below quorum when the guard is off."""
        etcd = make_etcd_cluster(endpoints=[EP0])
        api.add_etcd_cluster(etcd)
        api.add_machine(make_machine("etcd-0", "10.0.0.1"))
        settings = HealthCheckSettings(
            interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1, quorum_guard=False
        )

        result = await build_cycle(api, scripted_probe({EP0}), settings).run(
            ClusterHealthSession(cluster_uid=etcd.uid), etcd
        )

        assert result.removals_issued == 1
        assert api.deleted_machines == ["etcd-0"]
        assert api.endpoint_updates == [("etcd-a", [])]


@pytest.mark.unit
class TestApiFailures:
    """Test orchestration API failures during a cycle."""

    async def test_failed_delete_raises_and_retries(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that a rejected removal is reported and retried next cycle."""
        cycle = build_cycle(api, scripted_probe({EP1}), hc_settings)
        await cycle.run(session, etcd_cluster)
        await cycle.run(session, etcd_cluster)
        api.fail_operations.add("delete_machine")

        with pytest.raises(RemediationError) as exc_info:
            await cycle.run(session, etcd_cluster)

        assert exc_info.value.failed_endpoints == [EP1]
        assert EP1 in session.pending_removal
        assert api.endpoint_updates == []

        api.fail_operations.clear()
        result = await cycle.run(session, etcd_cluster)

        assert result.removals_issued == 1
        assert api.deleted_machines == ["etcd-1"]

    async def test_failed_status_update_raises(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that a failed endpoint update is reported after the removal."""
        cycle = build_cycle(api, scripted_probe({EP1}), hc_settings)
        api.fail_operations.add("update_etcd_endpoints")
        await cycle.run(session, etcd_cluster)
        await cycle.run(session, etcd_cluster)

        with pytest.raises(RemediationError) as exc_info:
            await cycle.run(session, etcd_cluster)

        assert exc_info.value.failed_endpoints == [EP1]
        assert api.deleted_machines == ["etcd-1"]
        assert session.pending_removal == {}
        assert session.pending_write_back == {EP1}

    async def test_failed_status_update_is_retried_next_cycle(
        self, api, etcd_cluster, session, scripted_probe, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that a removed member is written out of the status once the API recovers."""
        settings = HealthCheckSettings(interval_seconds=0.05, probe_timeout=0.05, removal_threshold=1)
        checker = scripted_probe({EP1})
        cycle = build_cycle(api, checker, settings)
        api.fail_operations.add("update_etcd_endpoints")
        with pytest.raises(RemediationError):
            await cycle.run(session, etcd_cluster)

        api.fail_operations.clear()
        caplog.clear()
        result = await cycle.run(session, etcd_cluster)

        assert result.removals_issued == 0
        assert api.deleted_machines == ["etcd-1"]
        assert api.endpoint_updates == [("etcd-a", [EP0, EP2])]
        assert api.etcd_clusters["default/etcd-a"].status.endpoints == f"{EP0},{EP2}"
        assert session.pending_write_back == set()
        assert "No machine found for unhealthy etcd member" not in caplog.text

        checker.calls.clear()
        for _ in range(3):
            await cycle.run(session, etcd_cluster)

        assert sorted(set(checker.calls)) == [EP0, EP2]
        assert len(api.endpoint_updates) == 1

    async def test_read_failure_propagates(
        self, api, etcd_cluster, session, scripted_probe, hc_settings
    ) -> None:
        """Test that failing to list machines aborts the cycle before probing."""
        probe = scripted_probe()
        api.fail_operations.add("list_etcd_machines")

        with pytest.raises(OrchestrationApiError):
            await build_cycle(api, probe, hc_settings).run(session, etcd_cluster)

        assert probe.calls == []
        assert session.failure_frequency == {}


@pytest.mark.unit
class TestMisbehavingProbes:
    """Test probes that raise or hang."""

    async def test_raising_probe_counts_as_unreachable(
        self, api, etcd_cluster, session, hc_settings
    ) -> None:
        """Test that a probe exception is a failed probe, not a failed cycle."""

        async def broken(endpoint: str) -> bool:
            if endpoint == EP0:
                raise RuntimeError("probe exploded")
            return True

        result = await build_cycle(api, broken, hc_settings).run(session, etcd_cluster)

        assert result.unhealthy == 1
        assert session.failure_count(EP0) == 1

    async def test_hanging_probe_times_out(self, api, etcd_cluster, session, hc_settings) -> None:
        """Test that a probe exceeding probe_timeout counts as unreachable."""

        async def slow(endpoint: str) -> bool:
            if endpoint == EP2:
                await asyncio.sleep(10)
            return True

        result = await asyncio.wait_for(
            build_cycle(api, slow, hc_settings).run(session, etcd_cluster),
            timeout=2.0,
        )

        assert result.healthy == 2
        assert session.failure_count(EP2) == 1

    async def test_probes_run_concurrently(self, api, etcd_cluster, session) -> None:
        """Test that all endpoints are probed at the same time."""
        settings = HealthCheckSettings(interval_seconds=1.0, probe_timeout=1.0)
        in_flight = 0
        peak = 0

        async def slow(endpoint: str) -> bool:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return True

        await build_cycle(api, slow, settings).run(session, etcd_cluster)

        assert peak == 3
