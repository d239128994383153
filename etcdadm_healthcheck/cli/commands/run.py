"""Run the etcd health check loop."""
from __future__ import annotations

import asyncio
import contextlib
import signal
import sys

import click
from prometheus_client import start_http_server
from pydantic import ValidationError

from etcdadm_healthcheck.cli.utils import cycle_summary, error, info, run_async, success
from etcdadm_healthcheck.core.exceptions import ConfigurationError, OrchestrationApiError
from etcdadm_healthcheck.core.settings import (
    HealthCheckSettings,
    get_orchestration_settings,
)
from etcdadm_healthcheck.features.healthcheck import HealthCheckScheduler, start_health_check_loop
from etcdadm_healthcheck.infra.metrics import REGISTRY
from etcdadm_healthcheck.infra.orchestration import OrchestrationClient


@click.command(name="run")
@click.option(
    "--interval",
    type=float,
    default=None,
    help="Seconds between health check ticks (overrides HEALTHCHECK_INTERVAL_SECONDS)",
)
@click.option(
    "--probe-timeout",
    type=float,
    default=None,
    help="Per-endpoint probe timeout in seconds (overrides HEALTHCHECK_PROBE_TIMEOUT)",
)
@click.option(
    "--threshold",
    type=int,
    default=None,
    help="Consecutive failures before a member is removed (overrides HEALTHCHECK_REMOVAL_THRESHOLD)",
)
@click.option(
    "--namespace",
    default=None,
    help="Only check etcd clusters in this namespace",
)
@click.option(
    "--metrics-port",
    type=int,
    default=None,
    help="Expose Prometheus metrics on this port",
)
@click.option(
    "--once",
    is_flag=True,
    help="Run a single tick, print the results and exit",
)
def run(
    interval: float | None,
    probe_timeout: float | None,
    threshold: int | None,
    namespace: str | None,
    metrics_port: int | None,
    once: bool,
) -> None:
    """Run the periodic etcd member health check.

    Examples:
        \b
        # Run until SIGINT/SIGTERM with settings from the environment
        etcdadm-healthcheck run

        # Tick every 10 seconds and export metrics
        etcdadm-healthcheck run --interval 10 --metrics-port 9090

        # Tick every second with a shorter probe deadline
        etcdadm-healthcheck run --interval 1 --probe-timeout 0.5

        # One pass over every etcd cluster
        etcdadm-healthcheck run --once
    """
    overrides = {
        "interval_seconds": interval,
        "probe_timeout": probe_timeout,
        "removal_threshold": threshold,
        "namespace": namespace,
    }
    try:
        settings = HealthCheckSettings(**{k: v for k, v in overrides.items() if v is not None})
        orchestration_settings = get_orchestration_settings()
    except ValidationError as e:
        error(f"Invalid configuration: {e}")
        sys.exit(1)

    if metrics_port is not None:
        start_http_server(metrics_port, registry=REGISTRY)
        info(f"Serving metrics on :{metrics_port}/metrics")

    try:
        client = OrchestrationClient(orchestration_settings, namespace=settings.namespace)
    except ConfigurationError as e:
        error(e.detail)
        sys.exit(1)

    if once:
        exit_code = run_async(_run_once(client, settings))
        sys.exit(exit_code)

    info(f"Checking etcd members every {settings.interval_seconds}s (Ctrl+C to stop)")
    run_async(_run_until_signalled(client, settings))
    success("Health check stopped")


async def _run_once(client: OrchestrationClient, settings: HealthCheckSettings) -> int:
    scheduler = HealthCheckScheduler(client, settings=settings)
    try:
        results = await scheduler.run_once()
    except OrchestrationApiError as e:
        error(f"Failed to list etcd clusters: {e.detail}")
        return 1
    finally:
        await client.close()

    if not results:
        info("No etcd cluster was eligible for a health check")
    for cluster_uid, result in sorted(results.items()):
        cycle_summary(cluster_uid, result)
    return 0


async def _run_until_signalled(client: OrchestrationClient, settings: HealthCheckSettings) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler is unavailable on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await start_health_check_loop(stop, client, settings=settings)
    finally:
        await client.close()
