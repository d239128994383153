"""Ad-hoc reachability probe for etcd endpoints."""
from __future__ import annotations

import asyncio
import sys

import click

from etcdadm_healthcheck.cli.utils import endpoint_status, error, run_async
from etcdadm_healthcheck.features.healthcheck.probe import tcp_probe
from etcdadm_healthcheck.features.healthcheck.resolver import parse_endpoints


@click.command(name="probe")
@click.argument("endpoints", nargs=-1, required=True)
@click.option(
    "--timeout",
    type=float,
    default=5.0,
    show_default=True,
    help="Probe timeout in seconds",
)
@click.option(
    "--port",
    "default_port",
    type=int,
    default=2379,
    show_default=True,
    help="Port for endpoints given without one",
)
def probe(endpoints: tuple[str, ...], timeout: float, default_port: int) -> None:
    """Check whether etcd endpoints accept connections.

    ENDPOINTS may be given separately or as one comma-separated list, the
    way they are recorded on an etcd cluster's status.

    Exits with status 1 if any endpoint is unreachable.

    Examples:
        \b
        etcdadm-healthcheck probe https://10.0.0.1:2379 10.0.0.2
        etcdadm-healthcheck probe "https://10.0.0.1:2379,https://10.0.0.2:2379"
    """
    targets = parse_endpoints(",".join(endpoints))
    if not targets:
        error("No valid endpoints given")
        sys.exit(2)

    outcomes = run_async(_probe_all(targets, timeout, default_port))
    for endpoint, reachable in zip(targets, outcomes, strict=True):
        endpoint_status(endpoint, reachable)

    if not all(outcomes):
        sys.exit(1)


async def _probe_all(endpoints: list[str], timeout: float, default_port: int) -> list[bool]:
    return await asyncio.gather(
        *(tcp_probe(ep, timeout=timeout, default_port=default_port) for ep in endpoints)
    )
