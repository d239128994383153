"""Endpoint parsing and endpoint-to-machine resolution.

The recorded endpoint list and the live machine inventory are not updated
atomically, so an endpoint without a matching machine is an expected
result and maps to None.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from etcdadm_healthcheck.features.healthcheck.probe import split_endpoint

if TYPE_CHECKING:
    from collections.abc import Iterable

    from etcdadm_healthcheck.infra.orchestration.models import Machine

logger = logging.getLogger(__name__)


def parse_endpoints(raw: str | None) -> list[str]:
    """Parse a comma-separated endpoint list.

    Entries are stripped and de-duplicated in order. Entries containing
    whitespace or without a host are dropped with a warning, so a
    malformed list degrades to fewer (possibly zero) endpoints.

    Example:
        >>> parse_endpoints("https://10.0.0.1:2379, https://10.0.0.2:2379,")
        ['https://10.0.0.1:2379', 'https://10.0.0.2:2379']
    """
    if not raw:
        return []

    endpoints: list[str] = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry or entry in endpoints:
            continue
        if any(ch.isspace() for ch in entry):
            logger.warning("Ignoring malformed etcd endpoint", extra={"endpoint": entry})
            continue
        try:
            split_endpoint(entry)
        except ValueError:
            logger.warning("Ignoring malformed etcd endpoint", extra={"endpoint": entry})
            continue
        endpoints.append(entry)
    return endpoints


def resolve_endpoints(
    endpoints: Iterable[str],
    machines: Iterable[Machine],
) -> dict[str, Machine | None]:
    """Map each endpoint to the machine that reports its address.

    A machine matches when its address set contains either the endpoint
    string itself or the endpoint's host. Machines are tried in name
    order so the result does not depend on listing order.
    """
    ordered = sorted(machines, key=lambda m: (m.namespace, m.name))
    mapping: dict[str, Machine | None] = {}

    for endpoint in endpoints:
        try:
            host, _ = split_endpoint(endpoint)
        except ValueError:
            host = None

        owner = None
        for machine in ordered:
            addresses = machine.address_set
            if endpoint in addresses or (host is not None and host in addresses):
                owner = machine
                break
        mapping[endpoint] = owner

    return mapping
