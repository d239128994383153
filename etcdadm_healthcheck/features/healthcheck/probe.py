"""Reachability probes for etcd member endpoints.

A probe answers one question: does the endpoint accept a connection right
now. It never raises for I/O failures; an unreachable endpoint is a normal
result, not an error.

Example:
    >>> probe = make_tcp_probe(timeout=2.0)
    >>> await probe("https://10.0.0.1:2379")
    True
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

DEFAULT_ETCD_CLIENT_PORT = 2379


@runtime_checkable
class ReachabilityProbe(Protocol):
    """Protocol for reachability predicates.

    Any async callable taking an endpoint string and returning a bool
    satisfies it. Implementations should return False instead of raising
    for network failures; the health check cycle also bounds every call
    with its own timeout and treats a raising probe as unreachable.

    Example:
        >>> async def always_up(endpoint: str) -> bool:
        ...     return True
        >>> scheduler.set_reachability_probe(always_up)
    """

    async def __call__(self, endpoint: str) -> bool: ...


def split_endpoint(endpoint: str, default_port: int = DEFAULT_ETCD_CLIENT_PORT) -> tuple[str, int]:
    """Split an endpoint into host and port.

    Accepts "https://host:port", "host:port", a bare "host" and bracketed
    IPv6 literals such as "[fd00::1]:2379".

    Raises:
        ValueError: If no host can be extracted or the port is invalid.
    """
    endpoint = endpoint.strip()
    if not endpoint:
        raise ValueError("empty endpoint")

    # urlsplit only fills hostname/port when a scheme separator is present
    parsed = urlsplit(endpoint if "://" in endpoint else f"//{endpoint}")
    host = parsed.hostname
    if not host:
        raise ValueError(f"no host in endpoint {endpoint!r}")

    port = parsed.port  # raises ValueError when out of range
    return host, port if port is not None else default_port


async def tcp_probe(
    endpoint: str,
    *,
    timeout: float = 5.0,
    default_port: int = DEFAULT_ETCD_CLIENT_PORT,
) -> bool:
    """Open and close a raw TCP connection to the endpoint.

    Returns:
        True if the connection was accepted within ``timeout``, else False.
    """
    try:
        host, port = split_endpoint(endpoint, default_port)
    except ValueError:
        logger.debug("Unparseable etcd endpoint treated as unreachable", extra={"endpoint": endpoint})
        return False

    try:
        async with asyncio.timeout(timeout):
            _, writer = await asyncio.open_connection(host, port)
    except (OSError, TimeoutError) as e:
        logger.debug(
            "Etcd endpoint unreachable",
            extra={"endpoint": endpoint, "error": str(e) or type(e).__name__},
        )
        return False

    writer.close()
    # the connection was accepted; a reset on close does not change that
    with contextlib.suppress(OSError):
        await writer.wait_closed()
    return True


def make_tcp_probe(
    timeout: float = 5.0,
    default_port: int = DEFAULT_ETCD_CLIENT_PORT,
) -> ReachabilityProbe:
    """Build the default TCP probe with fixed timeout and port."""
    return functools.partial(tcp_probe, timeout=timeout, default_port=default_port)
