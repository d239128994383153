"""CLI utilities for running async operations and formatting output."""

from etcdadm_healthcheck.cli.utils.async_runner import run_async
from etcdadm_healthcheck.cli.utils.formatters import (
    cycle_summary,
    endpoint_status,
    error,
    info,
    success,
    warning,
)

__all__ = [
    "run_async",
    "cycle_summary",
    "endpoint_status",
    "error",
    "info",
    "success",
    "warning",
]
