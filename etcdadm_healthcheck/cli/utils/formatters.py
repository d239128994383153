"""Output formatting utilities for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from etcdadm_healthcheck.features.healthcheck.cycle import CycleResult


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def endpoint_status(endpoint: str, reachable: bool) -> None:
    """Print one probe outcome."""
    if reachable:
        success(f"{endpoint} reachable")
    else:
        click.secho(f"✗ {endpoint} unreachable", fg="red")


def cycle_summary(cluster_uid: str, result: CycleResult) -> None:
    """Print the outcome of one health check cycle."""
    colour = "green" if result.unhealthy == 0 else "yellow"
    line = (
        f"{cluster_uid}: {result.healthy} healthy, {result.unhealthy} unhealthy, "
        f"{result.removals_issued} removed"
    )
    if result.unowned:
        line += f", no machine for {', '.join(result.unowned)}"
    if result.quorum_blocked:
        line += " (removal deferred to protect quorum)"
    click.secho(line, fg=colour)
