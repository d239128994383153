"""CLI command modules."""

from etcdadm_healthcheck.cli.commands import config, probe, run

__all__ = [
    "config",
    "probe",
    "run",
]
