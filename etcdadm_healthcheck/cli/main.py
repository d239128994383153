"""Main CLI entry point for etcdadm-healthcheck."""

import click

from etcdadm_healthcheck.cli.commands import config, probe, run
from etcdadm_healthcheck.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="etcdadm-healthcheck")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """etcdadm-healthcheck - periodic etcd member health check and self-healing.

    Probes every etcd member recorded on each etcdadm cluster, counts
    consecutive failures, and removes the machine of a member that stays
    unreachable for the configured number of checks.

    \b
    Commands:
      run        Run the health check loop
      probe      Check whether endpoints accept connections
      config     Show or validate configuration

    \b
    Quick Start:
      etcdadm-healthcheck config validate
      etcdadm-healthcheck run --once
      etcdadm-healthcheck run --interval 30 --metrics-port 9090
    """
    ctx.ensure_object(dict)


cli.add_command(run.run)
cli.add_command(probe.probe)
cli.add_command(config.config)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
