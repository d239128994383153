"""Configuration management commands."""

import json
import sys
from typing import Any

import click
import yaml
from pydantic import ValidationError

from etcdadm_healthcheck.cli.utils import error, info, success, warning
from etcdadm_healthcheck.core.settings import (
    get_healthcheck_settings,
    get_logging_settings,
    get_orchestration_settings,
)


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""


def _load_config(show_secrets: bool) -> dict[str, dict[str, Any]]:
    healthcheck = get_healthcheck_settings()
    orchestration = get_orchestration_settings()
    logging_settings = get_logging_settings()

    orchestration_dict = orchestration.model_dump(mode="json")
    token = orchestration.resolve_token()
    if token is None:
        orchestration_dict["token"] = None
    else:
        orchestration_dict["token"] = token if show_secrets else "***"

    return {
        "healthcheck": healthcheck.model_dump(mode="json"),
        "orchestration": orchestration_dict,
        "logging": logging_settings.model_dump(mode="json"),
    }


@config.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "yaml", "table"]),
    default="table",
    help="Output format",
)
@click.option(
    "--show-secrets/--hide-secrets",
    default=False,
    help="Show the API bearer token",
)
def show(output_format: str, show_secrets: bool) -> None:
    """Display the effective configuration."""
    try:
        config_dict = _load_config(show_secrets)
    except ValidationError as e:
        error(f"Failed to load configuration: {e}")
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(config_dict, indent=2, default=str))
        return

    if output_format == "yaml":
        click.echo(yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False))
        return

    if not show_secrets:
        warning("Secrets are hidden. Use --show-secrets to display them.")

    click.echo("\n" + "=" * 80)
    click.echo("CONFIGURATION SETTINGS")
    click.echo("=" * 80)

    for section, values in config_dict.items():
        click.echo(f"\n[{section.upper()}]")
        for key, value in values.items():
            click.echo(f"  {key:30} = {value}")

    click.echo("\n" + "=" * 80)


@config.command()
def validate() -> None:
    """Validate configuration without contacting the API server."""
    info("Validating configuration...")

    errors_found = False
    loaders = {
        "health check": get_healthcheck_settings,
        "orchestration": get_orchestration_settings,
        "logging": get_logging_settings,
    }
    for label, loader in loaders.items():
        try:
            loader()
        except ValidationError as e:
            errors_found = True
            error(f"Invalid {label} settings: {e}")
        else:
            success(f"{label.capitalize()} settings valid")

    if not errors_found:
        orchestration = get_orchestration_settings()
        if orchestration.resolve_token() is None:
            warning("No API token configured; requests will be unauthenticated")

    if errors_found:
        sys.exit(1)
