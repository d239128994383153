"""Periodic etcd health check settings.

Environment variables use HEALTHCHECK_ prefix.
Example: HEALTHCHECK_INTERVAL_SECONDS=30, HEALTHCHECK_REMOVAL_THRESHOLD=5

The interval is a float so tests and local runs can tick sub-second
without changing the algorithm.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_healthcheck_yaml_source

DEFAULT_PROBE_TIMEOUT = 5.0


class HealthCheckSettings(BaseSettings):
    """Health check loop settings.

    Environment variables use HEALTHCHECK_ prefix.
    Example: HEALTHCHECK_ENABLED=false
    """

    # ──────────────────────────────────────────────────────────────
    # Loop
    # ──────────────────────────────────────────────────────────────

    enabled: bool = Field(
        default=True,
        description="Run the periodic etcd member health check loop",
    )

    interval_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=3600.0,
        description="Seconds between health check ticks",
    )

    namespace: str | None = Field(
        default=None,
        description="Only check etcd clusters in this namespace (None = all namespaces)",
    )

    # ──────────────────────────────────────────────────────────────
    # Probing
    # ──────────────────────────────────────────────────────────────

    probe_timeout: float = Field(
        default=DEFAULT_PROBE_TIMEOUT,
        gt=0.0,
        le=60.0,
        description="Per-endpoint reachability probe timeout in seconds (capped at the interval when unset)",
    )

    etcd_client_port: int = Field(
        default=2379,
        ge=1,
        le=65535,
        description="Port assumed for endpoints recorded without one",
    )

    # ──────────────────────────────────────────────────────────────
    # Remediation
    # ──────────────────────────────────────────────────────────────

    removal_threshold: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Consecutive failed probes before an etcd member's machine is removed",
    )

    quorum_guard: bool = Field(
        default=True,
        description="Skip removal when the remaining reachable members would be below quorum",
    )

    @model_validator(mode="before")
    @classmethod
    def _default_probe_timeout(cls, data: Any) -> Any:
        """Shrink the default probe timeout to fit a short interval."""
        if not isinstance(data, dict) or data.get("probe_timeout") is not None:
            return data
        try:
            interval = float(data["interval_seconds"])
        except (KeyError, TypeError, ValueError):
            return data
        if 0 < interval < DEFAULT_PROBE_TIMEOUT:
            return {**data, "probe_timeout": interval}
        return data

    @model_validator(mode="after")
    def _validate_probe_timeout(self) -> HealthCheckSettings:
        """Ensure a probe cannot outlive the tick it belongs to."""
        if self.probe_timeout > self.interval_seconds:
            raise ValueError(
                f"probe_timeout ({self.probe_timeout}s) must not exceed "
                f"interval_seconds ({self.interval_seconds}s)"
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="HEALTHCHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_healthcheck_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
