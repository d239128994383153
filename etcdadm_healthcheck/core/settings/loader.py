"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from etcdadm_healthcheck.core.settings.loader import get_healthcheck_settings

    settings = get_healthcheck_settings()  # First call: loads and validates
    settings = get_healthcheck_settings()  # Subsequent calls: cached instance

Testing:
    In tests, clear the caches to force reload:
    clear_all_caches()

    Or construct settings directly:
    settings = HealthCheckSettings(interval_seconds=0.05, probe_timeout=0.05)
"""

from __future__ import annotations

from functools import lru_cache

from .healthcheck import HealthCheckSettings
from .logs import LoggingSettings
from .orchestration import OrchestrationSettings


@lru_cache(maxsize=1)
def get_healthcheck_settings() -> HealthCheckSettings:
    """Get cached health check loop settings.

    Returns:
        Validated and frozen HealthCheckSettings instance.
    """
    return HealthCheckSettings()


@lru_cache(maxsize=1)
def get_orchestration_settings() -> OrchestrationSettings:
    """Get cached orchestration API settings.

    Returns:
        Validated and frozen OrchestrationSettings instance.
    """
    return OrchestrationSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    In production, prefer process restarts over cache clearing.
    """
    get_healthcheck_settings.cache_clear()
    get_orchestration_settings.cache_clear()
    get_logging_settings.cache_clear()
