"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (health check loop, orchestration API, logging)
and loaded through LRU-cached loaders:

    from etcdadm_healthcheck.core.settings import get_healthcheck_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (optional)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .healthcheck import HealthCheckSettings
from .loader import (
    clear_all_caches,
    get_healthcheck_settings,
    get_logging_settings,
    get_orchestration_settings,
)
from .logs import LoggingSettings
from .orchestration import OrchestrationSettings

__all__ = [
    "HealthCheckSettings",
    "LoggingSettings",
    "OrchestrationSettings",
    "clear_all_caches",
    "get_healthcheck_settings",
    "get_logging_settings",
    "get_orchestration_settings",
]
