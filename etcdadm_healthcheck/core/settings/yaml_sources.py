"""Custom YAML config source with conf.d directory support.

Extends pydantic-settings YamlConfigSettingsSource to support:
- Main YAML file (e.g., conf/healthcheck.yaml)
- conf.d directory merging (e.g., conf/healthcheck.d/*.yaml)
- Alphabetical file ordering in conf.d

Operators can drop a single override file next to the controller manifest
instead of threading every knob through environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source with conf.d directory support.

    Supports the standard Linux conf.d pattern:
    - conf/healthcheck.yaml        (base configuration)
    - conf/healthcheck.d/*.yaml    (override files, merged alphabetically)

    An environment variable can override the config directory, e.g.
    HEALTHCHECK_CONFIG_DIR=/etc/etcdadm-healthcheck
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: str,
        confd_dir: str | None,
        config_dir_env: str = "CONFIG_DIR",
        base_dir: str = "conf",
        yaml_file_encoding: str | None = "utf-8",
    ) -> None:
        """Initialize the conf.d YAML source.

        Args:
            settings_cls: The settings class being configured.
            yaml_file: Main YAML file name (e.g., "healthcheck.yaml").
            confd_dir: conf.d subdirectory name, or None to disable.
            config_dir_env: Environment variable to override base directory.
            base_dir: Default base directory for config files.
            yaml_file_encoding: File encoding for YAML files.
        """
        config_base = Path(os.getenv(config_dir_env, base_dir))

        yaml_files: list[Path] = []

        main_file = config_base / yaml_file
        if main_file.exists():
            yaml_files.append(main_file)

        if confd_dir:
            confd_path = config_base / confd_dir
            if confd_path.is_dir():
                yaml_files.extend(sorted(confd_path.glob("*.yaml")))
                yaml_files.extend(sorted(confd_path.glob("*.yml")))

        self._yaml_files = yaml_files

        super().__init__(
            settings_cls=settings_cls,
            yaml_file=yaml_files if yaml_files else None,
            yaml_file_encoding=yaml_file_encoding,
        )

    @property
    def yaml_files(self) -> list[Path]:
        """Files this source read, in merge order."""
        return list(self._yaml_files)

    def __repr__(self) -> str:
        files_str = ", ".join(str(f) for f in self._yaml_files)
        return f"{self.__class__.__name__}(yaml_files=[{files_str}])"


def create_healthcheck_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for HealthCheckSettings.

    Loads from conf/healthcheck.yaml and conf/healthcheck.d/*.yaml.
    Override directory with: HEALTHCHECK_CONFIG_DIR=/custom/path
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="healthcheck.yaml",
        confd_dir="healthcheck.d",
        config_dir_env="HEALTHCHECK_CONFIG_DIR",
    )


def create_orchestration_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for OrchestrationSettings.

    Loads from conf/orchestration.yaml and conf/orchestration.d/*.yaml.
    Override directory with: ORCHESTRATION_CONFIG_DIR=/custom/path
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="orchestration.yaml",
        confd_dir="orchestration.d",
        config_dir_env="ORCHESTRATION_CONFIG_DIR",
    )


def create_logging_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for LoggingSettings.

    Loads from conf/logging.yaml and conf/logging.d/*.yaml.
    Override directory with: LOG_CONFIG_DIR=/custom/path
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="logging.yaml",
        confd_dir="logging.d",
        config_dir_env="LOG_CONFIG_DIR",
    )
