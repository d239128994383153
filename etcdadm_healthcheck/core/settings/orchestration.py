"""Orchestration (Kubernetes) API connection settings.

Environment variables use ORCHESTRATION_ prefix.
Example: ORCHESTRATION_API_URL=https://kubernetes.default.svc

When running in-cluster the service account token and CA bundle are picked
up from their standard mount paths unless overridden.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_orchestration_yaml_source

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


class OrchestrationSettings(BaseSettings):
    """Orchestration API settings.

    Environment variables use ORCHESTRATION_ prefix.
    Example: ORCHESTRATION_TOKEN=..., ORCHESTRATION_VERIFY_SSL=false
    """

    # ──────────────────────────────────────────────────────────────
    # API server connection
    # ──────────────────────────────────────────────────────────────

    api_url: str = Field(
        default="https://kubernetes.default.svc",
        description="Base URL of the orchestration API server",
    )

    token: SecretStr | None = Field(
        default=None,
        description="Bearer token for API authentication",
    )

    token_file: Path | None = Field(
        default=SERVICE_ACCOUNT_DIR / "token",
        description="File holding the bearer token, read when token is unset",
    )

    ca_file: Path | None = Field(
        default=SERVICE_ACCOUNT_DIR / "ca.crt",
        description="CA bundle used to verify the API server certificate",
    )

    verify_ssl: bool = Field(
        default=True,
        description="Verify the API server certificate",
    )

    request_timeout: float = Field(
        default=10.0,
        ge=0.5,
        le=120.0,
        description="HTTP request timeout in seconds",
    )

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        """Normalize the base URL so request paths can start with '/'."""
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return value.rstrip("/")

    # ──────────────────────────────────────────────────────────────
    # Computed properties
    # ──────────────────────────────────────────────────────────────

    @computed_field
    @property
    def verify(self) -> bool | str:
        """Value for httpx's ``verify`` argument."""
        if not self.verify_ssl:
            return False
        if self.ca_file is not None and self.ca_file.is_file():
            return str(self.ca_file)
        return True

    # ──────────────────────────────────────────────────────────────
    # Helper methods
    # ──────────────────────────────────────────────────────────────

    def resolve_token(self) -> str | None:
        """Return the bearer token from settings or the token file."""
        if self.token:
            return self.token.get_secret_value()
        if self.token_file is not None and self.token_file.is_file():
            return self.token_file.read_text(encoding="utf-8").strip() or None
        return None

    def get_auth_headers(self) -> dict[str, str]:
        """Get HTTP headers for API authentication.

        Returns:
            Dictionary with an Authorization header if a token is available.
        """
        token = self.resolve_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATION_",
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
            create_orchestration_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )
