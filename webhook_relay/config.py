"""
Configuration Management Module

This module handles all application configuration using Pydantic Settings.
Configuration is loaded from environment variables with strong typing and validation.

Discord endpoints can be supplied either as a JSON object in DISCORD_WEBHOOKS
or one variable per target using the nested delimiter, e.g.
DISCORD_WEBHOOKS__MONOREPO or DISCORD_WEBHOOKS__DISCORD_JS.
"""

import re
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CATCH_ALL_KEY = "monorepo"


def normalize_endpoint_key(name: str) -> str:
    """Normalize a target name into the key used for endpoint lookups."""
    return re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Webhook URLs embed a Discord token and are never logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # Discord Endpoints
    # =========================================================================
    discord_webhooks: Dict[str, str] = Field(
        default_factory=dict,
        description="Mapping of routing target name to Discord webhook URL"
    )

    # =========================================================================
    # GitHub Configuration
    # =========================================================================
    github_token: Optional[str] = Field(
        default=None,
        description="Token used for GitHub API lookups (optional)"
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API"
    )

    github_max_pages: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Maximum pages fetched when listing pull request files"
    )

    github_webhook_secret: Optional[str] = Field(
        default=None,
        description="Webhook secret; signature verification is skipped when unset"
    )

    # =========================================================================
    # Outbound HTTP
    # =========================================================================
    http_timeout: Optional[float] = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for outbound requests, None disables it"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port to bind the server"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("github_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class EndpointConfig(BaseModel):
    """
    Read-only mapping from routing target to outbound Discord URL.

    Built once when the application is created and shared by every request.
    """

    model_config = ConfigDict(frozen=True)

    endpoints: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EndpointConfig":
        """Build the endpoint table, dropping blank URLs."""
        return cls(
            endpoints={
                normalize_endpoint_key(name): url.strip()
                for name, url in settings.discord_webhooks.items()
                if url and url.strip()
            }
        )

    def url_for(self, target: str) -> Optional[str]:
        """Get the URL configured for a target name, if any."""
        return self.endpoints.get(normalize_endpoint_key(target))

    @property
    def catch_all(self) -> Optional[str]:
        """Get the catch-all endpoint."""
        return self.endpoints.get(CATCH_ALL_KEY)

    @property
    def configured_targets(self) -> List[str]:
        """Names of the targets with an endpoint (safe to log)."""
        return sorted(self.endpoints)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings instance
    """
    return Settings()
