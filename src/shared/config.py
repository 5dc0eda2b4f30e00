"""Configuration management for the Habitica MCP Gateway.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached for performance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PUBLIC_PATHS: tuple[str, ...] = ("/", "/health")


class ServerSettings(BaseSettings):
    """HTTP server configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")

    # Where the gate looks for the shared secret
    api_key_header: str = Field(default="X-MCP-API-Key")
    api_key_query_param: str = Field(default="apiKey")

    # Prefer the first X-Forwarded-For entry over the socket peer
    trust_forwarded_for: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class SecuritySettings(BaseSettings):
    """Access gate configuration."""
    api_key: Optional[str] = Field(default=None, description="Shared secret required from callers")
    allowed_ips: str = Field(default="", description="Comma-separated allow-list, empty allows all")
    rate_limit_max: int = Field(default=100, gt=0, description="Requests per identity per window")
    rate_limit_window_seconds: int = Field(default=3600, gt=0)
    sweep_interval_seconds: int = Field(default=900, gt=0)
    require_authentication: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @property
    def allowed_ip_list(self) -> list[str]:
        """Split the comma-separated allow-list into trimmed entries."""
        return [ip.strip() for ip in self.allowed_ips.split(",") if ip.strip()]


class HabiticaSettings(BaseSettings):
    """Upstream Habitica API configuration."""
    base_url: str = Field(default="https://habitica.com/api/v3")
    timeout_seconds: float = Field(default=30.0, gt=0)

    # Default credentials, used when a request carries none
    user_id: Optional[str] = Field(default=None)
    api_token: Optional[str] = Field(default=None)

    user_id_header: str = Field(default="X-Habitica-User-ID")
    api_token_header: str = Field(default="X-Habitica-API-Token")

    model_config = SettingsConfigDict(
        env_prefix="HABITICA_",
        env_file=".env",
        extra="ignore"
    )


# YAML sections built as their own settings classes
SECTIONS: dict[str, type[BaseSettings]] = {
    "server": ServerSettings,
    "security": SecuritySettings,
    "habitica": HabiticaSettings,
}


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Component settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    habitica: HabiticaSettings = Field(default_factory=HabiticaSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Component sections are built as settings objects so that their
        environment variables still apply to keys the file leaves out.
        """
        data = load_yaml_config(path)

        for key, section in SECTIONS.items():
            if isinstance(data.get(key), dict):
                data[key] = section(**data[key])

        return cls(**data)


class AccessGateConfig(BaseModel):
    """Immutable access gate configuration, built once at startup."""
    max_requests_per_window: int = 100
    window_seconds: float = 3600.0
    allowed_ips: tuple[str, ...] = ()
    shared_secret: Optional[str] = None
    require_authentication: bool = True
    public_paths: tuple[str, ...] = PUBLIC_PATHS

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_settings(cls, security: SecuritySettings) -> "AccessGateConfig":
        return cls(
            max_requests_per_window=security.rate_limit_max,
            window_seconds=float(security.rate_limit_window_seconds),
            allowed_ips=tuple(security.allowed_ip_list),
            shared_secret=security.api_key or None,
            require_authentication=security.require_authentication,
        )


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
