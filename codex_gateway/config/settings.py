from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env once at import so every BaseSettings group sees the same environment
load_dotenv()

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class GatewaySettings(BaseSettings):
    """HTTP server settings. Env vars prefixed with GATEWAY_."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    host: str = "0.0.0.0"
    port: int = Field(8080, gt=0, le=65535)
    allowed_origins: str = ""  # comma-separated; empty = any origin

    @property
    def origin_list(self) -> list[str]:
        return [item.strip() for item in self.allowed_origins.split(",") if item.strip()]


class McpSettings(BaseSettings):
    """MCP protocol settings. Env vars prefixed with MCP_."""

    model_config = SettingsConfigDict(env_prefix="MCP_")

    protocol_version: str = "2025-06-18"
    server_name: str = "codex-mcp-gateway"
    server_version: str = "0.1.0"

    @field_validator("protocol_version")
    @classmethod
    def _validate_protocol_version(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("MCP_PROTOCOL_VERSION must not be empty")
        return v


class AuthSettings(BaseSettings):
    """Bearer / OIDC authentication settings. Env vars prefixed with AUTH_."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    token: str | None = None  # static bearer token when require_oauth is off
    require_oauth: bool = False  # also enables per-tool scope checks
    oidc_issuer: str | None = None
    oidc_audience: str | None = None
    oidc_jwks_url: str | None = None
    jwks_path: Path = Path("jwks.json")  # local JWKS wins over oidc_jwks_url


class GitHubSettings(BaseSettings):
    """GitHub REST API settings. Env vars prefixed with GITHUB_."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_")

    token: str | None = None
    api_base: str = "https://api.github.com"
    timeout_seconds: float = Field(30.0, gt=0)


class LogSettings(BaseSettings):
    """Logging settings. Env vars prefixed with LOG_."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"
    json_output: bool = True

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in _LOG_LEVELS:
            msg = f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)} (got '{v}')"
            raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    mcp: McpSettings = Field(default_factory=McpSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    log: LogSettings = Field(default_factory=LogSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
