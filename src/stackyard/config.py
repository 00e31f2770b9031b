"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from stackyard.core.errors import PrerequisiteError

DEFAULT_CORE_REPO_URL = "https://github.com/supabase/supabase"
DEFAULT_CF_API_BASE_URL = "https://api.cloudflare.com/client/v4"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Exposure
    base_domain: str | None = None
    cf_tunnel_uuid: str | None = None
    cf_api_token: str | None = None
    cf_zone_id: str | None = None
    cf_tunnel_config_path: Path | None = None
    cf_api_base_url: str = DEFAULT_CF_API_BASE_URL
    internal_reverse_proxy_url: str | None = None

    # Template and workspace
    supabase_core_repo_url: str = DEFAULT_CORE_REPO_URL
    stackyard_workspace: Path = Path(".")
    stackyard_db_path: Path = Path(".stackyard/stackyard.db")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    @property
    def core_dir(self) -> Path:
        return self.stackyard_workspace / "supabase-core"

    @property
    def projects_dir(self) -> Path:
        return self.stackyard_workspace / "supabase-projects"

    @property
    def tunnel_config_path(self) -> Path:
        """Ingress document path, falling back to the cloudflared default."""
        if self.cf_tunnel_config_path is not None and str(self.cf_tunnel_config_path).strip():
            return self.cf_tunnel_config_path
        return Path.home() / ".cloudflared" / "config.yml"

    @property
    def reverse_proxy_url(self) -> str | None:
        value = self.internal_reverse_proxy_url
        if value is None or not value.strip():
            return None
        return value

    def require(self, field_name: str) -> str:
        """Return a non-empty setting or fail with the variable name."""
        value = getattr(self, field_name)
        if value is None or not str(value).strip():
            msg = f"Missing required environment variable: {field_name.upper()}"
            raise PrerequisiteError(msg)
        return str(value)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
