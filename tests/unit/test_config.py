from pathlib import Path

import pytest

from stackyard.config import Settings, get_settings, reset_settings
from stackyard.core.errors import PrerequisiteError


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BASE_DOMAIN", "example.dev")
    monkeypatch.setenv("CF_TUNNEL_UUID", "tunnel-uuid")
    monkeypatch.setenv("STACKYARD_WORKSPACE", str(tmp_path))

    settings = Settings(_env_file=None)

    assert settings.require("base_domain") == "example.dev"
    assert settings.require("cf_tunnel_uuid") == "tunnel-uuid"
    assert settings.core_dir == tmp_path / "supabase-core"
    assert settings.projects_dir == tmp_path / "supabase-projects"


def test_require_names_missing_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CF_API_TOKEN", "   ")
    settings = Settings(_env_file=None)

    with pytest.raises(PrerequisiteError) as excinfo:
        settings.require("cf_api_token")

    assert excinfo.value.message == "Missing required environment variable: CF_API_TOKEN"


def test_tunnel_config_path_defaults_to_home(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CF_TUNNEL_CONFIG_PATH", raising=False)
    settings = Settings(_env_file=None)
    assert settings.tunnel_config_path == Path.home() / ".cloudflared" / "config.yml"


def test_blank_reverse_proxy_is_unset() -> None:
    assert Settings(_env_file=None, internal_reverse_proxy_url=" ").reverse_proxy_url is None


def test_get_settings_is_cached_until_reset() -> None:
    reset_settings()
    first = get_settings()
    assert get_settings() is first
    reset_settings()
    assert get_settings() is not first
    reset_settings()
