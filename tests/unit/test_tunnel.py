from pathlib import Path

import pytest
import yaml

from stackyard.core.errors import TunnelError
from stackyard.core.tunnel import (
    CATCH_ALL_SERVICE,
    IngressDocument,
    TunnelDaemon,
    normalize_catch_all,
)
from tests.support.stack_helpers import FakeRunner

EXISTING = """\
tunnel: old-tunnel
credentials-file: /etc/cloudflared/creds.json
originRequest:
  connectTimeout: 30s
ingress:
  - service: http_status:404
  - hostname: other.example.dev
    service: http://127.0.0.1:9100
  - service: http_status:404
"""


def test_load_missing_or_empty_document_is_empty(tmp_path: Path) -> None:
    assert IngressDocument.load(tmp_path / "missing.yml").data == {}
    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    assert IngressDocument.load(empty).data == {}


def test_load_malformed_document_raises(tmp_path: Path) -> None:
    broken = tmp_path / "broken.yml"
    broken.write_text("ingress: [unclosed\n", encoding="utf-8")
    with pytest.raises(TunnelError):
        IngressDocument.load(broken)

    scalar = tmp_path / "scalar.yml"
    scalar.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(TunnelError):
        IngressDocument.load(scalar)


def test_upsert_rule_preserves_unknown_keys_and_single_catch_all(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    path.write_text(EXISTING, encoding="utf-8")

    document = IngressDocument.load(path)
    document.set_tunnel("tunnel-uuid")
    document.upsert_rule("demo.example.dev", "http://127.0.0.1:9234")
    document.save(path)

    saved = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert saved["tunnel"] == "tunnel-uuid"
    assert saved["credentials-file"] == "/etc/cloudflared/creds.json"
    assert saved["originRequest"] == {"connectTimeout": "30s"}
    assert saved["ingress"] == [
        {"hostname": "other.example.dev", "service": "http://127.0.0.1:9100"},
        {"hostname": "demo.example.dev", "service": "http://127.0.0.1:9234"},
        {"service": CATCH_ALL_SERVICE},
    ]


def test_upsert_rule_replaces_existing_hostname_case_insensitively() -> None:
    document = IngressDocument(
        data={"ingress": [{"hostname": "Demo.Example.dev", "service": "http://old"}]}
    )
    document.upsert_rule("demo.example.dev", "http://new")

    assert document.rules[0] == {"hostname": "demo.example.dev", "service": "http://new"}
    assert document.rules[-1] == {"service": CATCH_ALL_SERVICE}


def test_remove_rule_keeps_catch_all() -> None:
    document = IngressDocument(
        data={"ingress": [{"hostname": "demo.example.dev", "service": "http://x"}]}
    )
    document.remove_rule("demo.example.dev")
    assert document.rules == [{"service": CATCH_ALL_SERVICE}]


def test_normalize_catch_all_on_empty_list() -> None:
    assert normalize_catch_all([]) == [{"service": CATCH_ALL_SERVICE}]


@pytest.mark.asyncio
async def test_validate_falls_back_to_config_flag(tmp_path: Path) -> None:
    runner = FakeRunner(failures={"cloudflared tunnel ingress validate -f": "unknown flag"})
    await TunnelDaemon(runner).validate(tmp_path / "config.yml")
    assert runner.ran("cloudflared tunnel ingress validate --config")


@pytest.mark.asyncio
async def test_reload_prefers_systemctl(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("stackyard.core.tunnel.sys.platform", "linux")
    monkeypatch.setattr("stackyard.core.tunnel.shutil.which", lambda name: f"/usr/bin/{name}")
    runner = FakeRunner()

    mechanism = await TunnelDaemon(runner).reload(tmp_path / "config.yml", "tunnel-uuid")

    assert mechanism == "systemctl-reload"
    assert runner.calls == [("systemctl", "reload", "cloudflared")]


@pytest.mark.asyncio
async def test_reload_signals_running_daemon_without_service_manager(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("stackyard.core.tunnel.sys.platform", "linux")
    monkeypatch.setattr("stackyard.core.tunnel.shutil.which", lambda name: None)
    runner = FakeRunner()

    mechanism = await TunnelDaemon(runner).reload(tmp_path / "config.yml", "tunnel-uuid")

    assert mechanism == "sighup"
    assert runner.spawned == []


@pytest.mark.asyncio
async def test_reload_starts_daemon_only_when_none_running(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("stackyard.core.tunnel.sys.platform", "linux")
    monkeypatch.setattr("stackyard.core.tunnel.shutil.which", lambda name: None)
    runner = FakeRunner(failures={"pkill": "no process found", "pgrep": ""})
    config_path = tmp_path / "config.yml"

    mechanism = await TunnelDaemon(runner).reload(config_path, "tunnel-uuid")

    assert mechanism == "started"
    assert runner.spawned == [
        ("cloudflared", "--config", str(config_path), "tunnel", "run", "tunnel-uuid")
    ]
