"""cloudflared ingress document and daemon control."""

from __future__ import annotations

import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from stackyard.core.command_runner import CommandRunner
from stackyard.core.errors import CommandError, TunnelError
from stackyard.logging import get_logger

logger = get_logger(__name__)

CATCH_ALL_SERVICE = "http_status:404"


def _is_catch_all(rule: Any) -> bool:
    return isinstance(rule, dict) and rule.get("service") == CATCH_ALL_SERVICE


def _matches_hostname(rule: Any, hostname: str) -> bool:
    if not isinstance(rule, dict) or not rule.get("hostname"):
        return False
    return str(rule["hostname"]).lower() == hostname.lower()


@dataclass(slots=True)
class IngressDocument:
    """The tunnel configuration, parsed structurally.

    Top-level keys other than ``tunnel`` and ``ingress`` (credentials file,
    origin defaults, ...) are carried through untouched.
    """

    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> IngressDocument:
        """Read the document; only a missing or empty file reads as empty.

        An unreadable or malformed file raises :class:`TunnelError` so it is
        never overwritten with a partial view.
        """
        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return cls()
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            raise TunnelError(f"Cannot read tunnel config {path}: {exc}") from exc
        if parsed is None:
            return cls()
        if not isinstance(parsed, dict):
            msg = f"Cannot read tunnel config {path}: expected a mapping at the top level"
            raise TunnelError(msg)
        return cls(data=parsed)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            yaml.safe_dump(self.data, sort_keys=False, default_flow_style=False),
            encoding="utf-8",
        )

    @property
    def has_ingress(self) -> bool:
        return isinstance(self.data.get("ingress"), list)

    @property
    def rules(self) -> list[Any]:
        ingress = self.data.get("ingress")
        return list(ingress) if isinstance(ingress, list) else []

    def set_tunnel(self, tunnel_uuid: str) -> None:
        if self.data.get("tunnel") != tunnel_uuid:
            self.data["tunnel"] = tunnel_uuid

    def upsert_rule(self, hostname: str, service: str) -> None:
        """Replace any rule for ``hostname`` and re-append the catch-all last."""
        kept = [rule for rule in self.rules if not _matches_hostname(rule, hostname)]
        kept.append({"hostname": hostname, "service": service})
        self.data["ingress"] = normalize_catch_all(kept)

    def remove_rule(self, hostname: str) -> None:
        kept = [rule for rule in self.rules if not _matches_hostname(rule, hostname)]
        self.data["ingress"] = normalize_catch_all(kept)


def normalize_catch_all(rules: list[Any]) -> list[Any]:
    """Drop every catch-all rule and append exactly one at the end."""
    without = [rule for rule in rules if not _is_catch_all(rule)]
    return [*without, {"service": CATCH_ALL_SERVICE}]


class TunnelDaemon:
    """Validate the ingress document and make cloudflared pick it up."""

    def __init__(self, runner: CommandRunner | None = None, *, binary: str = "cloudflared") -> None:
        self._runner = runner or CommandRunner()
        self._binary = binary

    async def validate(self, config_path: Path) -> None:
        try:
            await self._runner.run(
                self._binary, "tunnel", "ingress", "validate", "-f", str(config_path)
            )
            return
        except CommandError as first:
            logger.debug("ingress_validate_retry", error=first.message)
        try:
            await self._runner.run(
                self._binary, "tunnel", "ingress", "validate", "--config", str(config_path)
            )
        except CommandError as exc:
            msg = f"cloudflared ingress validation failed: {exc.message}"
            raise TunnelError(msg) from exc

    async def reload(self, config_path: Path, tunnel_uuid: str) -> str:
        """Reload or restart cloudflared; returns the mechanism that worked.

        Service managers are tried first, then a SIGHUP to a running daemon.
        A new daemon is only started when none is running.
        """
        run = self._runner.succeeds
        if sys.platform != "win32":
            if shutil.which("systemctl"):
                if await run("systemctl", "reload", self._binary):
                    return "systemctl-reload"
                if await run("systemctl", "restart", self._binary):
                    return "systemctl-restart"
            if shutil.which("service"):
                if await run("service", self._binary, "reload"):
                    return "service-reload"
                if await run("service", self._binary, "restart"):
                    return "service-restart"
            if await run("pkill", "-HUP", "-x", self._binary):
                return "sighup"
            if await run("pkill", "-HUP", "-f", f"{self._binary}.*tunnel"):
                return "sighup"
        elif await run("sc", "query", self._binary):
            await run("sc", "stop", self._binary)
            await run("sc", "start", self._binary)
            return "sc-restart"

        if await self.is_running():
            return "running"
        try:
            await self._runner.spawn_detached(
                [self._binary, "--config", str(config_path), "tunnel", "run", tunnel_uuid]
            )
        except OSError as exc:
            logger.warning("cloudflared_start_failed", error=str(exc))
            return "unavailable"
        logger.info("cloudflared_started", config_path=str(config_path))
        return "started"

    async def is_running(self) -> bool:
        if sys.platform == "win32":
            image = f"{self._binary}.exe"
            try:
                result = await self._runner.run("tasklist", "/FI", f"IMAGENAME eq {image}", "/NH")
            except CommandError:
                return False
            return image.lower() in result.stdout.lower()
        if await self._runner.succeeds("pgrep", "-x", self._binary):
            return True
        return await self._runner.succeeds("pgrep", "-f", f"{self._binary}.*tunnel")
