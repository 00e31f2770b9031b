"""Docker Compose driver for a project's deployment directory."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from stackyard.core.command_runner import CommandResult, CommandRunner

MIB = 1024 * 1024


@dataclass(frozen=True, slots=True)
class ComposeLimits:
    """Timeouts (seconds) and output caps (bytes) for compose commands."""

    pull_timeout: float = 300.0
    up_timeout: float = 300.0
    down_timeout: float = 120.0
    stop_timeout: float = 120.0
    status_timeout: float = 30.0
    pull_max_output: int = 10 * MIB
    up_max_output: int = 10 * MIB
    down_max_output: int = 5 * MIB
    status_max_output: int = 2 * MIB


@dataclass(slots=True)
class ContainerStatus:
    name: str
    service: str
    state: str


class ComposeRuntime:
    """Thin wrapper around ``docker compose`` run inside a project directory."""

    def __init__(self, runner: CommandRunner | None = None, limits: ComposeLimits | None = None) -> None:
        self._runner = runner or CommandRunner()
        self._limits = limits or ComposeLimits()

    async def pull(self, project_dir: Path) -> CommandResult:
        return await self._compose(
            project_dir,
            "pull",
            timeout=self._limits.pull_timeout,
            max_output=self._limits.pull_max_output,
        )

    async def up(self, project_dir: Path) -> CommandResult:
        return await self._compose(
            project_dir,
            "up",
            "-d",
            "--remove-orphans",
            timeout=self._limits.up_timeout,
            max_output=self._limits.up_max_output,
        )

    async def stop(self, project_dir: Path) -> CommandResult:
        return await self._compose(
            project_dir,
            "stop",
            timeout=self._limits.stop_timeout,
            max_output=self._limits.down_max_output,
        )

    async def down(self, project_dir: Path) -> CommandResult:
        return await self._compose(
            project_dir,
            "down",
            "--volumes",
            "--remove-orphans",
            timeout=self._limits.down_timeout,
            max_output=self._limits.down_max_output,
        )

    async def containers(self, project_dir: Path) -> list[ContainerStatus]:
        result = await self._compose(
            project_dir,
            "ps",
            "--format",
            "json",
            timeout=self._limits.status_timeout,
            max_output=self._limits.status_max_output,
        )
        return parse_ps_output(result.stdout)

    async def running_count(self, project_dir: Path) -> int:
        return sum(1 for c in await self.containers(project_dir) if c.state == "running")

    async def _compose(
        self,
        project_dir: Path,
        *args: str,
        timeout: float,
        max_output: int,
    ) -> CommandResult:
        return await self._runner.run(
            "docker",
            "compose",
            *args,
            cwd=project_dir,
            timeout_seconds=timeout,
            max_output_bytes=max_output,
        )


def parse_ps_output(stdout: str) -> list[ContainerStatus]:
    """Parse ``docker compose ps --format json``.

    Newer compose releases print one JSON object per line, older ones a
    single JSON array; both are accepted.
    """
    text = stdout.strip()
    if not text:
        return []
    if text.startswith("["):
        records = json.loads(text)
    else:
        records = [json.loads(line) for line in text.splitlines() if line.strip()]
    return [
        ContainerStatus(
            name=str(record.get("Name", "")),
            service=str(record.get("Service", "")),
            state=str(record.get("State", "")).lower(),
        )
        for record in records
    ]
