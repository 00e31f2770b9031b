import asyncio
from pathlib import Path

import pytest

from stackyard.core.command_runner import CommandRunner
from stackyard.core.errors import CommandError


class _Process:
    def __init__(
        self,
        *,
        returncode: int = 0,
        stdout: bytes = b"",
        stderr: bytes = b"",
        hang: bool = False,
    ) -> None:
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._hang = hang
        self.killed = False

    async def communicate(self) -> tuple[bytes, bytes]:
        if self._hang:
            await asyncio.sleep(10)
        return (self._stdout, self._stderr)

    def kill(self) -> None:
        self.killed = True

    async def wait(self) -> int:
        return self.returncode


def _patch_exec(monkeypatch: pytest.MonkeyPatch, process: _Process) -> list[tuple[str, ...]]:
    calls: list[tuple[str, ...]] = []

    async def fake_create_subprocess_exec(*command: str, **kwargs: object) -> _Process:
        del kwargs
        calls.append(command)
        return process

    monkeypatch.setattr(
        "stackyard.core.command_runner.asyncio.create_subprocess_exec",
        fake_create_subprocess_exec,
    )
    return calls


@pytest.mark.asyncio
async def test_run_returns_output(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls = _patch_exec(monkeypatch, _Process(stdout=b"Docker version 27.0.1\n"))

    result = await CommandRunner().run("docker", "--version", cwd=tmp_path)

    assert calls == [("docker", "--version")]
    assert result.returncode == 0
    assert result.output == "Docker version 27.0.1"


@pytest.mark.asyncio
async def test_run_raises_on_nonzero_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_exec(monkeypatch, _Process(returncode=1, stderr=b"permission denied\n"))

    with pytest.raises(CommandError) as excinfo:
        await CommandRunner().run("docker", "compose", "up", "-d")

    assert excinfo.value.returncode == 1
    assert excinfo.value.output == "permission denied"
    assert "docker compose up -d failed" in excinfo.value.message


@pytest.mark.asyncio
async def test_run_flags_oversized_output(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_exec(monkeypatch, _Process(stdout=b"x" * 64))

    with pytest.raises(CommandError) as excinfo:
        await CommandRunner().run("docker", "compose", "pull", max_output_bytes=16)

    assert excinfo.value.output_exceeded is True


@pytest.mark.asyncio
async def test_run_kills_process_on_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    process = _Process(hang=True)
    _patch_exec(monkeypatch, process)

    with pytest.raises(CommandError) as excinfo:
        await CommandRunner().run("docker", "compose", "up", timeout_seconds=0.01)

    assert excinfo.value.timed_out is True
    assert process.killed is True


@pytest.mark.asyncio
async def test_run_reports_missing_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    async def missing(*command: str, **kwargs: object) -> _Process:
        raise FileNotFoundError(command[0])

    monkeypatch.setattr("stackyard.core.command_runner.asyncio.create_subprocess_exec", missing)

    with pytest.raises(CommandError) as excinfo:
        await CommandRunner().run("cloudflared", "--version")

    assert excinfo.value.missing_binary is True
    assert await CommandRunner().succeeds("cloudflared", "--version") is False


class _ExitedProcess(_Process):
    def kill(self) -> None:
        raise ProcessLookupError


@pytest.mark.asyncio
async def test_timeout_survives_process_exiting_before_kill(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_exec(monkeypatch, _ExitedProcess(hang=True))

    with pytest.raises(CommandError) as excinfo:
        await CommandRunner().run("docker", "compose", "up", timeout_seconds=0.01)

    assert excinfo.value.timed_out is True
    assert "timed out" in excinfo.value.message
