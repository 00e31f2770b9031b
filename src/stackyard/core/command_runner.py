"""Bounded subprocess execution for external tools."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from stackyard.core.errors import CommandError

DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024


@dataclass(slots=True)
class CommandResult:
    """Captured output of a successful command."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return (self.stdout + self.stderr).strip()


class CommandRunner:
    """Run external commands with a timeout and an output size cap."""

    async def run(
        self,
        *command: str,
        cwd: Path | None = None,
        timeout_seconds: float | None = None,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> CommandResult:
        command_text = " ".join(command)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            msg = f"{command[0]}: command not found"
            raise CommandError(msg, command=command_text, missing_binary=True) from exc
        except OSError as exc:
            msg = f"{command_text} failed to start: {exc}"
            raise CommandError(msg, command=command_text) from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
        except TimeoutError as exc:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            msg = f"{command_text} timed out after {timeout_seconds} seconds"
            raise CommandError(msg, command=command_text, timed_out=True) from exc

        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        if len(stdout) + len(stderr) > max_output_bytes:
            msg = f"{command_text} failed: maxBuffer length exceeded ({max_output_bytes} bytes)"
            raise CommandError(
                msg,
                command=command_text,
                returncode=process.returncode,
                output=(out + err)[-4096:],
                output_exceeded=True,
            )
        if process.returncode != 0:
            output = (out + err).strip()
            msg = f"{command_text} failed: {output}"
            raise CommandError(
                msg,
                command=command_text,
                returncode=process.returncode,
                output=output,
            )
        return CommandResult(
            command=command_text,
            returncode=process.returncode or 0,
            stdout=out,
            stderr=err,
        )

    async def succeeds(
        self,
        *command: str,
        timeout_seconds: float | None = None,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> bool:
        """Run a probe command, reporting failure of any kind as ``False``."""
        try:
            await self.run(
                *command, timeout_seconds=timeout_seconds, max_output_bytes=max_output_bytes
            )
        except CommandError:
            return False
        return True

    async def spawn_detached(self, command: Sequence[str]) -> None:
        """Start a long-lived process in its own session without waiting for it."""
        await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=True,
        )
