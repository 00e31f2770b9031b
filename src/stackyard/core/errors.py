"""Error taxonomy and classification of external tool failures."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeAlias
from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Categories of failure surfaced to callers."""

    PREREQUISITE = "prerequisite"
    CONNECTIVITY = "connectivity"
    EXTERNAL_API = "external_api"
    DEPLOYMENT = "deployment"
    CLEANUP = "cleanup"
    DATA_INTEGRITY = "data_integrity"
    NOT_FOUND = "not_found"


class StackyardError(Exception):
    """Base error carrying an :class:`ErrorKind`."""

    kind: ErrorKind = ErrorKind.DEPLOYMENT

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class PrerequisiteError(StackyardError):
    kind = ErrorKind.PREREQUISITE


class ExternalAPIError(StackyardError):
    kind = ErrorKind.EXTERNAL_API

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeploymentError(StackyardError):
    kind = ErrorKind.DEPLOYMENT


class DataIntegrityError(StackyardError):
    kind = ErrorKind.DATA_INTEGRITY


class ProjectNotFoundError(StackyardError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, project_id: str) -> None:
        super().__init__("Project not found")
        self.project_id = project_id


class TunnelError(StackyardError):
    kind = ErrorKind.EXTERNAL_API


class CommandError(StackyardError):
    """A subprocess exited non-zero, timed out, or produced too much output."""

    def __init__(
        self,
        message: str,
        *,
        command: str,
        returncode: int | None = None,
        output: str = "",
        timed_out: bool = False,
        output_exceeded: bool = False,
        missing_binary: bool = False,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.output = output
        self.timed_out = timed_out
        self.output_exceeded = output_exceeded
        self.missing_binary = missing_binary


FailurePredicate: TypeAlias = Callable[[CommandError, str], bool]


@dataclass(frozen=True, slots=True)
class FailureRule:
    """One row of the tool-failure classification table."""

    name: str
    matches: FailurePredicate
    kind: ErrorKind
    remediation: str


_OUTPUT_HINT = (
    "Docker deployment generated too much output. This usually means the deployment is "
    "working but Docker is downloading many large images. Please wait a few more minutes "
    "and check Docker to see if containers are starting. You can also try running "
    '"docker compose up -d" manually in the project directory.'
)
_NETWORK_HINT = (
    "Network connectivity issue: Unable to reach Docker registry. This might be due to:\n\n"
    "1. Internet connection issues\n"
    "2. Corporate firewall blocking Docker registry\n"
    "3. DNS resolution problems\n\n"
    'Solution: Try running "docker pull supabase/postgres" manually to test connectivity, '
    "or work with your IT team to allow access to Docker Hub."
)
_PERMISSION_HINT = (
    "Docker permission denied. Please ensure:\n\n"
    "1. Docker is running\n"
    '2. Your user is in the "docker" group (Linux/Mac)\n'
    "3. You have administrator privileges (Windows)"
)
_IMAGE_HINT = (
    "Required Docker images not found. Please ensure you have internet connectivity and "
    'try again, or manually pull images with "docker compose pull"'
)
_BINARY_HINT = (
    "Docker or Docker Compose not found. Please install Docker Desktop from "
    "https://docker.com/products/docker-desktop"
)
_TIMEOUT_HINT = (
    "Docker deployment timed out. Images may still be downloading; check "
    '"docker compose ps" in the project directory and retry the deployment.'
)

FAILURE_RULES: tuple[FailureRule, ...] = (
    FailureRule(
        name="output_exceeded",
        matches=lambda exc, text: exc.output_exceeded or "maxbuffer length exceeded" in text,
        kind=ErrorKind.DEPLOYMENT,
        remediation=_OUTPUT_HINT,
    ),
    FailureRule(
        name="network",
        matches=lambda exc, text: "no such host" in text or "dial tcp" in text,
        kind=ErrorKind.CONNECTIVITY,
        remediation=_NETWORK_HINT,
    ),
    FailureRule(
        name="permission",
        matches=lambda exc, text: "permission denied" in text,
        kind=ErrorKind.PREREQUISITE,
        remediation=_PERMISSION_HINT,
    ),
    FailureRule(
        name="image_not_found",
        matches=lambda exc, text: "image" in text and "not found" in text,
        kind=ErrorKind.DEPLOYMENT,
        remediation=_IMAGE_HINT,
    ),
    FailureRule(
        name="binary_not_found",
        matches=lambda exc, text: exc.missing_binary or "not found" in text,
        kind=ErrorKind.PREREQUISITE,
        remediation=_BINARY_HINT,
    ),
    FailureRule(
        name="timeout",
        matches=lambda exc, text: exc.timed_out,
        kind=ErrorKind.DEPLOYMENT,
        remediation=_TIMEOUT_HINT,
    ),
)


def classify_command_failure(
    exc: CommandError,
    rules: tuple[FailureRule, ...] = FAILURE_RULES,
) -> StackyardError:
    """Map a failed compose command to an actionable error, first match wins."""
    text = f"{exc.message}\n{exc.output}".lower()
    for rule in rules:
        if rule.matches(exc, text):
            return StackyardError(rule.remediation, kind=rule.kind)
    return DeploymentError(f"Docker deployment failed: {exc.message}")
