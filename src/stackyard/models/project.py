"""Project domain models."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel, Field

from stackyard.core.errors import ErrorKind

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]")


class ProjectStatus(str, Enum):
    """Lifecycle status for a managed project."""

    CREATED = "created"
    ACTIVE = "active"
    PAUSED = "paused"
    DELETED = "deleted"


def make_slug(name: str, timestamp_ms: int) -> str:
    """Derive the immutable project slug from its name and creation time."""
    return f"{_NON_SLUG_CHARS.sub('-', name.lower())}-{timestamp_ms}"


class Project(BaseModel):
    """One tenant's deployment of the stack."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    slug: str
    owner_id: str
    path: Path
    description: str | None = None
    status: ProjectStatus = ProjectStatus.CREATED
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def docker_dir(self) -> Path:
        return self.path / "docker"

    @property
    def compose_file(self) -> Path:
        return self.docker_dir / "docker-compose.yml"

    @property
    def env_file(self) -> Path:
        return self.docker_dir / ".env"

    def touch(self) -> None:
        """Update mutation timestamp."""
        self.updated_at = datetime.now(UTC)


class EnvVar(BaseModel):
    """One entry of a project's runtime environment."""

    project_id: str
    key: str
    value: str


class OperationResult(BaseModel):
    """Uniform outcome of every lifecycle operation."""

    success: bool
    error: str | None = None
    error_kind: ErrorKind | None = None
    project: Project | None = None
    public_url: str | None = None
