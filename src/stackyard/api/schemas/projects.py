"""Project API schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from stackyard.models.project import Project


class CreateProjectRequest(BaseModel):
    """Payload for creating a project."""

    name: str = Field(min_length=1)
    owner_id: str
    description: str | None = None


class UpdateEnvRequest(BaseModel):
    """Complete desired environment for a project."""

    env: dict[str, str]


class ProjectsResponse(BaseModel):
    """Collection response for projects."""

    items: list[Project]


class EnvResponse(BaseModel):
    env: dict[str, str]


class DeployResponse(BaseModel):
    project: Project | None = None
    public_url: str | None = None
