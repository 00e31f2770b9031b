"""Project routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from stackyard.api.deps import get_project_manager
from stackyard.api.routes.common import raise_for_result, require_project
from stackyard.api.schemas.projects import (
    CreateProjectRequest,
    DeployResponse,
    EnvResponse,
    ProjectsResponse,
    UpdateEnvRequest,
)
from stackyard.core.project_manager import CreateProjectInput, ProjectManager
from stackyard.models.project import Project

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])


@router.get("", response_model=ProjectsResponse)
async def list_projects(
    owner_id: str | None = None,
    manager: ProjectManager = Depends(get_project_manager),
) -> ProjectsResponse:
    return ProjectsResponse(items=await manager.list(owner_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(
    request: CreateProjectRequest,
    manager: ProjectManager = Depends(get_project_manager),
) -> dict[str, str]:
    result = raise_for_result(
        await manager.create(
            CreateProjectInput(
                name=request.name,
                owner_id=request.owner_id,
                description=request.description,
            )
        )
    )
    if result.project is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Project was not returned after creation",
        )
    return {"id": result.project.id, "slug": result.project.slug}


@router.post("/initialize", status_code=status.HTTP_204_NO_CONTENT)
async def initialize_core(manager: ProjectManager = Depends(get_project_manager)) -> None:
    raise_for_result(await manager.initialize_core())


@router.get("/{project_id}")
async def get_project(
    project_id: str, manager: ProjectManager = Depends(get_project_manager)
) -> dict[str, Project]:
    return {"project": await require_project(project_id, manager)}


@router.get("/{project_id}/env", response_model=EnvResponse)
async def get_project_env(
    project_id: str, manager: ProjectManager = Depends(get_project_manager)
) -> EnvResponse:
    await require_project(project_id, manager)
    return EnvResponse(env=await manager.env_vars(project_id))


@router.put("/{project_id}/env", status_code=status.HTTP_204_NO_CONTENT)
async def update_project_env(
    project_id: str,
    request: UpdateEnvRequest,
    manager: ProjectManager = Depends(get_project_manager),
) -> None:
    raise_for_result(await manager.update_env_vars(project_id, request.env))


@router.post("/{project_id}/deploy", response_model=DeployResponse)
async def deploy_project(
    project_id: str, manager: ProjectManager = Depends(get_project_manager)
) -> DeployResponse:
    result = raise_for_result(await manager.deploy(project_id))
    return DeployResponse(project=result.project, public_url=result.public_url)


@router.post("/{project_id}/pause", status_code=status.HTTP_204_NO_CONTENT)
async def pause_project(
    project_id: str, manager: ProjectManager = Depends(get_project_manager)
) -> None:
    raise_for_result(await manager.pause(project_id))


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    manager: ProjectManager = Depends(get_project_manager),
) -> None:
    raise_for_result(await manager.delete(project_id))
