"""Common route helpers."""

from __future__ import annotations

from fastapi import HTTPException, status

from stackyard.core.errors import ErrorKind
from stackyard.core.project_manager import ProjectManager
from stackyard.models.project import OperationResult, Project

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PREREQUISITE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONNECTIVITY: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.EXTERNAL_API: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.DEPLOYMENT: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.DATA_INTEGRITY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def require_project(project_id: str, manager: ProjectManager) -> Project:
    """Load project or return 404."""
    project = await manager.get(project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def raise_for_result(result: OperationResult) -> OperationResult:
    """Translate a failed operation result into an HTTP error."""
    if result.success:
        return result
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    if result.error_kind is not None:
        code = _STATUS_BY_KIND.get(result.error_kind, code)
    raise HTTPException(status_code=code, detail=result.error or "Unknown error")
