"""Shared API dependency providers."""

from __future__ import annotations

from stackyard.config import get_settings
from stackyard.core.exposure import ExposureManager
from stackyard.core.project_manager import ProjectLocks, ProjectManager
from stackyard.db.store import SQLiteStore

_PROJECT_LOCKS = ProjectLocks()
_EXPOSURE_MANAGER: ExposureManager | None = None


def get_store() -> SQLiteStore:
    db_path = get_settings().stackyard_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return SQLiteStore(db_path=db_path)


def get_exposure_manager() -> ExposureManager:
    global _EXPOSURE_MANAGER
    if _EXPOSURE_MANAGER is None:
        _EXPOSURE_MANAGER = ExposureManager(get_settings())
    return _EXPOSURE_MANAGER


def get_project_manager() -> ProjectManager:
    return ProjectManager(
        store=get_store(),
        settings=get_settings(),
        exposure=get_exposure_manager(),
        locks=_PROJECT_LOCKS,
    )
