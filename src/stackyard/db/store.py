"""Async SQLite persistence for projects and their environment."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite

from stackyard.db.migrations import apply_migrations
from stackyard.models.project import EnvVar, Project, ProjectStatus


class SQLiteStore:
    """Data access layer for projects and env vars."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await aiosqlite.connect(self._db_path)
        conn.row_factory = aiosqlite.Row
        try:
            await apply_migrations(conn)
            yield conn
        finally:
            await conn.close()

    async def upsert_project(self, project: Project) -> None:
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO projects(
                    id,
                    name,
                    slug,
                    description,
                    owner_id,
                    path,
                    status,
                    created_at,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    description=excluded.description,
                    path=excluded.path,
                    status=excluded.status,
                    updated_at=excluded.updated_at
                """,
                (
                    project.id,
                    project.name,
                    project.slug,
                    project.description,
                    project.owner_id,
                    str(project.path),
                    project.status.value,
                    project.created_at.isoformat(),
                    project.updated_at.isoformat(),
                ),
            )
            await conn.commit()

    async def list_projects(self, *, owner_id: str | None = None) -> list[Project]:
        query = "SELECT * FROM projects"
        params: tuple[str, ...] = ()
        if owner_id:
            query += " WHERE owner_id = ?"
            params = (owner_id,)
        query += " ORDER BY created_at ASC"
        async with self.connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        return [self._project_from_row(row) for row in rows]

    async def get_project(self, project_id: str) -> Project | None:
        async with self.connection() as conn:
            cursor = await conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return self._project_from_row(row)

    async def set_status(self, project_id: str, status: ProjectStatus) -> Project | None:
        """Persist a status change; returns the updated project, or None if unknown."""
        project = await self.get_project(project_id)
        if project is None:
            return None
        project.status = status
        project.touch()
        await self.upsert_project(project)
        return project

    async def delete_project(self, project_id: str) -> None:
        """Delete the project and its env vars in one transaction."""
        async with self.connection() as conn:
            await conn.execute("DELETE FROM project_env_vars WHERE project_id = ?", (project_id,))
            await conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            await conn.commit()

    async def upsert_env_vars(self, project_id: str, env: Mapping[str, str]) -> None:
        async with self.connection() as conn:
            await conn.executemany(
                """
                INSERT INTO project_env_vars(project_id, key, value)
                VALUES (?, ?, ?)
                ON CONFLICT(project_id, key) DO UPDATE SET value=excluded.value
                """,
                [(project_id, key, value) for key, value in env.items()],
            )
            await conn.commit()

    async def list_env_vars(self, project_id: str) -> list[EnvVar]:
        async with self.connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM project_env_vars WHERE project_id = ? ORDER BY rowid ASC",
                (project_id,),
            )
            rows = await cursor.fetchall()
        return [
            EnvVar(project_id=str(row["project_id"]), key=str(row["key"]), value=str(row["value"]))
            for row in rows
        ]

    async def env_map(self, project_id: str) -> dict[str, str]:
        return {var.key: var.value for var in await self.list_env_vars(project_id)}

    @staticmethod
    def _project_from_row(row: aiosqlite.Row) -> Project:
        return Project(
            id=str(row["id"]),
            name=str(row["name"]),
            slug=str(row["slug"]),
            description=str(row["description"]) if row["description"] is not None else None,
            owner_id=str(row["owner_id"]),
            path=Path(str(row["path"])),
            status=ProjectStatus(str(row["status"])),
            created_at=datetime.fromisoformat(str(row["created_at"])),
            updated_at=datetime.fromisoformat(str(row["updated_at"])),
        )
