"""Project lifecycle management."""

from __future__ import annotations

import asyncio
import shutil
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TypeAlias
from dataclasses import dataclass

import aiosqlite

from stackyard.config import Settings
from stackyard.core.command_runner import CommandRunner
from stackyard.core.compose_patcher import apply_identity, patch_compose_ports
from stackyard.core.compose_runtime import ComposeRuntime
from stackyard.core.errors import (
    CommandError,
    DataIntegrityError,
    ErrorKind,
    PrerequisiteError,
    ProjectNotFoundError,
    StackyardError,
    classify_command_failure,
)
from stackyard.core.exposure import ExposureManager
from stackyard.core.preflight import PreflightChecker
from stackyard.core.secret_generator import default_env, render_env_file
from stackyard.db.store import SQLiteStore
from stackyard.logging import bind_context, clear_context, get_logger
from stackyard.models.project import OperationResult, Project, ProjectStatus, make_slug

logger = get_logger(__name__)

Clock: TypeAlias = Callable[[], int]

DOCKER_MISSING = (
    "Docker is not installed or not running. Please install Docker Desktop and ensure it "
    "is started before deploying."
)
COMPOSE_MISSING = (
    "Docker Compose is not available. Please ensure Docker Desktop includes Docker Compose "
    "or install it separately."
)
# Env keys consulted, in order, for the port the tunnel should target.
EXPOSED_PORT_KEYS: tuple[str, ...] = ("KONG_HTTP_PORT", "STUDIO_PORT", "POSTGRES_PORT")
CLONE_TIMEOUT_SECONDS = 600.0


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def exposed_port(env: Mapping[str, str]) -> int | None:
    for key in EXPOSED_PORT_KEYS:
        value = env.get(key, "").strip()
        if value.isdigit():
            return int(value)
    return None


@dataclass(slots=True)
class CreateProjectInput:
    """Input payload for project creation."""

    name: str
    owner_id: str
    description: str | None = None


class ProjectLocks:
    """One asyncio lock per project id, so operations on a project never overlap."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def for_project(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    def discard(self, project_id: str) -> None:
        self._locks.pop(project_id, None)


class ProjectManager:
    """Create, deploy, pause and delete tenant stacks.

    Every public operation returns an :class:`OperationResult`; failures are
    reported in it rather than raised.
    """

    def __init__(
        self,
        store: SQLiteStore,
        settings: Settings,
        *,
        exposure: ExposureManager | None = None,
        preflight: PreflightChecker | None = None,
        compose: ComposeRuntime | None = None,
        runner: CommandRunner | None = None,
        locks: ProjectLocks | None = None,
        clock: Clock = _now_ms,
    ) -> None:
        self._store = store
        self._settings = settings
        self._runner = runner or CommandRunner()
        self._exposure = exposure or ExposureManager(settings)
        self._preflight = preflight or PreflightChecker(self._runner)
        self._compose = compose or ComposeRuntime(self._runner)
        self._locks = locks or ProjectLocks()
        self._clock = clock

    async def initialize_core(self) -> OperationResult:
        """Ensure the projects directory exists and the template repo is cloned."""

        async def body() -> OperationResult:
            self._settings.projects_dir.mkdir(parents=True, exist_ok=True)
            core_dir = self._settings.core_dir
            if not core_dir.exists():
                repo_url = self._settings.supabase_core_repo_url
                logger.info("core_template_cloning", repo_url=repo_url)
                try:
                    await self._runner.run(
                        "git",
                        "clone",
                        "--depth",
                        "1",
                        repo_url,
                        str(core_dir),
                        timeout_seconds=CLONE_TIMEOUT_SECONDS,
                    )
                except CommandError as exc:
                    raise PrerequisiteError(f"git clone failed: {exc.output or exc.message}") from exc
            return OperationResult(success=True)

        return await self._guard("initialize_core", body)

    async def create(self, payload: CreateProjectInput) -> OperationResult:
        async def body() -> OperationResult:
            template_dir = self._settings.core_dir / "docker"
            if not template_dir.is_dir():
                msg = f"Compose template not found at {template_dir}; initialize the core first"
                raise PrerequisiteError(msg)

            timestamp = self._clock()
            slug = make_slug(payload.name, timestamp)
            project = Project(
                name=payload.name,
                slug=slug,
                description=payload.description,
                owner_id=payload.owner_id,
                path=self._settings.projects_dir / slug,
            )
            await self._store.upsert_project(project)
            bind_context(project_id=project.id)

            project.path.mkdir(parents=True, exist_ok=True)
            shutil.copytree(template_dir, project.docker_dir)
            apply_identity(project.compose_file, slug)
            patch_compose_ports(project.compose_file)

            env = default_env(timestamp)
            project.env_file.write_text(render_env_file(env), encoding="utf-8")
            await self._store.upsert_env_vars(project.id, env)

            logger.info("project_created", slug=slug, env_vars=len(env))
            return OperationResult(success=True, project=project)

        return await self._guard("create", body)

    async def update_env_vars(self, project_id: str, env: Mapping[str, str]) -> OperationResult:
        """Upsert ``env`` into the store and rewrite the env file to exactly ``env``."""

        async def body() -> OperationResult:
            project = await self._require(project_id)
            await self._store.upsert_env_vars(project_id, env)
            project.env_file.write_text(render_env_file(dict(env)), encoding="utf-8")
            logger.info("project_env_updated", keys=len(env))
            return OperationResult(success=True, project=project)

        return await self._guard("update_env_vars", body, project_id)

    async def deploy(self, project_id: str) -> OperationResult:
        async def body() -> OperationResult:
            project = await self._require(project_id)
            docker_dir = project.docker_dir

            # Projects created before the port patch existed get it here.
            try:
                patch_compose_ports(project.compose_file)
            except OSError as exc:
                logger.warning("compose_port_patch_failed", error=str(exc))

            checks = await self._preflight.check()
            if not checks.docker:
                raise PrerequisiteError(DOCKER_MISSING)
            if not checks.docker_compose:
                raise PrerequisiteError(COMPOSE_MISSING)

            if checks.internet_connection:
                logger.info("images_pulling")
                try:
                    await self._compose.pull(docker_dir)
                except CommandError as exc:
                    logger.warning("images_pull_failed_using_cache", error=exc.message)
            else:
                logger.warning("offline_using_cached_images")

            logger.info("services_starting", slug=project.slug)
            try:
                await self._compose.up(docker_dir)
            except CommandError as exc:
                raise classify_command_failure(exc) from exc

            try:
                running = await self._compose.running_count(docker_dir)
                logger.info("containers_running", count=running)
            except (CommandError, ValueError) as exc:
                logger.warning("container_status_unverified", error=str(exc))

            env = await self._store.env_map(project_id)
            exposure = await self._exposure.ensure_exposure(
                project_name=project.name,
                project_slug=project.slug,
                port=exposed_port(env),
                internal_url=self._settings.reverse_proxy_url,
            )
            await self._store.upsert_env_vars(
                project_id,
                {"PUBLIC_HOSTNAME": exposure.hostname, "PUBLIC_URL": exposure.public_url},
            )

            project = await self._set_status(project_id, ProjectStatus.ACTIVE)
            logger.info("project_deployed", slug=project.slug, public_url=exposure.public_url)
            return OperationResult(success=True, project=project, public_url=exposure.public_url)

        return await self._guard("deploy", body, project_id)

    async def pause(self, project_id: str) -> OperationResult:
        async def body() -> OperationResult:
            project = await self._require(project_id)
            try:
                await self._compose.stop(project.docker_dir)
            except CommandError as exc:
                raise classify_command_failure(exc) from exc
            project = await self._set_status(project_id, ProjectStatus.PAUSED)
            logger.info("project_paused", slug=project.slug)
            return OperationResult(success=True, project=project)

        return await self._guard("pause", body, project_id)

    async def delete(self, project_id: str) -> OperationResult:
        """Tear everything down; only the final store cleanup is fatal."""

        async def body() -> OperationResult:
            project = await self._require(project_id)

            try:
                logger.info("containers_removing", slug=project.slug)
                await self._compose.down(project.docker_dir)
            except CommandError as exc:
                logger.warning(
                    "containers_remove_failed", error=exc.message, kind=ErrorKind.CLEANUP.value
                )

            try:
                await self._exposure.cleanup_exposure(
                    project_slug=project.slug, project_name=project.name
                )
            except (StackyardError, ValueError) as exc:
                logger.warning(
                    "exposure_cleanup_failed", error=str(exc), kind=ErrorKind.CLEANUP.value
                )

            try:
                shutil.rmtree(project.path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning(
                    "project_dir_remove_failed",
                    path=str(project.path),
                    error=str(exc),
                    kind=ErrorKind.CLEANUP.value,
                )

            try:
                await self._store.delete_project(project_id)
            except (aiosqlite.Error, OSError) as exc:
                logger.error("project_records_remove_failed", error=str(exc))
                raise DataIntegrityError("Failed to remove project from database") from exc

            self._locks.discard(project_id)
            logger.info("project_deleted", slug=project.slug)
            return OperationResult(success=True)

        return await self._guard("delete", body, project_id)

    async def list(self, owner_id: str | None = None) -> list[Project]:
        return await self._store.list_projects(owner_id=owner_id)

    async def get(self, project_id: str) -> Project | None:
        return await self._store.get_project(project_id)

    async def env_vars(self, project_id: str) -> dict[str, str]:
        return await self._store.env_map(project_id)

    async def _require(self, project_id: str) -> Project:
        project = await self._store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def _set_status(self, project_id: str, status: ProjectStatus) -> Project:
        project = await self._store.set_status(project_id, status)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def _guard(
        self,
        operation: str,
        body: Callable[[], Awaitable[OperationResult]],
        project_id: str | None = None,
    ) -> OperationResult:
        """Run ``body`` under the project lock and turn failures into results."""
        if project_id is not None:
            bind_context(project_id=project_id)
        try:
            if project_id is None:
                return await body()
            async with self._locks.for_project(project_id):
                return await body()
        except StackyardError as exc:
            logger.error(f"{operation}_failed", error=exc.message, kind=exc.kind.value)
            return OperationResult(success=False, error=exc.message, error_kind=exc.kind)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"{operation}_failed")
            return OperationResult(success=False, error=str(exc) or exc.__class__.__name__)
        finally:
            clear_context()
