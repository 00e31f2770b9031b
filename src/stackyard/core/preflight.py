"""Pre-flight checks for Docker deployments."""

from __future__ import annotations

import asyncio
import socket
import sys
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeAlias
from dataclasses import dataclass

import httpx

from stackyard.core.command_runner import CommandRunner
from stackyard.logging import get_logger

logger = get_logger(__name__)

HTTP_ENDPOINTS: tuple[str, ...] = (
    "https://www.google.com",
    "https://1.1.1.1",
    "https://8.8.8.8",
)
DNS_PROBE_HOST = "google.com"
PING_TARGET = "8.8.8.8"
REGISTRY_PROBE_IMAGE = "alpine:latest"

Probe: TypeAlias = Callable[[], Awaitable[bool]]


@dataclass(slots=True)
class PreflightReport:
    """Availability of the external tools a deployment needs."""

    docker: bool
    docker_compose: bool
    internet_connection: bool


class PreflightChecker:
    """Probe Docker, Docker Compose and outbound connectivity.

    Every probe is bounded by a timeout and reports failure as ``False``;
    nothing here raises.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        http_endpoints: Sequence[str] = HTTP_ENDPOINTS,
        http_timeout_seconds: float = 10.0,
        probe_timeout_seconds: float = 10.0,
        registry_timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._runner = runner or CommandRunner()
        self._http_endpoints = tuple(http_endpoints)
        self._http_timeout_seconds = http_timeout_seconds
        self._probe_timeout_seconds = probe_timeout_seconds
        self._registry_timeout_seconds = registry_timeout_seconds
        self._transport = transport

    async def check(self) -> PreflightReport:
        docker = await self._runner.succeeds(
            "docker", "--version", timeout_seconds=self._probe_timeout_seconds
        )
        docker_compose = await self._runner.succeeds(
            "docker", "compose", "version", timeout_seconds=self._probe_timeout_seconds
        )
        internet = await self.check_internet_connectivity()
        report = PreflightReport(
            docker=docker,
            docker_compose=docker_compose,
            internet_connection=internet,
        )
        logger.info(
            "preflight_checked",
            docker=report.docker,
            docker_compose=report.docker_compose,
            internet_connection=report.internet_connection,
        )
        return report

    async def check_internet_connectivity(self) -> bool:
        """Try each probe in turn; any single success means we are online."""
        probes: list[tuple[str, Probe]] = [
            ("http", self._probe_http),
            ("dns", self._probe_dns),
            ("ping", self._probe_ping),
            ("registry", self._probe_registry),
        ]
        for name, probe in probes:
            if await probe():
                logger.debug("connectivity_probe_succeeded", probe=name)
                return True
            logger.debug("connectivity_probe_failed", probe=name)
        return False

    async def _probe_http(self) -> bool:
        async with httpx.AsyncClient(
            timeout=self._http_timeout_seconds,
            transport=self._transport,
        ) as client:
            for endpoint in self._http_endpoints:
                try:
                    await client.head(endpoint)
                except httpx.HTTPError:
                    continue
                return True
        return False

    async def _probe_dns(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.getaddrinfo(DNS_PROBE_HOST, 443, type=socket.SOCK_STREAM),
                timeout=self._probe_timeout_seconds,
            )
        except (OSError, TimeoutError):
            return False
        return True

    async def _probe_ping(self) -> bool:
        count_flag = "-n" if sys.platform == "win32" else "-c"
        return await self._runner.succeeds(
            "ping", count_flag, "1", PING_TARGET, timeout_seconds=self._probe_timeout_seconds
        )

    async def _probe_registry(self) -> bool:
        return await self._runner.succeeds(
            "docker",
            "pull",
            REGISTRY_PROBE_IMAGE,
            timeout_seconds=self._registry_timeout_seconds,
            max_output_bytes=5 * 1024 * 1024,
        )
