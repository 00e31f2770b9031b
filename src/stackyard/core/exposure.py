"""Public exposure of projects through Cloudflare DNS and a cloudflared tunnel."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path

from stackyard.config import Settings
from stackyard.core.cloudflare import CloudflareDNSClient
from stackyard.core.errors import ErrorKind, PrerequisiteError, StackyardError, TunnelError
from stackyard.core.tunnel import IngressDocument, TunnelDaemon
from stackyard.logging import get_logger

logger = get_logger(__name__)

TUNNEL_DNS_SUFFIX = "cfargotunnel.com"
_UNSAFE_HOST_CHARS = re.compile(r"[^a-z0-9-]")


def sanitize_slug(value: str) -> str:
    return _UNSAFE_HOST_CHARS.sub("-", value.lower())


@dataclass(frozen=True, slots=True)
class Exposure:
    hostname: str
    public_url: str


class ExposureManager:
    """Reconcile a project's CNAME record and ingress rule.

    DNS and the ingress document are shared with other tooling, so every
    mutation reads current state, merges, and writes a complete document.
    Ingress updates made through one manager are serialized by a lock.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        dns_client: CloudflareDNSClient | None = None,
        daemon: TunnelDaemon | None = None,
    ) -> None:
        self._settings = settings
        self._dns_client = dns_client
        self._daemon = daemon or TunnelDaemon()
        self._ingress_lock = asyncio.Lock()

    @property
    def config_path(self) -> Path:
        return self._settings.tunnel_config_path

    def hostname_for(self, slug_or_name: str) -> str:
        base_domain = self._settings.require("base_domain")
        return f"{sanitize_slug(slug_or_name)}.{base_domain}"

    def resolve_service_url(self, port: int | None = None, internal_url: str | None = None) -> str:
        """Explicit URL, then the configured reverse proxy, then a local port."""
        if internal_url is not None and internal_url.strip():
            return internal_url
        proxy = self._settings.reverse_proxy_url
        if proxy is not None:
            return proxy
        if port:
            return f"http://127.0.0.1:{port}"
        msg = "Cannot determine service URL: provide internal_url or port"
        raise PrerequisiteError(msg)

    async def ensure_exposure(
        self,
        project_name: str,
        project_slug: str,
        port: int | None = None,
        internal_url: str | None = None,
    ) -> Exposure:
        tunnel_uuid = self._settings.require("cf_tunnel_uuid")
        hostname = self.hostname_for(project_slug or project_name)
        service_url = self.resolve_service_url(port, internal_url)

        await self._dns().ensure_cname(hostname, f"{tunnel_uuid}.{TUNNEL_DNS_SUFFIX}")
        await self._ensure_ingress(hostname, service_url, tunnel_uuid)

        exposure = Exposure(hostname=hostname, public_url=f"https://{hostname}")
        logger.info(
            "exposure_ready",
            public_url=exposure.public_url,
            service_url=service_url,
        )
        return exposure

    async def cleanup_exposure(
        self,
        project_slug: str | None = None,
        project_name: str | None = None,
    ) -> None:
        """Remove DNS and ingress for a project; each step is best-effort."""
        slug_or_name = project_slug or project_name
        if not slug_or_name:
            msg = "cleanup_exposure requires project_slug or project_name"
            raise ValueError(msg)
        tunnel_uuid = self._settings.require("cf_tunnel_uuid")
        hostname = self.hostname_for(slug_or_name)

        try:
            await self._dns().delete_cname(hostname)
        except StackyardError as exc:
            logger.warning(
                "dns_cleanup_failed",
                hostname=hostname,
                error=exc.message,
                kind=ErrorKind.CLEANUP.value,
            )

        try:
            await self._remove_ingress(hostname, tunnel_uuid)
        except (StackyardError, OSError) as exc:
            logger.warning(
                "ingress_cleanup_failed",
                hostname=hostname,
                error=str(exc),
                kind=ErrorKind.CLEANUP.value,
            )

    def _dns(self) -> CloudflareDNSClient:
        if self._dns_client is None:
            self._dns_client = CloudflareDNSClient(
                api_token=self._settings.require("cf_api_token"),
                zone_id=self._settings.require("cf_zone_id"),
                base_url=self._settings.cf_api_base_url,
            )
        return self._dns_client

    async def _ensure_ingress(self, hostname: str, service_url: str, tunnel_uuid: str) -> None:
        path = self.config_path
        async with self._ingress_lock:
            document = IngressDocument.load(path)
            document.set_tunnel(tunnel_uuid)
            document.upsert_rule(hostname, service_url)
            document.save(path)
            await self._validate_and_reload(path, tunnel_uuid)

    async def _remove_ingress(self, hostname: str, tunnel_uuid: str) -> None:
        path = self.config_path
        async with self._ingress_lock:
            document = IngressDocument.load(path)
            if not document.has_ingress:
                return
            document.remove_rule(hostname)
            document.save(path)
            await self._validate_and_reload(path, tunnel_uuid)

    async def _validate_and_reload(self, path: Path, tunnel_uuid: str) -> None:
        # The document stays written even when cloudflared rejects it.
        try:
            await self._daemon.validate(path)
        except TunnelError as exc:
            logger.warning("ingress_validation_failed", path=str(path), error=exc.message)
            return
        mechanism = await self._daemon.reload(path, tunnel_uuid)
        logger.info("cloudflared_reloaded", mechanism=mechanism)
