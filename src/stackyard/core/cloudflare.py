"""Cloudflare DNS API client for tunnel CNAME records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from stackyard.core.errors import ExternalAPIError
from stackyard.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class DNSRecord:
    id: str
    name: str
    content: str
    proxied: bool


class CloudflareDNSClient:
    """List, create, update and delete CNAME records in one zone."""

    def __init__(
        self,
        *,
        api_token: str,
        zone_id: str,
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._zone_id = zone_id
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_token}",
        }
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def _records_url(self) -> str:
        return f"{self._base_url}/zones/{self._zone_id}/dns_records"

    async def find_cname(self, hostname: str) -> DNSRecord | None:
        data = await self._request(
            "list",
            "GET",
            self._records_url,
            params={"type": "CNAME", "name": hostname},
        )
        results = data.get("result") or []
        if not results:
            return None
        try:
            first = results[0]
            return DNSRecord(
                id=str(first["id"]),
                name=str(first.get("name", hostname)),
                content=str(first.get("content", "")),
                proxied=bool(first.get("proxied", False)),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            msg = f"Cloudflare API error (list DNS): unexpected record shape {results!r:.200}"
            raise ExternalAPIError(msg) from exc

    async def ensure_cname(self, hostname: str, target: str) -> str:
        """Create or correct the CNAME; returns ``created``, ``updated`` or ``unchanged``."""
        body = {
            "type": "CNAME",
            "name": hostname,
            "content": target,
            "ttl": 1,
            "proxied": True,
        }
        existing = await self.find_cname(hostname)
        if existing is None:
            await self._request("create", "POST", self._records_url, json=body)
            logger.info("dns_record_created", hostname=hostname, target=target)
            return "created"
        if existing.content != target or existing.proxied is not True:
            await self._request(
                "update", "PUT", f"{self._records_url}/{existing.id}", json=body
            )
            logger.info("dns_record_updated", hostname=hostname, target=target)
            return "updated"
        return "unchanged"

    async def delete_cname(self, hostname: str) -> bool:
        """Delete the hostname's CNAME if present; returns whether one was deleted."""
        existing = await self.find_cname(hostname)
        if existing is None:
            return False
        await self._request("delete", "DELETE", f"{self._records_url}/{existing.id}")
        logger.info("dns_record_deleted", hostname=hostname)
        return True

    async def _request(
        self,
        action: str,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(
            headers=self._headers,
            timeout=self._timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method, url, params=params, json=json)
            except httpx.HTTPError as exc:
                msg = f"Cloudflare API error ({action} DNS): {exc.__class__.__name__} {exc}"
                raise ExternalAPIError(msg) from exc
        if not response.is_success:
            msg = f"Cloudflare API error ({action} DNS): {response.status_code} {response.text}"
            raise ExternalAPIError(msg, status_code=response.status_code)
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            msg = f"Cloudflare API error ({action} DNS): invalid response body {response.text[:200]!r}"
            raise ExternalAPIError(msg, status_code=response.status_code) from exc
        if not isinstance(payload, dict):
            msg = f"Cloudflare API error ({action} DNS): invalid response body {response.text[:200]!r}"
            raise ExternalAPIError(msg, status_code=response.status_code)
        return payload
