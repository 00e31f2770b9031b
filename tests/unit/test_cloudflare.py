import httpx
import pytest

from stackyard.core.cloudflare import CloudflareDNSClient
from stackyard.core.errors import ExternalAPIError
from tests.support.stack_helpers import FakeCloudflareAPI

HOST = "demo-1.example.dev"
TARGET = "tunnel-uuid.cfargotunnel.com"


@pytest.mark.asyncio
async def test_ensure_cname_creates_then_leaves_unchanged() -> None:
    api = FakeCloudflareAPI()
    client = api.client()

    assert await client.ensure_cname(HOST, TARGET) == "created"
    assert await client.ensure_cname(HOST, TARGET) == "unchanged"

    records = api.records_named(HOST)
    assert len(records) == 1
    assert records[0]["content"] == TARGET
    assert records[0]["proxied"] is True
    assert records[0]["ttl"] == 1
    assert [method for method, _ in api.requests] == ["GET", "POST", "GET"]


@pytest.mark.asyncio
async def test_ensure_cname_updates_wrong_target_or_proxy_flag() -> None:
    api = FakeCloudflareAPI()
    api.records["rec-9"] = {
        "id": "rec-9",
        "type": "CNAME",
        "name": HOST,
        "content": "old.cfargotunnel.com",
        "proxied": False,
    }
    client = api.client()

    assert await client.ensure_cname(HOST, TARGET) == "updated"
    assert api.records["rec-9"]["content"] == TARGET
    assert api.requests[-1] == ("PUT", "/client/v4/zones/zone-1/dns_records/rec-9")


@pytest.mark.asyncio
async def test_delete_cname_absent_is_noop() -> None:
    api = FakeCloudflareAPI()
    assert await api.client().delete_cname(HOST) is False
    assert [method for method, _ in api.requests] == ["GET"]


@pytest.mark.asyncio
async def test_delete_cname_removes_record() -> None:
    api = FakeCloudflareAPI()
    client = api.client()
    await client.ensure_cname(HOST, TARGET)

    assert await client.delete_cname(HOST) is True
    assert api.records_named(HOST) == []


@pytest.mark.asyncio
async def test_non_success_status_raises_with_body() -> None:
    api = FakeCloudflareAPI()
    api.fail_status = 403

    with pytest.raises(ExternalAPIError) as excinfo:
        await api.client().ensure_cname(HOST, TARGET)

    assert excinfo.value.status_code == 403
    assert excinfo.value.message.startswith("Cloudflare API error (list DNS): 403")
    assert "boom" in excinfo.value.message


def _client_returning(response: httpx.Response) -> CloudflareDNSClient:
    return CloudflareDNSClient(
        api_token="token",
        zone_id="zone-1",
        transport=httpx.MockTransport(lambda request: response),
    )


@pytest.mark.asyncio
async def test_non_json_success_body_raises_external_api_error() -> None:
    client = _client_returning(httpx.Response(200, text="<html>captive portal</html>"))

    with pytest.raises(ExternalAPIError) as excinfo:
        await client.delete_cname(HOST)

    assert "invalid response body" in excinfo.value.message


@pytest.mark.asyncio
async def test_record_without_id_raises_external_api_error() -> None:
    client = _client_returning(
        httpx.Response(200, json={"success": True, "result": [{"name": HOST}]})
    )

    with pytest.raises(ExternalAPIError):
        await client.find_cname(HOST)
