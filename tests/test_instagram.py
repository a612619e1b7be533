from datetime import datetime, timezone

import httpx
import pytest

from skatebounty.services.instagram import fetch_post_timestamp

PERMALINK = "https://www.instagram.com/p/Kf1ip/"

def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))

@pytest.mark.asyncio
async def test_timestamp_from_oembed():
    def handler(request: httpx.Request):
        assert request.url.params["url"] == PERMALINK
        return httpx.Response(200, json={"timestamp": "2026-05-01T10:00:00Z", "title": "kickflip"})

    async with _client(handler) as client:
        ts = await fetch_post_timestamp(PERMALINK, client)
    assert ts == datetime(2026, 5, 1, 10, tzinfo=timezone.utc)

@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(404),
    httpx.Response(200, json={"title": "no timestamp here"}),
    httpx.Response(200, json={"timestamp": "last tuesday"}),
    httpx.Response(200, content=b"<html>"),
])
async def test_lookup_failures_yield_none(response):
    async with _client(lambda request: response) as client:
        assert await fetch_post_timestamp(PERMALINK, client) is None

@pytest.mark.asyncio
async def test_network_error_yields_none():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    async with _client(handler) as client:
        assert await fetch_post_timestamp(PERMALINK, client) is None
