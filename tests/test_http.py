import asyncio

import httpx
import pytest

from packinsight.http import Ok, ResilientClient, Unavailable, safe_json

URL = "https://registry.example/pkg"


def test_backoff_doubles_per_attempt():
    client = ResilientClient(base_delay=0.5)
    assert [client.backoff_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]


@pytest.mark.asyncio
async def test_retries_transport_errors_then_gives_up(http, upstream):
    upstream.fail(URL)

    response = await http.fetch_with_retry("GET", URL, max_attempts=3)

    assert response is None
    assert len(upstream.calls(URL)) == 3


@pytest.mark.asyncio
async def test_recovers_after_transient_failure():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json={"ok": True})

    http = ResilientClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)), base_delay=0)

    result = await http.get_json(URL, max_attempts=3)

    assert result == Ok({"ok": True})
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_sleeps_backoff_between_attempts(http, upstream, monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    http.base_delay = 1.0
    upstream.fail(URL)

    await http.fetch_with_retry("GET", URL, max_attempts=3)

    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_attempt_is_bounded_by_timeout():
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200)

    http = ResilientClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)), base_delay=0)

    response = await asyncio.wait_for(http.fetch_with_retry("GET", URL, max_attempts=2, timeout=0.05), timeout=2)

    assert response is None


@pytest.mark.asyncio
async def test_http_errors_are_not_retried(http, upstream):
    upstream.add(URL, json={"message": "rate limited"}, status=503)

    result = await http.get_json(URL, max_attempts=3)

    assert isinstance(result, Unavailable)
    assert "503" in result.reason
    assert len(upstream.calls(URL)) == 1


@pytest.mark.asyncio
async def test_not_found_is_unavailable(http):
    result = await http.get_json(URL)
    assert isinstance(result, Unavailable)


@pytest.mark.asyncio
async def test_malformed_json_is_unavailable():
    def handler(request):
        return httpx.Response(200, content=b"<html>")

    http = ResilientClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    result = await http.get_json(URL)

    assert isinstance(result, Unavailable)
    assert "malformed" in result.reason


@pytest.mark.asyncio
async def test_default_headers_are_merged(http, upstream):
    upstream.add(URL, json={})
    http.headers = {"User-Agent": "PackInsight", "Accept": "application/json"}

    await http.get_json(URL, headers={"Accept": "text/plain"})

    [request] = upstream.requests
    assert request.headers["User-Agent"] == "PackInsight"
    assert request.headers["Accept"] == "text/plain"


@pytest.mark.asyncio
async def test_context_manager_opens_and_closes_own_client():
    http = ResilientClient()

    async with http:
        client = await http._get_client()
        assert await http._get_client() is client

    assert client.is_closed


@pytest.mark.asyncio
async def test_context_manager_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    async with ResilientClient(client):
        pass

    assert not client.is_closed
    await client.aclose()


def test_safe_json():
    request = httpx.Request("GET", URL)
    assert safe_json(None) is None
    assert safe_json(httpx.Response(500, json={"a": 1}, request=request)) is None
    assert safe_json(httpx.Response(200, json={"a": 1}, request=request)) == {"a": 1}
