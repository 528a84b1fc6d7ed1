import asyncio
from time import perf_counter

import httpx
import pytest

from nba_picks.errors import UpstreamUnavailable
from nba_picks.http_client import JsonHttpClient, excerpt


def _get(handler, url: str = "https://upstream.test/data", **client_kwargs):
    async def run():
        async with JsonHttpClient(transport=httpx.MockTransport(handler), **client_kwargs) as http:
            return await http.get_json(url, params={"q": "1"})

    return asyncio.run(run())


def test_get_json_returns_body_and_lowercased_headers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["q"] == "1"
        return httpx.Response(200, json={"ok": True}, headers={"X-Requests-Remaining": "42"})

    response = _get(handler)
    assert response.data == {"ok": True}
    assert response.status_code == 200
    assert response.headers["x-requests-remaining"] == "42"
    assert response.retry_count == 0


def test_retries_on_429_then_succeeds() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(429, headers={"Retry-After": "0"}, text="slow down")
        return httpx.Response(200, json=[1, 2])

    response = _get(handler, max_attempts=2)
    assert response.data == [1, 2]
    assert response.retry_count == 1
    assert calls["count"] == 2


def test_persistent_5xx_raises_upstream_unavailable_with_excerpt() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503, headers={"Retry-After": "0"}, text="x" * 500)

    with pytest.raises(UpstreamUnavailable, match="status 503") as excinfo:
        _get(handler, max_attempts=3)
    assert calls["count"] == 3
    assert "x" * 201 not in str(excinfo.value)


def test_client_errors_are_not_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(401, text="bad key")

    with pytest.raises(UpstreamUnavailable, match=r"\(401\): bad key"):
        _get(handler, max_attempts=3)
    assert calls["count"] == 1


def test_timeouts_and_non_json_bodies_are_upstream_failures() -> None:
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def html(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(UpstreamUnavailable, match="timed out"):
        _get(timeout)
    with pytest.raises(UpstreamUnavailable, match="non-JSON"):
        _get(html)


def test_excerpt_compacts_whitespace_and_truncates() -> None:
    assert excerpt("a\n  b\tc") == "a b c"
    assert len(excerpt("y" * 1000)) == 200


def test_deadline_covers_retry_sleeps() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503, headers={"Retry-After": "5"}, text="busy")

    async def run():
        async with JsonHttpClient(transport=httpx.MockTransport(handler), max_attempts=3) as http:
            return await http.get_json("https://upstream.test/data", timeout_s=0.2)

    started = perf_counter()
    with pytest.raises(UpstreamUnavailable, match=r"timed out after 0\.2s"):
        asyncio.run(run())
    assert perf_counter() - started < 2.0
    assert calls["count"] == 1
