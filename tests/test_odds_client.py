import asyncio
import json
from pathlib import Path

import httpx
import pytest

from nba_picks.errors import OddsAPIError, UpstreamUnavailable
from nba_picks.http_client import JsonHttpClient
from nba_picks.line_history import LineHistory
from nba_picks.odds_client import TheOddsApiClient, UsageMeta, parse_csv
from nba_picks.odds_normalize import ESTIMATED_KEY
from nba_picks.response_cache import ResponseCache
from nba_picks.settings import Settings

FIXTURES = Path(__file__).parent / "fixtures"


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"odds_api_key": "odds-test"}
    values.update(overrides)
    return Settings(**values)


def _snapshot(handler, *, settings: Settings | None = None, history=None, cache=None):
    async def run():
        async with JsonHttpClient(transport=httpx.MockTransport(handler)) as http:
            client = TheOddsApiClient(
                settings or _settings(), http, history=history, cache=cache
            )
            return await client.get_odds_snapshot()

    return asyncio.run(run())


def _fixture_handler(captured: dict[str, object]):
    payload = json.loads((FIXTURES / "odds_events.json").read_text(encoding="utf-8"))

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url.copy_with(query=None))
        captured["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json=payload,
            headers={
                "x-requests-remaining": "480",
                "x-requests-used": "20",
                "x-requests-last": "3",
            },
        )

    return handler


def test_parse_csv() -> None:
    assert parse_csv("a,b, c") == ["a", "b", "c"]
    assert parse_csv("") == []


def test_usage_meta_from_headers() -> None:
    usage = UsageMeta.from_headers({"x-requests-remaining": "10", "x-requests-used": "bad"})
    assert usage.to_dict() == {
        "requestsRemaining": 10,
        "requestsUsed": None,
        "requestsLast": None,
    }


def test_snapshot_requests_featured_markets_and_reads_usage() -> None:
    captured: dict[str, object] = {}
    snapshot = _snapshot(_fixture_handler(captured))
    assert captured["url"] == "https://api.the-odds-api.com/v4/sports/basketball_nba/odds"
    assert captured["params"] == {
        "regions": "us",
        "markets": "h2h,spreads,totals",
        "oddsFormat": "american",
        "dateFormat": "iso",
        "apiKey": "odds-test",
    }
    assert len(snapshot.events) == 3
    assert snapshot.source == "live"
    assert snapshot.usage.requests_remaining == 480
    assert snapshot.meta()["usage"]["requestsLast"] == 3


def test_snapshot_is_enriched_when_history_is_attached() -> None:
    history = LineHistory()
    snapshot = _snapshot(_fixture_handler({}), history=history)
    lakers = snapshot.events[1]
    assert lakers["bookmakers"][-1]["key"] == ESTIMATED_KEY
    assert history.team_line("Boston Celtics", "spread") is not None


def test_missing_key_raises_odds_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(OddsAPIError, match="missing Odds API key"):
        _snapshot(handler, settings=_settings(odds_api_key=""))


def test_invalid_market_is_rejected() -> None:
    with pytest.raises(ValueError, match="invalid featured markets"):
        _snapshot(_fixture_handler({}), settings=_settings(odds_api_markets="h2h,player_points"))


def test_upstream_failure_is_an_odds_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "invalid api key"})

    with pytest.raises(OddsAPIError) as excinfo:
        _snapshot(handler)
    assert isinstance(excinfo.value, UpstreamUnavailable)
    assert "invalid api key" in str(excinfo.value)


def test_cached_snapshot_falls_back_to_stale_copy() -> None:
    clock = {"now": 100.0}
    cache = ResponseCache(ttl_s=60.0, stale_ttl_s=3600.0, monotonic=lambda: clock["now"])
    calls = {"count": 0}
    payload = json.loads((FIXTURES / "odds_events.json").read_text(encoding="utf-8"))

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(200, json=payload)
        return httpx.Response(400, text="quota exhausted")

    first = _snapshot(handler, cache=cache)
    cached = _snapshot(handler, cache=cache)
    clock["now"] += 120.0
    stale = _snapshot(handler, cache=cache)
    assert first.source == "live"
    assert cached.source == "cache"
    assert stale.source == "stale-cache"
    assert "quota exhausted" in (stale.error or "")
    assert len(stale.events) == len(first.events)
    assert calls["count"] == 2


def test_odds_fetch_uses_its_own_timeout() -> None:
    captured: dict[str, object] = {}
    inner = _fixture_handler(captured)

    def handler(request: httpx.Request) -> httpx.Response:
        captured["timeout"] = request.extensions["timeout"]
        return inner(request)

    _snapshot(handler, settings=_settings(odds_api_timeout_s=3.5))
    assert captured["timeout"] == {"connect": 3.5, "read": 3.5, "write": 3.5, "pool": 3.5}
