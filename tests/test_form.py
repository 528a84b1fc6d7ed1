import asyncio
import json
from pathlib import Path

import httpx

from nba_picks.form import NbaCdnFormSource, completed_games_for_team, summarize_form
from nba_picks.http_client import JsonHttpClient
from nba_picks.models import CompletedGame
from nba_picks.schedule_sources import NbaCdnScheduleSource, iter_league_games

FIXTURES = Path(__file__).parent / "fixtures"
BOS_ID = "1610612738"


def _league_games() -> list[dict]:
    payload = json.loads((FIXTURES / "nba_cdn_schedule.json").read_text(encoding="utf-8"))
    return list(iter_league_games(payload))


def test_completed_games_newest_first_skipping_unplayed() -> None:
    games = completed_games_for_team(_league_games(), BOS_ID)
    assert games == [CompletedGame(112, 105, "W"), CompletedGame(120, 110, "W")]


def test_completed_games_limit_and_tri_code_lookup() -> None:
    # ESPN-sourced games carry ESPN ids; the tri-code still finds the CDN rows.
    by_code = completed_games_for_team(_league_games(), "14", 1, abbreviation="MIA")
    assert by_code == [CompletedGame(105, 112, "L")]
    assert completed_games_for_team(_league_games(), "unknown") == []


def test_summarize_form() -> None:
    form = summarize_form(BOS_ID, [CompletedGame(112, 105, "W"), CompletedGame(98, 101, "L")])
    assert form.games_played == 2
    assert (form.wins, form.losses) == (1, 1)
    assert form.avg_for == 105.0
    assert form.avg_against == 103.0
    assert form.win_pct == 0.5
    assert summarize_form("x", []).avg_for == 0.0


def test_cdn_form_source_reads_league_schedule() -> None:
    payload = json.loads((FIXTURES / "nba_cdn_schedule.json").read_text(encoding="utf-8"))

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    async def run():
        async with JsonHttpClient(transport=httpx.MockTransport(handler)) as http:
            source = NbaCdnFormSource(NbaCdnScheduleSource(http, url="https://cdn.test/s.json"))
            return await source.get_last_n_completed_games(BOS_ID, 10)

    assert len(asyncio.run(run())) == 2


def test_cdn_form_source_degrades_to_empty_on_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="missing")

    async def run():
        async with JsonHttpClient(transport=httpx.MockTransport(handler)) as http:
            source = NbaCdnFormSource(NbaCdnScheduleSource(http, url="https://cdn.test/s.json"))
            return await source.get_last_n_completed_games(BOS_ID, 10)

    assert asyncio.run(run()) == []
