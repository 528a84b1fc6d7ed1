"""Upstream schedule providers and the fallback chain between them."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from nba_picks.errors import UpstreamUnavailable
from nba_picks.http_client import JsonHttpClient
from nba_picks.response_cache import (
    SCHEDULE_STALE_TTL_S,
    SCHEDULE_TTL_S,
    ResponseCache,
)
from nba_picks.schedule import extract_start_time
from nba_picks.settings import Settings
from nba_picks.time_utils import DEFAULT_TARGET_ZONE, date_key, local_date

logger = logging.getLogger(__name__)

NBA_CDN_SCHEDULE_URL = "https://cdn.nba.com/static/json/staticData/scheduleLeagueV2_1.json"
ESPN_SCOREBOARD_URL = "https://site.api.espn.com/apis/site/v2/sports/basketball/nba/scoreboard"
ESPN_CALENDAR_ZONE = "America/New_York"


class ScheduleSource(Protocol):
    name: str

    async def get_games_for_date(self, game_date: date) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class ScheduleFetch:
    provider: str
    records: list[dict[str, Any]]


def _iso_prefix(value: Any) -> str | None:
    if not isinstance(value, str) or len(value) < 10:
        return None
    return value[:10]


def iter_league_games(payload: Any) -> Iterator[dict[str, Any]]:
    """Yield every game record in a league schedule payload."""
    for bucket in league_game_dates(payload):
        games = bucket.get("games")
        if isinstance(games, list):
            yield from (game for game in games if isinstance(game, dict))


def league_game_dates(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    schedule = payload.get("leagueSchedule") or payload.get("schedule") or payload
    if not isinstance(schedule, dict):
        return []
    buckets = schedule.get("gameDates") or schedule.get("dates") or []
    if not isinstance(buckets, list):
        return []
    return [bucket for bucket in buckets if isinstance(bucket, dict)]


def select_games_for_date(payload: Any, game_date: date, zone: str) -> list[dict[str, Any]]:
    """Pick one day's games out of the league schedule.

    Buckets whose ``gameDate`` starts with the ISO date win, then buckets by
    ``gameDateEst``, then a full scan by start time in ``zone``.
    """
    target = game_date.isoformat()
    buckets = league_game_dates(payload)
    for field in ("gameDate", "gameDateEst"):
        direct = [
            game
            for bucket in buckets
            if _iso_prefix(bucket.get(field)) == target
            for game in bucket.get("games") or []
            if isinstance(game, dict)
        ]
        if direct:
            return direct
    scanned: list[dict[str, Any]] = []
    for game in iter_league_games(payload):
        start = extract_start_time(game)
        if start is not None and local_date(start, zone) == game_date:
            scanned.append(game)
    return scanned


class NbaCdnScheduleSource:
    """Provider A: the NBA CDN full-season league schedule."""

    name = "nba_cdn"

    def __init__(
        self,
        http: JsonHttpClient,
        *,
        url: str = NBA_CDN_SCHEDULE_URL,
        zone: str = DEFAULT_TARGET_ZONE,
        cache: ResponseCache | None = None,
    ) -> None:
        self._http = http
        self.url = url
        self.zone = zone
        self._cache = cache or ResponseCache(
            ttl_s=SCHEDULE_TTL_S, stale_ttl_s=SCHEDULE_STALE_TTL_S
        )

    async def _fetch(self) -> Any:
        response = await self._http.get_json(self.url)
        return response.data

    async def league_schedule(self) -> Any:
        cached = await self._cache.get_or_fetch(f"{self.name}:league", self._fetch)
        return cached.value

    async def get_games_for_date(self, game_date: date) -> list[dict[str, Any]]:
        payload = await self.league_schedule()
        if not league_game_dates(payload):
            raise UpstreamUnavailable(f"{self.name} schedule payload has no game dates")
        return select_games_for_date(payload, game_date, self.zone)


def _espn_team(competitor: dict[str, Any]) -> dict[str, Any]:
    team = competitor.get("team")
    if not isinstance(team, dict):
        return {}
    return {
        "id": team.get("id"),
        "abbreviation": team.get("abbreviation"),
        "displayName": team.get("displayName") or team.get("name"),
        "logo": team.get("logo"),
    }


def flatten_espn_event(event: dict[str, Any]) -> dict[str, Any]:
    """ESPN scoreboard event into the flat record shape the normalizer reads."""
    competitions = event.get("competitions")
    competition = competitions[0] if isinstance(competitions, list) and competitions else {}
    competitors = competition.get("competitors") if isinstance(competition, dict) else None
    sides: dict[str, dict[str, Any]] = {}
    for competitor in competitors if isinstance(competitors, list) else []:
        if isinstance(competitor, dict) and competitor.get("homeAway") in {"home", "away"}:
            sides[competitor["homeAway"]] = _espn_team(competitor)
    status = event.get("status") or (competition.get("status") if competition else None) or {}
    status_type = status.get("type") if isinstance(status, dict) else None
    status_text = ""
    if isinstance(status_type, dict):
        status_text = status_type.get("description") or status_type.get("name") or ""
    return {
        "id": event.get("id"),
        "startTimeUTC": event.get("date"),
        "status": status_text,
        "home": sides.get("home", {}),
        "away": sides.get("away", {}),
    }


class EspnScheduleSource:
    """Provider B: the ESPN scoreboard, one request per US Eastern calendar date."""

    name = "espn"

    def __init__(
        self,
        http: JsonHttpClient,
        *,
        url: str = ESPN_SCOREBOARD_URL,
        zone: str = DEFAULT_TARGET_ZONE,
        cache: ResponseCache | None = None,
    ) -> None:
        self._http = http
        self.url = url
        self.zone = zone
        self._cache = cache or ResponseCache(
            ttl_s=SCHEDULE_TTL_S, stale_ttl_s=SCHEDULE_STALE_TTL_S
        )

    def calendar_dates(self, game_date: date) -> list[date]:
        """Eastern dates overlapping the target-zone day."""
        tz = ZoneInfo(self.zone)
        eastern = ZoneInfo(ESPN_CALENDAR_ZONE)
        start = datetime.combine(game_date, time.min, tzinfo=tz)
        end = start + timedelta(days=1) - timedelta(seconds=1)
        first = start.astimezone(eastern).date()
        last = end.astimezone(eastern).date()
        dates = [first]
        while dates[-1] < last:
            dates.append(dates[-1] + timedelta(days=1))
        return dates

    async def _fetch_day(self, day: date) -> list[dict[str, Any]]:
        async def fetch() -> list[dict[str, Any]]:
            response = await self._http.get_json(self.url, params={"dates": date_key(day)})
            events = response.data.get("events") if isinstance(response.data, dict) else None
            if not isinstance(events, list):
                raise UpstreamUnavailable(f"{self.name} scoreboard payload has no events list")
            return [flatten_espn_event(event) for event in events if isinstance(event, dict)]

        cached = await self._cache.get_or_fetch(f"{self.name}:{date_key(day)}", fetch)
        return cached.value

    async def get_games_for_date(self, game_date: date) -> list[dict[str, Any]]:
        days = self.calendar_dates(game_date)
        per_day = await asyncio.gather(*(self._fetch_day(day) for day in days))
        records: list[dict[str, Any]] = []
        seen: set[str] = set()
        for day, rows in zip(days, per_day, strict=True):
            for record in rows:
                start = extract_start_time(record)
                if start is None:
                    keep = day == game_date
                else:
                    keep = local_date(start, self.zone) == game_date
                key = str(record.get("id"))
                if keep and key not in seen:
                    seen.add(key)
                    records.append(record)
        return records


class FallbackScheduleSource:
    """Try each source in order; the next one runs only when the previous is unavailable."""

    def __init__(self, sources: Sequence[ScheduleSource]) -> None:
        if not sources:
            raise ValueError("at least one schedule source is required")
        self.sources = tuple(sources)
        self.name = "+".join(source.name for source in self.sources)

    async def fetch(self, game_date: date) -> ScheduleFetch:
        last_error: UpstreamUnavailable | None = None
        for source in self.sources:
            try:
                records = await source.get_games_for_date(game_date)
            except UpstreamUnavailable as exc:
                logger.warning(
                    "schedule source %s failed for %s: %s", source.name, game_date, exc
                )
                last_error = exc
                continue
            return ScheduleFetch(provider=source.name, records=records)
        assert last_error is not None
        raise UpstreamUnavailable(
            f"all schedule sources failed for {game_date}: {last_error}"
        ) from last_error

    async def get_games_for_date(self, game_date: date) -> list[dict[str, Any]]:
        return (await self.fetch(game_date)).records


async def fetch_schedule(source: ScheduleSource, game_date: date) -> ScheduleFetch:
    """Fetch one day's records along with the name of the provider that served them."""
    if isinstance(source, FallbackScheduleSource):
        return await source.fetch(game_date)
    return ScheduleFetch(provider=source.name, records=await source.get_games_for_date(game_date))


def build_schedule_source(
    settings: Settings,
    http: JsonHttpClient,
    *,
    nba_cdn: NbaCdnScheduleSource | None = None,
) -> FallbackScheduleSource:
    """Build the configured provider chain (``settings.schedule_providers``)."""
    cache_kwargs = {
        "ttl_s": settings.schedule_cache_ttl_s,
        "stale_ttl_s": settings.schedule_cache_stale_ttl_s,
    }
    sources: list[ScheduleSource] = []
    for provider in settings.schedule_provider_names:
        if provider == NbaCdnScheduleSource.name:
            sources.append(
                nba_cdn
                or NbaCdnScheduleSource(
                    http,
                    url=settings.nba_cdn_schedule_url,
                    zone=settings.target_timezone,
                    cache=ResponseCache(**cache_kwargs),
                )
            )
        elif provider == EspnScheduleSource.name:
            sources.append(
                EspnScheduleSource(
                    http,
                    url=settings.espn_scoreboard_url,
                    zone=settings.target_timezone,
                    cache=ResponseCache(**cache_kwargs),
                )
            )
        else:
            raise ValueError(f"unknown schedule provider: {provider}")
    return FallbackScheduleSource(sources)
