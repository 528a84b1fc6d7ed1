"""Recommendation and single-game analysis orchestration.

One request performs a schedule fetch (with provider fallback and, for
recommendations, a roll-forward to tomorrow), one league-wide odds fetch,
and one analysis per analyzable game. Analyses run in a small worker pool so
upstream fan-out stays bounded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, TypeVar

from nba_picks.errors import GameNotFoundError, UpstreamUnavailable
from nba_picks.explain import explain_pick
from nba_picks.form import NbaCdnFormSource, RecentFormSource, summarize_form
from nba_picks.http_client import JsonHttpClient
from nba_picks.line_history import LineHistory
from nba_picks.matching import build_odds_buckets, match_game
from nba_picks.models import (
    CandidatePick,
    Game,
    MarketOdds,
    SpreadLine,
    Team,
    TeamRecentForm,
    TotalLine,
)
from nba_picks.odds_client import OddsSource, TheOddsApiClient
from nba_picks.odds_normalize import ESTIMATED_KEY, ESTIMATED_TITLE, normalize_snapshot
from nba_picks.response_cache import ResponseCache
from nba_picks.schedule import normalize_schedule
from nba_picks.schedule_sources import (
    NbaCdnScheduleSource,
    ScheduleSource,
    build_schedule_source,
    fetch_schedule,
)
from nba_picks.scoring import ExpectedScore, expected_scores, score_game
from nba_picks.selection import pools_by_type, select_diverse_picks
from nba_picks.settings import Settings
from nba_picks.teams import full_team_name
from nba_picks.time_utils import date_key, next_day, parse_date_param, today_in_zone, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

NOTE_NO_GAMES = "No games scheduled for this date."
NOTE_NO_ANALYZABLE = (
    "No analyzable games for this date; every game is final, postponed or cancelled."
)
NOTE_PICKS = (
    "Picks lean on each team's last 10 games and spread ML, spread and total picks "
    "across as many different games as possible."
)

MARKET_MATCHED = "matched"
MARKET_ESTIMATED = "estimated"
MARKET_UNMATCHED = "unmatched"
MARKET_UNAVAILABLE = "odds-unavailable"


def resolve_date(raw: str | None, *, today: date) -> date:
    """Explicit ``YYYYMMDD``/``YYYY-MM-DD`` date, else ``today``."""
    return parse_date_param(raw) or today


async def run_bounded(
    items: Sequence[T], worker: Callable[[T], Awaitable[R]], limit: int
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``limit`` in flight.

    Workers pull the next index from a shared counter; results keep the
    original positions.
    """
    results: list[Any] = [None] * len(items)
    next_index = 0

    async def run_worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            index = next_index
            next_index += 1
            results[index] = await worker(items[index])

    workers = max(1, min(int(limit), len(items)))
    if items:
        await asyncio.gather(*(run_worker() for _ in range(workers)))
    return results


@dataclass(frozen=True)
class OddsContext:
    available: bool
    buckets: dict[str, list[MarketOdds]] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisResult:
    game: Game
    home_form: TeamRecentForm
    away_form: TeamRecentForm
    expected: ExpectedScore | None
    market: MarketOdds | None
    market_source: str
    picks: list[CandidatePick]
    note: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": date_key(self.game.date),
            "gameId": self.game.game_id,
            "game": self.game.to_dict(),
            "home": self.home_form.to_dict(),
            "away": self.away_form.to_dict(),
            "model": self.expected.to_dict() if self.expected else None,
            "market": self.market.to_dict() if self.market else None,
            "marketSource": self.market_source,
            "picks": [pick.to_dict() for pick in self.picks],
            "explanations": [explain_pick(pick) for pick in self.picks],
            "note": self.note,
        }


@dataclass(frozen=True)
class Recommendations:
    date: str
    total_games: int
    candidate_count: int
    picks: list[CandidatePick]
    note: str
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "totalGames": self.total_games,
            "candidateCount": self.candidate_count,
            "picks": [pick.to_dict() for pick in self.picks],
            "explanations": [explain_pick(pick) for pick in self.picks],
            "note": self.note,
            "meta": self.meta,
        }


class FormLookup:
    """Per-request memo of recent form by team; concurrent lookups share one fetch."""

    def __init__(self, source: RecentFormSource, games: int) -> None:
        self._source = source
        self._games = games
        self._tasks: dict[str, asyncio.Task[TeamRecentForm]] = {}

    async def _fetch(self, team: Team, key: str) -> TeamRecentForm:
        try:
            rows = await self._source.get_last_n_completed_games(
                team.id or "", self._games, abbreviation=team.abbreviation
            )
        except UpstreamUnavailable as exc:
            logger.warning("recent form lookup failed for %s: %s", key, exc)
            rows = []
        return summarize_form(key, rows)

    async def get(self, team: Team) -> TeamRecentForm:
        key = team.id or team.abbreviation or team.display_name
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(team, key))
            self._tasks[key] = task
        return await task


class PickPipeline:
    def __init__(
        self,
        schedule_source: ScheduleSource,
        odds_source: OddsSource | None,
        form_source: RecentFormSource,
        line_history: LineHistory,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.schedule_source = schedule_source
        self.odds_source = odds_source
        self.form_source = form_source
        self.line_history = line_history
        self.settings = settings
        self._clock = clock

    def today(self) -> date:
        return today_in_zone(self.settings.target_timezone, now=self._clock())

    async def load_games(self, game_date: date) -> tuple[str, list[Game]]:
        fetched = await fetch_schedule(self.schedule_source, game_date)
        games = normalize_schedule(fetched.records, game_date=game_date, provider=fetched.provider)
        return fetched.provider, games

    async def load_odds(self) -> OddsContext:
        if self.odds_source is None:
            return OddsContext(available=False, meta={"error": "odds source disabled"})
        try:
            snapshot = await self.odds_source.get_odds_snapshot()
        except UpstreamUnavailable as exc:
            logger.warning("odds snapshot unavailable; spread/total picks omitted: %s", exc)
            return OddsContext(available=False, meta={"error": str(exc)[:200]})
        odds = normalize_snapshot(
            snapshot.events,
            mode=self.settings.bookmaker_mode,
            priority=self.settings.bookmaker_priority_keys,
        )
        return OddsContext(available=True, buckets=build_odds_buckets(odds), meta=snapshot.meta())

    def estimated_market(self, game: Game) -> MarketOdds:
        """Market built purely from the line history for a game with no odds event."""
        home = full_team_name(game.home)
        away = full_team_name(game.away)
        price = self.line_history.defaults.price
        spread = self.line_history.estimate_spread_abs(home, away)
        total = self.line_history.estimate_total(home, away)
        return MarketOdds(
            event_id="",
            home_team=home,
            away_team=away,
            commence_time=game.start_time_utc,
            spread=SpreadLine(
                home_point=-spread.value,
                away_point=spread.value,
                provider=ESTIMATED_TITLE,
                home_price=price,
                away_price=price,
                estimated=True,
                source_detail=str(spread.source_detail),
            ),
            total=TotalLine(
                point=total.value,
                provider=ESTIMATED_TITLE,
                over_price=price,
                under_price=price,
                estimated=True,
                source_detail=str(total.source_detail),
            ),
            bookmaker_ref=ESTIMATED_KEY,
        )

    def market_for(self, game: Game, odds: OddsContext) -> tuple[MarketOdds | None, str]:
        if not odds.available:
            return None, MARKET_UNAVAILABLE
        matched = match_game(game, odds.buckets)
        if matched is not None:
            return matched, MARKET_MATCHED
        if self.settings.estimate_unmatched_lines:
            return self.estimated_market(game), MARKET_ESTIMATED
        return None, MARKET_UNMATCHED

    async def analyze(self, game: Game, odds: OddsContext, forms: FormLookup) -> AnalysisResult:
        home_form, away_form = await asyncio.gather(forms.get(game.home), forms.get(game.away))
        market, market_source = self.market_for(game, odds)
        if not game.analyzable:
            return AnalysisResult(
                game=game,
                home_form=home_form,
                away_form=away_form,
                expected=None,
                market=market,
                market_source=market_source,
                picks=[],
                note=f"Game is not analyzable ({game.status_text}).",
            )
        has_form = home_form.games_played > 0 and away_form.games_played > 0
        return AnalysisResult(
            game=game,
            home_form=home_form,
            away_form=away_form,
            expected=expected_scores(home_form, away_form) if has_form else None,
            market=market,
            market_source=market_source,
            picks=score_game(game, home_form, away_form, market),
            note="" if has_form else "No recent completed games available.",
        )

    async def get_recommendations(self, date: str | None = None) -> Recommendations:
        today = self.today()
        explicit = parse_date_param(date)
        target = explicit or today
        provider, games = await self.load_games(target)
        rolled_forward = False
        if explicit is None and not any(game.analyzable for game in games):
            target = next_day(today)
            provider, games = await self.load_games(target)
            rolled_forward = True

        analyzable = [game for game in games if game.analyzable]
        meta: dict[str, Any] = {
            "provider": provider,
            "rolledForward": rolled_forward,
            "excludedNotAnalyzable": len(games) - len(analyzable),
        }
        if not analyzable:
            note = NOTE_NO_GAMES if not games else NOTE_NO_ANALYZABLE
            logger.info("no analyzable games for %s (%d scheduled)", target, len(games))
            return Recommendations(
                date=date_key(target),
                total_games=len(games),
                candidate_count=0,
                picks=[],
                note=note,
                meta=meta,
            )

        odds = await self.load_odds()
        forms = FormLookup(self.form_source, self.settings.recent_form_games)
        analyses = await run_bounded(
            analyzable,
            lambda game: self.analyze(game, odds, forms),
            self.settings.analysis_concurrency,
        )
        pools = pools_by_type(pick for analysis in analyses for pick in analysis.picks)
        picks = select_diverse_picks(pools, n=self.settings.top_n_per_type)
        market_sources: dict[str, int] = {}
        for analysis in analyses:
            market_sources[analysis.market_source] = (
                market_sources.get(analysis.market_source, 0) + 1
            )
        meta.update(
            {
                "analyzed": len(analyses),
                "pools": {str(pick_type): len(pool) for pick_type, pool in pools.items()},
                "usedGames": len({pick.game_id for pick in picks}),
                "marketSources": market_sources,
                "odds": odds.meta,
            }
        )
        candidate_count = sum(len(pool) for pool in pools.values())
        logger.info(
            "recommendations for %s: %d games, %d candidates, %d picks",
            target,
            len(games),
            candidate_count,
            len(picks),
        )
        return Recommendations(
            date=date_key(target),
            total_games=len(games),
            candidate_count=candidate_count,
            picks=picks,
            note=NOTE_PICKS,
            meta=meta,
        )

    async def get_single_game_analysis(
        self, game_id: str, date: str | None = None
    ) -> AnalysisResult:
        wanted = (game_id or "").strip()
        if not wanted:
            raise GameNotFoundError("gameId is required.")
        today = self.today()
        target = resolve_date(date, today=today)
        _, games = await self.load_games(target)
        found = next((game for game in games if game.game_id == wanted), None)
        if found is None and target != today:
            _, games = await self.load_games(today)
            found = next((game for game in games if game.game_id == wanted), None)
        if found is None:
            raise GameNotFoundError(f"Game {wanted} was not found in the schedule.")

        odds = await self.load_odds()
        forms = FormLookup(self.form_source, self.settings.recent_form_games)
        return await self.analyze(found, odds, forms)


def build_pipeline(
    settings: Settings,
    http: JsonHttpClient,
    *,
    line_history: LineHistory | None = None,
) -> PickPipeline:
    """Wire the configured schedule chain, odds client and form source."""
    history = line_history or LineHistory(
        settings.estimate_defaults,
        ttl_s=settings.line_history_ttl_s or None,
    )
    nba_cdn = NbaCdnScheduleSource(
        http,
        url=settings.nba_cdn_schedule_url,
        zone=settings.target_timezone,
        cache=ResponseCache(
            ttl_s=settings.schedule_cache_ttl_s,
            stale_ttl_s=settings.schedule_cache_stale_ttl_s,
        ),
    )
    odds_source = TheOddsApiClient(
        settings,
        http,
        history=history,
        cache=ResponseCache(
            ttl_s=settings.odds_cache_ttl_s,
            stale_ttl_s=settings.odds_cache_stale_ttl_s,
        ),
    )
    return PickPipeline(
        schedule_source=build_schedule_source(settings, http, nba_cdn=nba_cdn),
        odds_source=odds_source,
        form_source=NbaCdnFormSource(nba_cdn),
        line_history=history,
        settings=settings,
    )
