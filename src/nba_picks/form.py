"""Recent-form lookups: each team's last N completed games."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

from nba_picks.errors import UpstreamUnavailable
from nba_picks.models import CompletedGame, TeamRecentForm
from nba_picks.schedule import extract_start_time
from nba_picks.schedule_sources import NbaCdnScheduleSource, iter_league_games
from nba_picks.teams import canonical_tri_code
from nba_picks.util.parsing import first_present, safe_int

logger = logging.getLogger(__name__)

DEFAULT_FORM_GAMES = 10
FINAL_STATUS_CODE = 3

_EPOCH = datetime.min.replace(tzinfo=UTC)


class RecentFormSource(Protocol):
    async def get_last_n_completed_games(
        self, team_id: str, n: int = DEFAULT_FORM_GAMES, *, abbreviation: str | None = None
    ) -> list[CompletedGame]: ...


def _team_matches(team: Any, team_id: str, abbreviation: str | None) -> bool:
    if not isinstance(team, dict):
        return False
    if team_id and first_present(team, ("teamId", "id")) == team_id:
        return True
    if abbreviation:
        code = canonical_tri_code(first_present(team, ("teamTricode", "triCode", "abbreviation")))
        return code == abbreviation
    return False


def completed_games_for_team(
    games: Iterable[dict[str, Any]],
    team_id: str,
    n: int = DEFAULT_FORM_GAMES,
    *,
    abbreviation: str | None = None,
) -> list[CompletedGame]:
    """Final games with both scores, newest first, at most ``n``."""
    rows: list[tuple[datetime, CompletedGame]] = []
    for game in games:
        if safe_int(game.get("gameStatus")) != FINAL_STATUS_CODE:
            continue
        home, away = game.get("homeTeam"), game.get("awayTeam")
        if _team_matches(home, team_id, abbreviation):
            mine, theirs = home, away
        elif _team_matches(away, team_id, abbreviation):
            mine, theirs = away, home
        else:
            continue
        points_for = safe_int(mine.get("score")) if isinstance(mine, dict) else None
        points_against = safe_int(theirs.get("score")) if isinstance(theirs, dict) else None
        if points_for is None or points_against is None:
            continue
        if points_for == points_against == 0:
            continue
        if points_for > points_against:
            result = "W"
        elif points_for < points_against:
            result = "L"
        else:
            result = "T"
        started = extract_start_time(game) or _EPOCH
        rows.append((started, CompletedGame(points_for, points_against, result)))
    rows.sort(key=lambda row: row[0], reverse=True)
    return [completed for _, completed in rows[: max(0, n)]]


def summarize_form(team_id: str, games: Iterable[CompletedGame]) -> TeamRecentForm:
    played = wins = losses = points_for = points_against = 0
    for game in games:
        played += 1
        points_for += game.points_for
        points_against += game.points_against
        if game.result == "W":
            wins += 1
        elif game.result == "L":
            losses += 1
    return TeamRecentForm(
        team_id=team_id,
        games_played=played,
        wins=wins,
        losses=losses,
        points_for=points_for,
        points_against=points_against,
    )


class NbaCdnFormSource:
    """Derives recent form from completed games in the NBA CDN league schedule.

    Failures are logged and reported as an empty list so scoring degrades to
    "no pick" instead of erroring.
    """

    def __init__(self, schedule: NbaCdnScheduleSource) -> None:
        self._schedule = schedule

    async def get_last_n_completed_games(
        self, team_id: str, n: int = DEFAULT_FORM_GAMES, *, abbreviation: str | None = None
    ) -> list[CompletedGame]:
        try:
            payload = await self._schedule.league_schedule()
        except UpstreamUnavailable as exc:
            logger.warning("recent form unavailable for team %s: %s", team_id, exc)
            return []
        return completed_games_for_team(
            iter_league_games(payload), team_id, n, abbreviation=abbreviation
        )
