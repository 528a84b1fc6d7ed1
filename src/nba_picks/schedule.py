"""Schedule normalization: provider game records into canonical games.

Every canonical field is read through an ordered tuple of provider field
names. The first field that yields a usable value wins, so the fallback order
for each field is plain data and can be tested on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from typing import Any

from nba_picks.models import Game, GameStatus, Team, is_analyzable_status
from nba_picks.teams import resolve_team
from nba_picks.time_utils import parse_iso_z
from nba_picks.util.parsing import first_mapping, first_present, safe_float, safe_int

logger = logging.getLogger(__name__)

__all__ = [
    "GAME_ID_FIELDS",
    "START_TIME_FIELDS",
    "extract_start_time",
    "STATUS_CODE_FIELDS",
    "STATUS_TEXT_FIELDS",
    "is_analyzable_status",
    "normalize_game",
    "normalize_schedule",
    "parse_start_time",
    "status_from_record",
]

GAME_ID_FIELDS = (
    "gameId",
    "id",
    "game_id",
    "gameCode",
    "gamecode",
    "gameCodeId",
    "gameCodeID",
    "gameKey",
    "game_key",
)
START_TIME_FIELDS = (
    "startTimeUTC",
    "startTimeUtc",
    "gameTimeUTC",
    "gameTimeUtc",
    "utcTime",
    "startTime",
    "dateTimeUTC",
    "gameDateTimeUTC",
    "gameDateTimeUtc",
    "commence_time",
    "commenceTime",
)
STATUS_CODE_FIELDS = ("gameStatus", "statusNum", "statusCode")
STATUS_TEXT_FIELDS = ("gameStatusText", "statusText", "status", "state", "gameState")
HOME_TEAM_FIELDS = ("home", "homeTeam")
AWAY_TEAM_FIELDS = ("away", "awayTeam")

# Flat per-side fields some payloads carry next to (or instead of) a team object.
_FLAT_TEAM_FIELDS = {
    "home": {"teamId": "homeTeamId", "triCode": "homeTricode", "displayName": "homeTeamName"},
    "away": {"teamId": "awayTeamId", "triCode": "awayTricode", "displayName": "awayTeamName"},
}

_STATUS_CODES = {
    1: GameStatus.SCHEDULED,
    2: GameStatus.IN_PROGRESS,
    3: GameStatus.FINAL,
}

# Ordered: the first rule whose term is contained in the lowered text wins.
_STATUS_TEXT_RULES: tuple[tuple[str, GameStatus], ...] = (
    ("postpone", GameStatus.POSTPONED),
    ("ppd", GameStatus.POSTPONED),
    ("cancel", GameStatus.CANCELLED),
    ("suspend", GameStatus.SUSPENDED),
    ("abandon", GameStatus.SUSPENDED),
    ("forfeit", GameStatus.FINAL),
    ("final", GameStatus.FINAL),
    ("complete", GameStatus.FINAL),
    ("in_progress", GameStatus.IN_PROGRESS),
    ("in progress", GameStatus.IN_PROGRESS),
    ("halftime", GameStatus.IN_PROGRESS),
    ("live", GameStatus.IN_PROGRESS),
    ("scheduled", GameStatus.SCHEDULED),
    ("pregame", GameStatus.SCHEDULED),
)


def parse_start_time(value: Any) -> datetime | None:
    """Parse an ISO string or epoch (seconds or millis) into a UTC instant."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        seconds = safe_float(value)
        if seconds is None:
            return None
        if seconds > 1e11:
            seconds /= 1000.0
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        return parse_iso_z(value)
    return None


def extract_start_time(record: Mapping[str, Any]) -> datetime | None:
    for field in START_TIME_FIELDS:
        raw = record.get(field)
        if raw is None or raw == "":
            continue
        # First present alias decides; an unparseable value is not retried on later aliases.
        return parse_start_time(raw)
    return None


def status_from_text(text: str) -> GameStatus:
    lowered = text.strip().lower()
    if not lowered:
        return GameStatus.UNKNOWN
    for term, status in _STATUS_TEXT_RULES:
        if term in lowered:
            return status
    return GameStatus.UNKNOWN


def status_from_record(record: Mapping[str, Any]) -> tuple[GameStatus, str]:
    """Map provider status fields to (enum, display text)."""
    text = first_present(record, STATUS_TEXT_FIELDS) or ""
    code = None
    for field in STATUS_CODE_FIELDS:
        code = safe_int(record.get(field))
        if code is not None:
            break
    if code is None and text.isdigit():
        code = int(text)
        text = ""
    if code in _STATUS_CODES:
        status = _STATUS_CODES[code]
        # Terminal text ("Postponed", "PPD") can accompany a scheduled code.
        from_text = status_from_text(text)
        if from_text in {GameStatus.POSTPONED, GameStatus.CANCELLED, GameStatus.SUSPENDED}:
            status = from_text
        return status, text or status.value
    status = status_from_text(text)
    return status, text or status.value


def _side_team(record: Mapping[str, Any], side: str) -> Team:
    fields = HOME_TEAM_FIELDS if side == "home" else AWAY_TEAM_FIELDS
    team_record = first_mapping(record, fields)
    for canonical, flat in _FLAT_TEAM_FIELDS[side].items():
        if canonical not in team_record and record.get(flat) is not None:
            team_record[canonical] = record[flat]
    return resolve_team(team_record)


def normalize_game(record: Mapping[str, Any], *, game_date: date, provider: str) -> Game | None:
    """Normalize one provider record; returns None when no game id can be extracted."""
    if not isinstance(record, Mapping):
        return None
    game_id = first_present(record, GAME_ID_FIELDS)
    if not game_id:
        logger.debug("dropping %s schedule record without a game id", provider)
        return None
    status, status_text = status_from_record(record)
    return Game(
        game_id=game_id,
        date=game_date,
        start_time_utc=extract_start_time(record),
        status=status,
        status_text=status_text,
        home=_side_team(record, "home"),
        away=_side_team(record, "away"),
        provider=provider,
    )


def normalize_schedule(
    records: Iterable[Mapping[str, Any]], *, game_date: date, provider: str
) -> list[Game]:
    """Normalize a per-day payload, preserving provider order."""
    games: list[Game] = []
    dropped = 0
    for record in records:
        game = normalize_game(record, game_date=game_date, provider=provider)
        if game is None:
            dropped += 1
            continue
        games.append(game)
    if dropped:
        logger.debug("dropped %d %s records for %s", dropped, provider, game_date)
    return games
