"""Join schedule games to odds events by normalized team-pair key and start time."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from nba_picks.models import Game, MarketOdds
from nba_picks.teams import full_team_name

MAX_START_DELTA = timedelta(hours=24)

_NON_KEY_CHARS = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_team_key(name: str) -> str:
    """Lowercase, drop periods and punctuation, collapse whitespace."""
    lowered = (name or "").lower().replace(".", "").replace("’", "'")
    spaced = _NON_KEY_CHARS.sub(" ", lowered)
    return _WHITESPACE.sub(" ", spaced).strip()


def make_match_key(home: str, away: str) -> str:
    return f"{normalize_team_key(home)}__{normalize_team_key(away)}"


def build_odds_buckets(odds: Iterable[MarketOdds]) -> dict[str, list[MarketOdds]]:
    """Index each event under both (home, away) and (away, home) keys."""
    buckets: dict[str, list[MarketOdds]] = {}
    for event in odds:
        forward = make_match_key(event.home_team, event.away_team)
        reverse = make_match_key(event.away_team, event.home_team)
        buckets.setdefault(forward, []).append(event)
        if reverse != forward:
            buckets.setdefault(reverse, []).append(event)
    return buckets


def pick_closest_event(
    candidates: Sequence[MarketOdds],
    start: datetime | None,
    *,
    max_delta: timedelta = MAX_START_DELTA,
) -> MarketOdds | None:
    """Nearest commence time wins; anything further than ``max_delta`` is no match.

    With no schedule start time the first candidate is returned. Candidates
    without a commence time are never chosen by distance.
    """
    if not candidates:
        return None
    if start is None:
        return candidates[0]
    best: MarketOdds | None = None
    best_delta: timedelta | None = None
    for candidate in candidates:
        if candidate.commence_time is None:
            continue
        delta = abs(candidate.commence_time - start)
        if best_delta is None or delta < best_delta:
            best, best_delta = candidate, delta
    if best is None or best_delta is None or best_delta > max_delta:
        return None
    return best


def match_game(
    game: Game,
    buckets: Mapping[str, Sequence[MarketOdds]],
    *,
    max_delta: timedelta = MAX_START_DELTA,
) -> MarketOdds | None:
    key = make_match_key(full_team_name(game.home), full_team_name(game.away))
    return pick_closest_event(buckets.get(key, ()), game.start_time_utc, max_delta=max_delta)
