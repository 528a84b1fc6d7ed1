"""Canonical value types shared across schedule, odds, scoring and selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from nba_picks.time_utils import date_key, iso_z


class GameStatus(StrEnum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    FINAL = "FINAL"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"
    UNKNOWN = "UNKNOWN"


TERMINAL_STATUSES = frozenset(
    {GameStatus.FINAL, GameStatus.POSTPONED, GameStatus.CANCELLED, GameStatus.SUSPENDED}
)

BLOCKED_STATUS_TERMS = (
    "final",
    "canceled",
    "cancelled",
    "cancel",
    "postponed",
    "postpone",
    "ppd",
    "suspended",
    "suspend",
    "abandoned",
    "abandon",
    "forfeit",
    "complete",
    "completed",
)


def is_analyzable_status(raw: object) -> bool:
    """Deny-list check on free-form status text.

    Anything not containing a blocked term is analyzable, including empty,
    untranslated or unknown provider strings.
    """
    text = str(raw if raw is not None else "").strip().lower()
    if not text:
        return True
    return not any(term in text for term in BLOCKED_STATUS_TERMS)


class PickType(StrEnum):
    ML = "ML"
    SPREAD = "SPREAD"
    TOTAL = "TOTAL"


class PickSide(StrEnum):
    HOME = "HOME"
    AWAY = "AWAY"
    OVER = "OVER"
    UNDER = "UNDER"


@dataclass(frozen=True)
class Team:
    id: str | None
    abbreviation: str | None
    display_name: str
    logo: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "abbreviation": self.abbreviation,
            "displayName": self.display_name,
            "logo": self.logo,
        }


@dataclass(frozen=True)
class Game:
    """One schedule entry in canonical form."""

    game_id: str
    date: date
    start_time_utc: datetime | None
    status: GameStatus
    status_text: str
    home: Team
    away: Team
    provider: str = ""

    @property
    def analyzable(self) -> bool:
        if self.status in TERMINAL_STATUSES:
            return False
        return is_analyzable_status(self.status_text)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameId": self.game_id,
            "date": date_key(self.date),
            "startTimeUTC": iso_z(self.start_time_utc) if self.start_time_utc else None,
            "status": self.status.value,
            "statusText": self.status_text,
            "home": self.home.to_dict(),
            "away": self.away.to_dict(),
            "provider": self.provider,
            "analyzable": self.analyzable,
        }


@dataclass(frozen=True)
class SpreadLine:
    home_point: float | None
    away_point: float | None
    provider: str | None
    home_price: int | None = None
    away_price: int | None = None
    estimated: bool = False
    source_detail: str | None = None

    @property
    def home_line(self) -> float | None:
        """Home-perspective line; derived from the away point when the home one is missing."""
        if self.home_point is not None:
            return self.home_point
        if self.away_point is not None:
            return -self.away_point
        return None


@dataclass(frozen=True)
class TotalLine:
    point: float
    provider: str | None
    over_price: int | None = None
    under_price: int | None = None
    estimated: bool = False
    source_detail: str | None = None


@dataclass(frozen=True)
class MoneylineQuote:
    home_price: int | None
    away_price: int | None
    provider: str | None


@dataclass(frozen=True)
class MarketOdds:
    """One odds event reduced to a single representative line per market."""

    event_id: str
    home_team: str
    away_team: str
    commence_time: datetime | None
    spread: SpreadLine | None = None
    total: TotalLine | None = None
    moneyline: MoneylineQuote | None = None
    bookmaker_ref: str | None = None

    @property
    def event_key(self) -> frozenset[str]:
        return frozenset({self.home_team, self.away_team})

    def to_dict(self) -> dict[str, Any]:
        spread = self.spread
        total = self.total
        return {
            "eventId": self.event_id,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "commenceTime": iso_z(self.commence_time) if self.commence_time else None,
            "spread": (
                {
                    "homePoint": spread.home_point,
                    "awayPoint": spread.away_point,
                    "provider": spread.provider,
                    "estimated": spread.estimated,
                    "sourceDetail": spread.source_detail,
                }
                if spread
                else None
            ),
            "total": (
                {
                    "point": total.point,
                    "provider": total.provider,
                    "estimated": total.estimated,
                    "sourceDetail": total.source_detail,
                }
                if total
                else None
            ),
            "moneyline": (
                {
                    "homePrice": self.moneyline.home_price,
                    "awayPrice": self.moneyline.away_price,
                    "provider": self.moneyline.provider,
                }
                if self.moneyline
                else None
            ),
            "bookmaker": self.bookmaker_ref,
        }


@dataclass(frozen=True)
class CompletedGame:
    points_for: int
    points_against: int
    result: str  # "W", "L" or "T"


@dataclass(frozen=True)
class TeamRecentForm:
    team_id: str
    games_played: int
    wins: int
    losses: int
    points_for: int
    points_against: int

    @property
    def avg_for(self) -> float:
        return self.points_for / self.games_played if self.games_played > 0 else 0.0

    @property
    def avg_against(self) -> float:
        return self.points_against / self.games_played if self.games_played > 0 else 0.0

    @property
    def win_pct(self) -> float:
        return self.wins / self.games_played if self.games_played > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "teamId": self.team_id,
            "games": self.games_played,
            "wins": self.wins,
            "losses": self.losses,
            "winPct": round(self.win_pct, 3),
            "avgFor": round(self.avg_for, 1),
            "avgAgainst": round(self.avg_against, 1),
        }


@dataclass(frozen=True)
class CandidatePick:
    game_id: str
    date: str
    type: PickType
    side: PickSide
    line: float | None
    model_probability: float
    market_probability: float
    edge_percent: float
    confidence: int
    provider: str | None
    home_team: str = ""
    away_team: str = ""
    reason: str = ""
    notes: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameId": self.game_id,
            "date": self.date,
            "type": self.type.value,
            "side": self.side.value,
            "line": self.line,
            "modelProbability": round(self.model_probability, 4),
            "marketProbability": round(self.market_probability, 4),
            "edgePercent": self.edge_percent,
            "confidence": self.confidence,
            "provider": self.provider,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "reason": self.reason,
            "notes": list(self.notes),
        }
