"""Per-team line recency table and league averages used to estimate missing lines.

The table is process-lifetime state owned by whoever builds the pipeline. It is
a best-effort heuristic cache: losing it on restart only degrades estimates
back to league averages or configured defaults.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from nba_picks.odds_math import round_to_half
from nba_picks.time_utils import utc_now

SPREAD = "spread"
TOTAL = "total"
MARKETS = (SPREAD, TOTAL)


class LineSource(StrEnum):
    REAL = "REAL"
    ESTIMATED = "ESTIMATED"


class EstimateSource(StrEnum):
    TEAM_RECENT_AVG = "TEAM_RECENT_AVG"
    TEAM_HOME_RECENT = "TEAM_HOME_RECENT"
    TEAM_AWAY_RECENT = "TEAM_AWAY_RECENT"
    LEAGUE_AVG = "LEAGUE_AVG"
    DEFAULT_ESTIMATE = "DEFAULT_ESTIMATE"


@dataclass(frozen=True)
class EstimateDefaults:
    spread_abs: float = 2.5
    total: float = 224.0
    price: int = -110


@dataclass(frozen=True)
class TeamLine:
    """Most recent line observed (or estimated) for one team and one market."""

    value: float
    observed_at: datetime
    source: LineSource


@dataclass(frozen=True)
class LeagueAverage:
    spread_abs: float | None = None
    total: float | None = None
    sample_count: int = 0
    updated_at: datetime | None = None


@dataclass(frozen=True)
class LineEstimate:
    value: float
    source_detail: EstimateSource


class LineHistory:
    """Recency table keyed by (team name, market).

    Real observations always overwrite whatever is stored. Estimated writes are
    dropped for any team/market that already holds a real observation, so an
    estimate can never revert a real line. With ``ttl_s`` set, entries older
    than the TTL are ignored on read and evicted on the next write.
    """

    def __init__(
        self,
        defaults: EstimateDefaults | None = None,
        *,
        ttl_s: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.defaults = defaults or EstimateDefaults()
        self.ttl_s = ttl_s
        self._clock = clock
        self._lock = threading.Lock()
        self._teams: dict[tuple[str, str], TeamLine] = {}
        self._league = LeagueAverage()

    def _is_expired(self, entry: TeamLine, now: datetime) -> bool:
        if self.ttl_s is None:
            return False
        return now - entry.observed_at > timedelta(seconds=self.ttl_s)

    def _evict_expired(self, now: datetime) -> None:
        if self.ttl_s is None:
            return
        stale = [key for key, entry in self._teams.items() if self._is_expired(entry, now)]
        for key in stale:
            del self._teams[key]

    def _write(self, team: str, market: str, value: float, source: LineSource) -> bool:
        now = self._clock()
        with self._lock:
            self._evict_expired(now)
            existing = self._teams.get((team, market))
            if (
                source is LineSource.ESTIMATED
                and existing is not None
                and existing.source is LineSource.REAL
            ):
                return False
            self._teams[(team, market)] = TeamLine(value=value, observed_at=now, source=source)
            return True

    def record_real(
        self, team: str, *, spread_abs: float | None = None, total: float | None = None
    ) -> None:
        if not team:
            return
        if spread_abs is not None:
            self._write(team, SPREAD, spread_abs, LineSource.REAL)
        if total is not None:
            self._write(team, TOTAL, total, LineSource.REAL)

    def record_estimate(
        self, team: str, *, spread_abs: float | None = None, total: float | None = None
    ) -> None:
        """Store an estimated value unless a real one is already held for that market."""
        if not team:
            return
        if spread_abs is not None:
            self._write(team, SPREAD, spread_abs, LineSource.ESTIMATED)
        if total is not None:
            self._write(team, TOTAL, total, LineSource.ESTIMATED)

    def update_league(
        self, *, spread_abs: float | None, total: float | None, sample_count: int
    ) -> None:
        """Replace the league average; a fetch with no samples keeps the previous one."""
        if sample_count <= 0:
            return
        with self._lock:
            self._league = LeagueAverage(
                spread_abs=spread_abs,
                total=total,
                sample_count=sample_count,
                updated_at=self._clock(),
            )

    def team_line(self, team: str, market: str) -> TeamLine | None:
        with self._lock:
            entry = self._teams.get((team, market))
        if entry is None or self._is_expired(entry, self._clock()):
            return None
        return entry

    @property
    def league(self) -> LeagueAverage:
        return self._league

    def _estimate(self, home: str, away: str, market: str) -> LineEstimate:
        home_line = self.team_line(home, market)
        away_line = self.team_line(away, market)
        home_value = home_line.value if home_line and home_line.value > 0 else None
        away_value = away_line.value if away_line and away_line.value > 0 else None
        if home_value is not None and away_value is not None:
            return LineEstimate(
                round_to_half((home_value + away_value) / 2), EstimateSource.TEAM_RECENT_AVG
            )
        if home_value is not None:
            return LineEstimate(round_to_half(home_value), EstimateSource.TEAM_HOME_RECENT)
        if away_value is not None:
            return LineEstimate(round_to_half(away_value), EstimateSource.TEAM_AWAY_RECENT)

        league = self._league
        league_value = league.spread_abs if market == SPREAD else league.total
        if league_value:
            return LineEstimate(round_to_half(league_value), EstimateSource.LEAGUE_AVG)

        default = self.defaults.spread_abs if market == SPREAD else self.defaults.total
        return LineEstimate(round_to_half(default), EstimateSource.DEFAULT_ESTIMATE)

    def estimate_spread_abs(self, home: str, away: str) -> LineEstimate:
        return self._estimate(home, away, SPREAD)

    def estimate_total(self, home: str, away: str) -> LineEstimate:
        return self._estimate(home, away, TOTAL)

    def reset(self) -> None:
        with self._lock:
            self._teams.clear()
            self._league = LeagueAverage()

    def __len__(self) -> int:
        with self._lock:
            return len(self._teams)


class NullLineHistory(LineHistory):
    """History that records nothing and always estimates from defaults."""

    def _write(self, team: str, market: str, value: float, source: LineSource) -> bool:
        return False

    def update_league(
        self, *, spread_abs: float | None, total: float | None, sample_count: int
    ) -> None:
        return None
