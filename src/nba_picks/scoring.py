"""Form-based scoring: expected points from recent form, edge vs. line, confidence.

Confidence is a heuristic, not a calibrated probability. It grows linearly
with the absolute edge (in points) and is capped by the smaller of the two
teams' sample sizes.
"""

from __future__ import annotations

from dataclasses import dataclass

from nba_picks.models import (
    CandidatePick,
    Game,
    MarketOdds,
    PickSide,
    PickType,
    TeamRecentForm,
)
from nba_picks.odds_math import clamp, no_vig_pair, round_half_up
from nba_picks.teams import full_team_name
from nba_picks.time_utils import date_key

ML_MIN_MARGIN = 2.0
SPREAD_MIN_EDGE = 1.0
TOTAL_MIN_DIFF = 3.0

CONFIDENCE_BASE = 50.0
CONFIDENCE_SLOPE = 6.5
CONFIDENCE_MAX = 92.0
# (games observed below, cap)
SAMPLE_SIZE_CAPS = ((6, 64), (8, 72), (10, 78))

HOME_ADVANTAGE = 0.02
SPREAD_SHRINK = 0.75
TOTAL_PROB_PER_POINT = 0.016
PROB_FLOOR = 0.05
PROB_CEILING = 0.95
NEUTRAL_MARKET_PROB = 0.5


@dataclass(frozen=True)
class ExpectedScore:
    home_pts: float
    away_pts: float
    margin: float
    total: float

    def to_dict(self) -> dict[str, float]:
        return {
            "expectedHomePts": round(self.home_pts, 1),
            "expectedAwayPts": round(self.away_pts, 1),
            "expectedMarginHome": round(self.margin, 1),
            "expectedTotal": round(self.total, 1),
        }


def expected_scores(home: TeamRecentForm, away: TeamRecentForm) -> ExpectedScore:
    home_pts = (home.avg_for + away.avg_against) / 2
    away_pts = (away.avg_for + home.avg_against) / 2
    return ExpectedScore(
        home_pts=home_pts,
        away_pts=away_pts,
        margin=home_pts - away_pts,
        total=home_pts + away_pts,
    )


def confidence_from_edge(edge: float, games_used: int) -> int:
    """Map an edge in points to a 50-92 confidence, capped by sample size."""
    raw = CONFIDENCE_BASE + abs(edge) * CONFIDENCE_SLOPE
    confidence = clamp(raw, CONFIDENCE_BASE, CONFIDENCE_MAX)
    for below, cap in SAMPLE_SIZE_CAPS:
        if games_used < below:
            confidence = min(confidence, cap)
            break
    return int(round_half_up(confidence))


def estimate_home_win_probability(home: TeamRecentForm, away: TeamRecentForm) -> float:
    """Blend win rates with the per-game point-differential gap, plus home advantage."""
    home_win_pct = home.win_pct if home.games_played > 0 else 0.5
    away_win_pct = away.win_pct if away.games_played > 0 else 0.5
    home_pd = home.avg_for - home.avg_against
    away_pd = away.avg_for - away.avg_against
    pd_adjust = clamp((home_pd - away_pd) * 0.008, -0.12, 0.12)
    probability = 0.78 * home_win_pct + 0.22 * (1 - away_win_pct) + pd_adjust + HOME_ADVANTAGE
    return clamp(probability, PROB_FLOOR, PROB_CEILING)


def spread_cover_probability(home_win_probability: float) -> float:
    return clamp(0.5 + (home_win_probability - 0.5) * SPREAD_SHRINK, PROB_FLOOR, PROB_CEILING)


def total_over_probability(diff: float) -> float:
    return clamp(0.5 + diff * TOTAL_PROB_PER_POINT, PROB_FLOOR, PROB_CEILING)


def edge_percent(model: float, market: float) -> float:
    return round_half_up((model - market) * 100, 1)


def _market_pair(first_price: int | None, second_price: int | None) -> tuple[float, float]:
    pair = no_vig_pair(first_price, second_price)
    return pair if pair is not None else (NEUTRAL_MARKET_PROB, NEUTRAL_MARKET_PROB)


def _fmt(value: float) -> str:
    return f"{value:.1f}"


def score_game(
    game: Game,
    home_form: TeamRecentForm,
    away_form: TeamRecentForm,
    market: MarketOdds | None,
) -> list[CandidatePick]:
    """Zero to three independent picks (ML, SPREAD, TOTAL) for one game."""
    if home_form.games_played <= 0 or away_form.games_played <= 0:
        return []

    expected = expected_scores(home_form, away_form)
    games_used = min(home_form.games_played, away_form.games_played)
    p_home = estimate_home_win_probability(home_form, away_form)
    common = {
        "game_id": game.game_id,
        "date": date_key(game.date),
        "home_team": full_team_name(game.home),
        "away_team": full_team_name(game.away),
    }
    picks: list[CandidatePick] = []

    margin = expected.margin
    if abs(margin) >= ML_MIN_MARGIN:
        moneyline = market.moneyline if market else None
        market_home, market_away = _market_pair(
            moneyline.home_price if moneyline else None,
            moneyline.away_price if moneyline else None,
        )
        home_side = margin >= ML_MIN_MARGIN
        model = p_home if home_side else 1 - p_home
        market_prob = market_home if home_side else market_away
        picks.append(
            CandidatePick(
                type=PickType.ML,
                side=PickSide.HOME if home_side else PickSide.AWAY,
                line=None,
                model_probability=model,
                market_probability=market_prob,
                edge_percent=edge_percent(model, market_prob),
                confidence=confidence_from_edge(margin, games_used),
                provider=moneyline.provider if moneyline else None,
                reason=f"expected home margin {_fmt(margin)}",
                **common,
            )
        )

    spread = market.spread if market else None
    home_line = spread.home_line if spread else None
    if spread is not None and home_line is not None:
        line_abs = abs(home_line)
        home_edge = margin - line_abs
        away_edge = -margin - line_abs
        side: PickSide | None = None
        cover_edge = 0.0
        if home_edge > SPREAD_MIN_EDGE:
            side, cover_edge = PickSide.HOME, home_edge
        elif away_edge > SPREAD_MIN_EDGE:
            side, cover_edge = PickSide.AWAY, away_edge
        if side is not None:
            market_home, market_away = _market_pair(spread.home_price, spread.away_price)
            p_cover_home = spread_cover_probability(p_home)
            model = p_cover_home if side is PickSide.HOME else 1 - p_cover_home
            market_prob = market_home if side is PickSide.HOME else market_away
            notes = (f"estimated line ({spread.source_detail})",) if spread.estimated else ()
            picks.append(
                CandidatePick(
                    type=PickType.SPREAD,
                    side=side,
                    line=home_line if side is PickSide.HOME else (-home_line or 0.0),
                    model_probability=model,
                    market_probability=market_prob,
                    edge_percent=edge_percent(model, market_prob),
                    confidence=confidence_from_edge(cover_edge, games_used),
                    provider=spread.provider,
                    reason=f"expected margin {_fmt(margin)} vs line {home_line:g}",
                    notes=notes,
                    **common,
                )
            )

    total = market.total if market else None
    if total is not None:
        diff = expected.total - total.point
        total_side: PickSide | None = None
        if diff > TOTAL_MIN_DIFF:
            total_side = PickSide.OVER
        elif diff < -TOTAL_MIN_DIFF:
            total_side = PickSide.UNDER
        if total_side is not None:
            market_over, market_under = _market_pair(total.over_price, total.under_price)
            p_over = total_over_probability(diff)
            model = p_over if total_side is PickSide.OVER else 1 - p_over
            market_prob = market_over if total_side is PickSide.OVER else market_under
            notes = (f"estimated line ({total.source_detail})",) if total.estimated else ()
            picks.append(
                CandidatePick(
                    type=PickType.TOTAL,
                    side=total_side,
                    line=total.point,
                    model_probability=model,
                    market_probability=market_prob,
                    edge_percent=edge_percent(model, market_prob),
                    confidence=confidence_from_edge(diff, games_used),
                    provider=total.provider,
                    reason=f"expected total {_fmt(expected.total)} vs line {total.point:g}",
                    notes=notes,
                    **common,
                )
            )

    return picks
