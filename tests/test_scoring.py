from datetime import date

import pytest

from nba_picks.models import (
    CandidatePick,
    Game,
    GameStatus,
    MarketOdds,
    MoneylineQuote,
    PickSide,
    PickType,
    SpreadLine,
    Team,
    TeamRecentForm,
    TotalLine,
)
from nba_picks.scoring import (
    confidence_from_edge,
    estimate_home_win_probability,
    expected_scores,
    score_game,
)

GAME = Game(
    game_id="0022500100",
    date=date(2025, 1, 1),
    start_time_utc=None,
    status=GameStatus.SCHEDULED,
    status_text="7:30 pm ET",
    home=Team(id="1610612738", abbreviation="BOS", display_name="Celtics"),
    away=Team(id="1610612748", abbreviation="MIA", display_name="Heat"),
)


def _form(team_id: str, games: int, wins: int, avg_for: float, avg_against: float):
    return TeamRecentForm(
        team_id=team_id,
        games_played=games,
        wins=wins,
        losses=games - wins,
        points_for=int(avg_for * games),
        points_against=int(avg_against * games),
    )


def _market(
    *,
    spread: SpreadLine | None = None,
    total: TotalLine | None = None,
    moneyline: MoneylineQuote | None = None,
) -> MarketOdds:
    return MarketOdds(
        event_id="evt",
        home_team="Boston Celtics",
        away_team="Miami Heat",
        commence_time=None,
        spread=spread,
        total=total,
        moneyline=moneyline,
    )


def _by_type(picks: list[CandidatePick]) -> dict[PickType, CandidatePick]:
    return {pick.type: pick for pick in picks}


STRONG = _form("1610612738", 10, 8, 120.0, 100.0)
WEAK = _form("1610612748", 10, 4, 105.0, 110.0)


@pytest.mark.parametrize("games_used", [1, 4, 5, 6, 7, 8, 9, 10])
def test_confidence_is_monotonic_in_edge(games_used: int) -> None:
    values = [confidence_from_edge(edge / 2, games_used) for edge in range(0, 30)]
    assert values == sorted(values)
    assert values[0] == 50


@pytest.mark.parametrize(
    ("games_used", "cap"), [(1, 64), (5, 64), (6, 72), (7, 72), (8, 78), (9, 78), (10, 92)]
)
def test_confidence_caps_by_sample_size(games_used: int, cap: int) -> None:
    assert confidence_from_edge(100.0, games_used) == cap
    assert confidence_from_edge(-100.0, games_used) == cap


def test_confidence_rounds_half_up() -> None:
    # 50 + 1 * 6.5 = 56.5
    assert confidence_from_edge(1.0, 10) == 57


def test_expected_scores_blend_offense_and_defense() -> None:
    expected = expected_scores(STRONG, WEAK)
    assert expected.home_pts == 115.0
    assert expected.away_pts == 102.5
    assert expected.margin == 12.5
    assert expected.total == 217.5


def test_home_win_probability_is_bounded_and_favors_better_team() -> None:
    assert estimate_home_win_probability(STRONG, WEAK) > 0.5
    assert estimate_home_win_probability(WEAK, STRONG) < 0.5
    lopsided = _form("x", 10, 10, 150.0, 90.0)
    assert estimate_home_win_probability(lopsided, WEAK) <= 0.95


def test_short_sample_ml_pick_is_capped_at_64() -> None:
    # 4 games, 3 wins, +30 total point differential vs. a 10-game .500 team at 0
    hot = TeamRecentForm("1610612738", 4, 3, 1, 470, 440)
    even = TeamRecentForm("1610612748", 10, 5, 5, 1100, 1100)
    picks = score_game(GAME, hot, even, None)
    assert [pick.type for pick in picks] == [PickType.ML]
    ml = picks[0]
    assert ml.side is PickSide.HOME
    assert ml.confidence == 64

    blowout = TeamRecentForm("1610612738", 4, 4, 0, 640, 440)
    assert score_game(GAME, blowout, even, None)[0].confidence == 64


def test_no_ml_pick_below_minimum_margin() -> None:
    even = _form("a", 10, 5, 110.0, 110.0)
    assert score_game(GAME, even, even, None) == []


def test_no_picks_without_recent_games() -> None:
    empty = TeamRecentForm("1610612748", 0, 0, 0, 0, 0)
    market = _market(spread=SpreadLine(-4.5, 4.5, "DraftKings", -110, -110))
    assert score_game(GAME, STRONG, empty, market) == []


def test_ml_without_odds_uses_neutral_market() -> None:
    picks = _by_type(score_game(GAME, STRONG, WEAK, None))
    ml = picks[PickType.ML]
    assert ml.market_probability == 0.5
    assert ml.provider is None
    assert PickType.SPREAD not in picks
    assert PickType.TOTAL not in picks


def test_home_spread_pick_keeps_home_line() -> None:
    market = _market(
        spread=SpreadLine(-4.5, 4.5, "DraftKings", -110, -110),
        moneyline=MoneylineQuote(-250, 200, "DraftKings"),
    )
    picks = _by_type(score_game(GAME, STRONG, WEAK, market))
    spread = picks[PickType.SPREAD]
    assert spread.side is PickSide.HOME
    assert spread.line == -4.5
    assert spread.market_probability == pytest.approx(0.5)
    assert spread.confidence == 92
    assert spread.provider == "DraftKings"
    assert spread.notes == ()
    ml = picks[PickType.ML]
    assert ml.provider == "DraftKings"
    assert ml.edge_percent == pytest.approx(
        (ml.model_probability - ml.market_probability) * 100, abs=0.051
    )


def test_away_spread_pick_flips_line_sign() -> None:
    market = _market(spread=SpreadLine(4.5, -4.5, "FanDuel", -110, -110))
    picks = _by_type(score_game(GAME, WEAK, STRONG, market))
    spread = picks[PickType.SPREAD]
    assert spread.side is PickSide.AWAY
    assert spread.line == -4.5


def test_spread_line_derived_from_away_point() -> None:
    market = _market(spread=SpreadLine(None, 4.5, "FanDuel"))
    spread = _by_type(score_game(GAME, STRONG, WEAK, market))[PickType.SPREAD]
    assert spread.line == -4.5


def test_no_spread_pick_inside_minimum_edge() -> None:
    market = _market(spread=SpreadLine(-12.0, 12.0, "DraftKings", -110, -110))
    assert PickType.SPREAD not in _by_type(score_game(GAME, STRONG, WEAK, market))


def test_total_under_with_estimated_line_note() -> None:
    market = _market(
        total=TotalLine(
            224.0, "ESTIMATED", -110, -110, estimated=True, source_detail="LEAGUE_AVG"
        )
    )
    total = _by_type(score_game(GAME, STRONG, WEAK, market))[PickType.TOTAL]
    assert total.side is PickSide.UNDER
    assert total.line == 224.0
    assert total.notes == ("estimated line (LEAGUE_AVG)",)
    # diff = 217.5 - 224 = -6.5 -> 50 + 42.25
    assert total.confidence == 92
    assert total.model_probability > total.market_probability


def test_no_total_pick_inside_minimum_diff() -> None:
    market = _market(total=TotalLine(219.0, "DraftKings", -110, -110))
    assert PickType.TOTAL not in _by_type(score_game(GAME, STRONG, WEAK, market))


def test_picks_carry_game_identity() -> None:
    pick = score_game(GAME, STRONG, WEAK, None)[0]
    assert pick.game_id == "0022500100"
    assert pick.date == "20250101"
    assert pick.home_team == "Boston Celtics"
    assert pick.away_team == "Miami Heat"
    assert pick.to_dict()["type"] == "ML"
