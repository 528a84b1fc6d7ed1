from datetime import UTC, date, datetime, timedelta

from nba_picks.matching import (
    build_odds_buckets,
    make_match_key,
    match_game,
    normalize_team_key,
    pick_closest_event,
)
from nba_picks.models import Game, GameStatus, MarketOdds, Team

START = datetime(2025, 1, 1, 0, 0, tzinfo=UTC)


def _odds(event_id: str, home: str, away: str, commence: datetime | None) -> MarketOdds:
    return MarketOdds(event_id=event_id, home_team=home, away_team=away, commence_time=commence)


def _game(home: Team, away: Team, start: datetime | None) -> Game:
    return Game(
        game_id="g",
        date=date(2025, 1, 1),
        start_time_utc=start,
        status=GameStatus.SCHEDULED,
        status_text="",
        home=home,
        away=away,
    )


BOS = Team(id="1610612738", abbreviation="BOS", display_name="Celtics")
MIA = Team(id="1610612748", abbreviation="MIA", display_name="Heat")


def test_team_key_normalization() -> None:
    assert normalize_team_key("L.A. Lakers") == normalize_team_key("la lakers")
    assert normalize_team_key("  Portland   Trail-Blazers ") == "portland trail blazers"
    assert make_match_key("A", "B") != make_match_key("B", "A")


def test_buckets_are_symmetric() -> None:
    event = _odds("e1", "Boston Celtics", "Miami Heat", START)
    buckets = build_odds_buckets([event])
    assert buckets[make_match_key("Boston Celtics", "Miami Heat")] == [event]
    assert buckets[make_match_key("Miami Heat", "Boston Celtics")] == [event]


def test_reversed_home_away_still_matches() -> None:
    event = _odds("e1", "Miami Heat", "Boston Celtics", START)
    assert match_game(_game(BOS, MIA, START), build_odds_buckets([event])) is event


def test_closest_commence_time_wins() -> None:
    near = _odds("near", "Boston Celtics", "Miami Heat", START + timedelta(minutes=5))
    far = _odds("far", "Boston Celtics", "Miami Heat", START + timedelta(hours=20))
    assert pick_closest_event([far, near], START) is near


def test_cap_is_inclusive_at_exactly_24_hours() -> None:
    exact = _odds("exact", "Boston Celtics", "Miami Heat", START + timedelta(hours=24))
    over = _odds(
        "over", "Boston Celtics", "Miami Heat", START + timedelta(hours=24, minutes=1)
    )
    assert pick_closest_event([exact], START) is exact
    assert pick_closest_event([over], START) is None


def test_missing_start_time_takes_first_candidate() -> None:
    first = _odds("first", "Boston Celtics", "Miami Heat", START)
    second = _odds("second", "Boston Celtics", "Miami Heat", None)
    assert pick_closest_event([first, second], None) is first
    assert pick_closest_event([second], START) is None
    assert pick_closest_event([], START) is None


def test_unknown_pairing_has_no_match() -> None:
    event = _odds("e1", "Boston Celtics", "Miami Heat", START)
    lakers = Team(id=None, abbreviation="LAL", display_name="Lakers")
    assert match_game(_game(BOS, lakers, START), build_odds_buckets([event])) is None
