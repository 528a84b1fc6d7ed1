from nba_picks.models import Team
from nba_picks.teams import (
    TEAM_PLACEHOLDER,
    canonical_team_name,
    canonical_tri_code,
    full_team_name,
    resolve_team,
)


def test_resolve_team_reads_fields_in_rule_order() -> None:
    team = resolve_team(
        {"teamId": 1610612738, "id": "ignored", "teamTricode": "bos", "teamName": "Celtics"}
    )
    assert team.id == "1610612738"
    assert team.abbreviation == "BOS"
    assert team.display_name == "Celtics"
    assert team.logo == "https://cdn.nba.com/logos/nba/1610612738/global/L/logo.svg"


def test_resolve_team_degrades_without_raising() -> None:
    assert resolve_team(None) == Team(id=None, abbreviation=None, display_name=TEAM_PLACEHOLDER)
    only_code = resolve_team({"abbreviation": "GS"})
    assert only_code.abbreviation == "GSW"
    assert only_code.display_name == "GSW"
    assert only_code.logo is None


def test_provider_logo_wins_over_template() -> None:
    team = resolve_team({"id": "13", "abbreviation": "LAL", "logo": "https://espn/lal.png"})
    assert team.logo == "https://espn/lal.png"


def test_canonical_names_collapse_aliases() -> None:
    assert canonical_team_name("  LA   Lakers ") == "los angeles lakers"
    assert canonical_team_name("Los Angeles Lakers") == "los angeles lakers"
    assert canonical_team_name("Some Other Club") == "some other club"
    assert canonical_tri_code(" wsh ") == "WAS"
    assert canonical_tri_code("") is None


def test_full_team_name_prefers_tri_code_then_name() -> None:
    assert full_team_name(Team(id="1", abbreviation="MIA", display_name="Heat")) == "Miami Heat"
    by_name = Team(id=None, abbreviation=None, display_name="LA Clippers")
    assert full_team_name(by_name) == "Los Angeles Clippers"
    unknown = Team(id=None, abbreviation=None, display_name="Team World")
    assert full_team_name(unknown) == "Team World"
