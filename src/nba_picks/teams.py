"""Team identity resolution shared by schedule and odds matching."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from nba_picks.models import Team
from nba_picks.util.parsing import first_present

TEAM_PLACEHOLDER = "TBD"

TEAM_ID_FIELDS = ("teamId", "id", "team_id")
TEAM_ABBREVIATION_FIELDS = ("triCode", "teamTricode", "abbr", "abbreviation", "teamAbbreviation")
TEAM_NAME_FIELDS = ("displayName", "name", "teamName", "nickname")
TEAM_LOGO_FIELDS = ("logo", "teamLogo")

NBA_LOGO_URL_TEMPLATE = "https://cdn.nba.com/logos/nba/{team_id}/global/L/logo.svg"

TRI_TO_TEAM = {
    "ATL": "Atlanta Hawks",
    "BOS": "Boston Celtics",
    "BKN": "Brooklyn Nets",
    "CHA": "Charlotte Hornets",
    "CHI": "Chicago Bulls",
    "CLE": "Cleveland Cavaliers",
    "DAL": "Dallas Mavericks",
    "DEN": "Denver Nuggets",
    "DET": "Detroit Pistons",
    "GSW": "Golden State Warriors",
    "HOU": "Houston Rockets",
    "IND": "Indiana Pacers",
    "LAC": "Los Angeles Clippers",
    "LAL": "Los Angeles Lakers",
    "MEM": "Memphis Grizzlies",
    "MIA": "Miami Heat",
    "MIL": "Milwaukee Bucks",
    "MIN": "Minnesota Timberwolves",
    "NOP": "New Orleans Pelicans",
    "NYK": "New York Knicks",
    "OKC": "Oklahoma City Thunder",
    "ORL": "Orlando Magic",
    "PHI": "Philadelphia 76ers",
    "PHX": "Phoenix Suns",
    "POR": "Portland Trail Blazers",
    "SAC": "Sacramento Kings",
    "SAS": "San Antonio Spurs",
    "TOR": "Toronto Raptors",
    "UTA": "Utah Jazz",
    "WAS": "Washington Wizards",
}

# Provider-specific codes that differ from the NBA tri-codes.
TRI_CODE_ALIASES = {
    "BRK": "BKN",
    "CHO": "CHA",
    "GS": "GSW",
    "NO": "NOP",
    "NOR": "NOP",
    "NY": "NYK",
    "PHO": "PHX",
    "SA": "SAS",
    "UTAH": "UTA",
    "WSH": "WAS",
}

TEAM_NAME_ALIASES = {
    "atl": "atlanta hawks",
    "atlanta": "atlanta hawks",
    "boston": "boston celtics",
    "bos": "boston celtics",
    "brooklyn": "brooklyn nets",
    "bkn": "brooklyn nets",
    "brk": "brooklyn nets",
    "charlotte": "charlotte hornets",
    "cha": "charlotte hornets",
    "cho": "charlotte hornets",
    "chicago": "chicago bulls",
    "chi": "chicago bulls",
    "cle": "cleveland cavaliers",
    "cleveland": "cleveland cavaliers",
    "dallas": "dallas mavericks",
    "dal": "dallas mavericks",
    "den": "denver nuggets",
    "denver": "denver nuggets",
    "det": "detroit pistons",
    "detroit": "detroit pistons",
    "golden state": "golden state warriors",
    "gs": "golden state warriors",
    "gsw": "golden state warriors",
    "hou": "houston rockets",
    "houston": "houston rockets",
    "ind": "indiana pacers",
    "indiana": "indiana pacers",
    "la clippers": "los angeles clippers",
    "lac": "los angeles clippers",
    "los angeles clippers": "los angeles clippers",
    "la lakers": "los angeles lakers",
    "lal": "los angeles lakers",
    "los angeles lakers": "los angeles lakers",
    "mem": "memphis grizzlies",
    "memphis": "memphis grizzlies",
    "mia": "miami heat",
    "miami": "miami heat",
    "mil": "milwaukee bucks",
    "milwaukee": "milwaukee bucks",
    "min": "minnesota timberwolves",
    "minnesota": "minnesota timberwolves",
    "new orleans": "new orleans pelicans",
    "nop": "new orleans pelicans",
    "nor": "new orleans pelicans",
    "new york": "new york knicks",
    "ny": "new york knicks",
    "nyk": "new york knicks",
    "okc": "oklahoma city thunder",
    "oklahoma city": "oklahoma city thunder",
    "orlando": "orlando magic",
    "orl": "orlando magic",
    "phi": "philadelphia 76ers",
    "philadelphia": "philadelphia 76ers",
    "philadelphia sixers": "philadelphia 76ers",
    "phx": "phoenix suns",
    "pho": "phoenix suns",
    "phoenix": "phoenix suns",
    "por": "portland trail blazers",
    "portland": "portland trail blazers",
    "sac": "sacramento kings",
    "sacramento": "sacramento kings",
    "san antonio": "san antonio spurs",
    "sa": "san antonio spurs",
    "sas": "san antonio spurs",
    "tor": "toronto raptors",
    "toronto": "toronto raptors",
    "utah": "utah jazz",
    "uta": "utah jazz",
    "washington": "washington wizards",
    "was": "washington wizards",
}


def canonical_team_name(name: str) -> str:
    """Canonicalize team names for matching."""
    normalized = " ".join(name.lower().split())
    return TEAM_NAME_ALIASES.get(normalized, normalized)


def canonical_tri_code(code: str | None) -> str | None:
    if not code:
        return None
    upper = code.strip().upper()
    if not upper:
        return None
    return TRI_CODE_ALIASES.get(upper, upper)


def resolve_team(raw: Mapping[str, Any] | None) -> Team:
    """Resolve a provider team record to a canonical :class:`Team`.

    Missing fields degrade to None or the placeholder name; this never raises.
    """
    record = raw if isinstance(raw, Mapping) else {}
    team_id = first_present(record, TEAM_ID_FIELDS)
    abbreviation = canonical_tri_code(first_present(record, TEAM_ABBREVIATION_FIELDS))
    display_name = first_present(record, TEAM_NAME_FIELDS) or abbreviation or TEAM_PLACEHOLDER
    logo = first_present(record, TEAM_LOGO_FIELDS)
    if logo is None and team_id is not None and team_id.isdigit():
        logo = NBA_LOGO_URL_TEMPLATE.format(team_id=team_id)
    return Team(id=team_id, abbreviation=abbreviation, display_name=display_name, logo=logo)


def full_team_name(team: Team) -> str:
    """Return the full franchise name used to key odds events."""
    if team.abbreviation and team.abbreviation in TRI_TO_TEAM:
        return TRI_TO_TEAM[team.abbreviation]
    canonical = canonical_team_name(team.display_name)
    for full_name in TRI_TO_TEAM.values():
        if full_name.lower() == canonical:
            return full_name
    return team.display_name
