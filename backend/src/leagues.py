"""
League catalogue: display name and ESPN scoreboard slug for every league we ingest.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True)
class LeagueConfig:
    """A league we ingest: its display name and the ESPN sport/league path."""
    name: str
    slug: str


LEAGUE_CONFIGS: List[LeagueConfig] = [
    LeagueConfig(name="NFL", slug="football/nfl"),
    LeagueConfig(name="NBA", slug="basketball/nba"),
    LeagueConfig(name="MLB", slug="baseball/mlb"),
    LeagueConfig(name="NHL", slug="hockey/nhl"),
    LeagueConfig(name="MLS", slug="soccer/usa.1"),
    LeagueConfig(name="NCAAF", slug="football/college-football"),
    LeagueConfig(name="NCAAB", slug="basketball/mens-college-basketball"),
]

_BY_NAME: Dict[str, LeagueConfig] = {cfg.name: cfg for cfg in LEAGUE_CONFIGS}

LEAGUE_NAMES = frozenset(_BY_NAME)


def get_slug_for_league(league_name: str) -> Optional[str]:
    """Return the ESPN slug for a league name, or None if the league is unknown."""
    cfg = _BY_NAME.get(league_name)
    return cfg.slug if cfg else None


def get_league_configs(names: Optional[Iterable[str]] = None) -> List[LeagueConfig]:
    """League configs for the given names (catalogue order); all leagues when names is None."""
    if names is None:
        return list(LEAGUE_CONFIGS)
    wanted = set(names)
    return [cfg for cfg in LEAGUE_CONFIGS if cfg.name in wanted]
