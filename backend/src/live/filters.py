"""
Client filter evaluation.

A filter selection is a list of tokens from two namespaces: league names
("NFL", "NBA", ...) and game states ("state_pre", "state_in", "state_post").
Tokens that belong to neither namespace are ignored.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from leagues import LEAGUE_NAMES
from models import GameState, sort_games

STATE_TOKEN_PREFIX = "state_"

_STATE_VALUES = frozenset(state.value for state in GameState)


@dataclass(frozen=True)
class FilterSelection:
    """Recognized tokens of a client's filter list, split by namespace."""
    leagues: FrozenSet[str] = frozenset()
    states: FrozenSet[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.leagues and not self.states

    def matches(self, game: Dict[str, Any]) -> bool:
        if self.leagues and game.get("league") not in self.leagues:
            return False
        if self.states and game.get("state") not in self.states:
            return False
        return True


def parse_filters(
    tokens: Optional[Iterable[Any]],
    known_leagues: Iterable[str] = LEAGUE_NAMES
) -> FilterSelection:
    """Split raw filter tokens into league and state restrictions, dropping anything unrecognized."""
    known = {name.upper(): name for name in known_leagues}
    leagues = set()
    states = set()
    for token in tokens or ():
        if not isinstance(token, str):
            continue
        if token.startswith(STATE_TOKEN_PREFIX):
            state = token[len(STATE_TOKEN_PREFIX):]
            if state in _STATE_VALUES:
                states.add(state)
            continue
        league = known.get(token.strip().upper())
        if league is not None:
            leagues.add(league)
    return FilterSelection(leagues=frozenset(leagues), states=frozenset(states))


def evaluate_filters(
    games: Iterable[Dict[str, Any]],
    tokens: Optional[Iterable[Any]],
    known_leagues: Iterable[str] = LEAGUE_NAMES
) -> List[Dict[str, Any]]:
    """
    Return the games matching a filter selection, in display order.

    League tokens restrict to the union of the requested leagues, state tokens
    restrict to the requested states, and both together must match. An empty
    selection (or one made only of unrecognized tokens) returns every game.
    """
    selection = parse_filters(tokens, known_leagues)
    if selection.is_empty:
        return sort_games(games)
    return sort_games(game for game in games if selection.matches(game))
