"""
Game state vocabulary and display ordering shared by the store, the scheduler and the filters.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from utils.time_window import parse_start_time


class GameState(str, Enum):
    """ESPN status.type.state values."""
    PRE = "pre"  # Scheduled, not started
    IN = "in"  # In progress
    POST = "post"  # Finished


# States treated as final when deciding whether a league still needs polling.
# "completed" and "final" are not produced by ESPN's state field but show up in
# hand-loaded rows, so they count as final too.
FINAL_STATES = ("post", "completed", "final")

# Rows without a usable start time sort after every dated row of their league
_NO_START_TIME = datetime.max.replace(tzinfo=timezone.utc)


def is_final_state(state) -> bool:
    return state in FINAL_STATES


def game_sort_key(game: Dict[str, Any]) -> Tuple:
    """Live games first, then league name, start time and external game id."""
    start = parse_start_time(game.get("start_time"))
    return (
        0 if game.get("state") == GameState.IN.value else 1,
        str(game.get("league") or ""),
        start or _NO_START_TIME,
        str(game.get("external_game_id") or ""),
    )


def sort_games(games: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Deterministic display order, independent of storage insertion order."""
    return sorted(games, key=game_sort_key)
