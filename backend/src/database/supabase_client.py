"""
Supabase client for database operations.

Implements the game store: upserts keyed by (league, external_game_id), bulk
league clears before a full re-ingest, and the read shapes used by the
scheduler, the broadcast engine and the REST endpoints. Queries select only
the columns they need.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from supabase import create_client, Client

from config import Config
from models import FINAL_STATES, sort_games
from utils.time_window import DayWindow

logger = logging.getLogger(__name__)

GAME_COLUMNS = [
    "league",
    "external_game_id",
    "link",
    "home_team_name",
    "home_team_logo",
    "home_team_score",
    "away_team_name",
    "away_team_logo",
    "away_team_score",
    "start_time",
    "short_detail",
    "state",
]

SCHEDULE_COLUMNS = ["league", "external_game_id", "start_time", "state"]


class SupabaseClient:
    """Client for the games table in Supabase."""

    def __init__(self, config: Config, client: Optional[Client] = None):
        self.config = config
        self.table_name = config.games_table
        self.client: Optional[Client] = client
        if self.client is None:
            self._initialize_client()

    def _initialize_client(self):
        """Initialize Supabase client."""
        if not self.config.supabase_url or not self.config.supabase_key:
            raise ValueError("Supabase URL and key are required")

        # Use service key if available for writes, otherwise use anon key
        key = self.config.supabase_service_key or self.config.supabase_key

        self.client = create_client(
            self.config.supabase_url,
            key
        )

        logger.info("Initialized Supabase client", extra={
            "url": self.config.supabase_url,
            "using_service_key": bool(self.config.supabase_service_key)
        })

    def _select_columns(self, columns: List[str]) -> str:
        """Format column list for SELECT statement."""
        return ", ".join(columns)

    def _games(self):
        return self.client.table(self.table_name)

    def upsert_game(self, game_data: Dict[str, Any]):
        """
        Upsert a single game row.

        Args:
            game_data: Normalized game row (see GAME_COLUMNS)
        """
        result = self._games().upsert(
            game_data,
            on_conflict="league,external_game_id"
        ).execute()

        return result.data

    def upsert_games(self, games: List[Dict[str, Any]]):
        """Upsert a batch of game rows in one request."""
        if not games:
            return []
        result = self._games().upsert(
            games,
            on_conflict="league,external_game_id"
        ).execute()

        return result.data

    def clear_leagues(self, league_names: Sequence[str]) -> None:
        """
        Delete every row for the given leagues. Only used right before a full re-ingest.
        """
        names = list(league_names)
        if not names:
            return
        self._games().delete().in_("league", names).execute()

        logger.info("Cleared league rows", extra={"leagues": names})

    def get_not_final_games_today(self, window: DayWindow) -> List[Dict[str, Any]]:
        """
        Get every game starting inside the window whose state is not final.

        Args:
            window: [today 00:00, tomorrow 00:00) in the reference timezone

        Returns:
            Rows with league, external_game_id, start_time and state, by start time
        """
        result = (
            self._games()
            .select(self._select_columns(SCHEDULE_COLUMNS))
            .gte("start_time", window.start.isoformat())
            .lt("start_time", window.end.isoformat())
            .not_.in_("state", list(FINAL_STATES))
            .order("start_time")
            .execute()
        )
        return result.data or []

    def count_non_final_today_for_league(self, league_name: str, window: DayWindow) -> int:
        """Count the league's games inside the window that are not final."""
        result = (
            self._games()
            .select("external_game_id", count="exact")
            .eq("league", league_name)
            .gte("start_time", window.start.isoformat())
            .lt("start_time", window.end.isoformat())
            .not_.in_("state", list(FINAL_STATES))
            .execute()
        )
        if result.count is not None:
            return int(result.count)
        return len(result.data or [])

    def get_all_games(self) -> List[Dict[str, Any]]:
        """
        Get every game, live games first, then by league, start time and external id.

        PostgREST cannot order by a CASE expression, so the live-first ordering is
        applied after the fetch.
        """
        result = (
            self._games()
            .select(self._select_columns(GAME_COLUMNS))
            .order("league")
            .order("start_time")
            .order("external_game_id")
            .execute()
        )
        return sort_games(result.data or [])

    def get_games_by_league(self, league_name: str) -> List[Dict[str, Any]]:
        """Get one league's games ordered by start time."""
        result = (
            self._games()
            .select(self._select_columns(GAME_COLUMNS))
            .eq("league", league_name)
            .order("start_time")
            .order("external_game_id")
            .execute()
        )
        return result.data or []
