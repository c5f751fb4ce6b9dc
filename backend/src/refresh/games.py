"""
Game data refresh module.

Fetches ESPN scoreboards per league, normalizes events into game rows and
upserts them into the games table.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from database.supabase_client import SupabaseClient
from espn_api.client import ESPNAPIClient, ESPNAPIError
from leagues import LEAGUE_CONFIGS, get_slug_for_league
from utils.time_window import parse_start_time

logger = logging.getLogger(__name__)


def _parse_score(value: Any) -> int:
    """Parse an ESPN score ("21", 21 or {"value": 21.0}) to int; 0 if missing/invalid."""
    if isinstance(value, dict):
        value = value.get("value")
    if value is None:
        return 0
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return 0


def _team_side(competitor: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    competitor = competitor or {}
    team = competitor.get("team") or {}
    return {
        "name": team.get("shortDisplayName") or "TBD",
        "logo": team.get("logo"),
        "score": _parse_score(competitor.get("score")),
    }


def normalize_event(event: Dict[str, Any], league: str) -> Optional[Dict[str, Any]]:
    """
    Turn one ESPN scoreboard event into a games row.

    Competitor 0 is stored as the home side and competitor 1 as the away side.

    Returns:
        Row dictionary, or None when the event has no id or no usable date
    """
    external_id = event.get("id")
    start_time = parse_start_time(event.get("date"))
    if not external_id or start_time is None:
        return None

    competition = (event.get("competitions") or [{}])[0] or {}
    competitors = competition.get("competitors") or []
    home = _team_side(competitors[0] if len(competitors) > 0 else None)
    away = _team_side(competitors[1] if len(competitors) > 1 else None)

    links = event.get("links") or []
    status_type = (event.get("status") or {}).get("type") or {}

    return {
        "league": league,
        "external_game_id": str(external_id),
        "link": links[0].get("href") if links else None,
        "home_team_name": home["name"],
        "home_team_logo": home["logo"],
        "home_team_score": home["score"],
        "away_team_name": away["name"],
        "away_team_logo": away["logo"],
        "away_team_score": away["score"],
        "start_time": start_time.isoformat(),
        "short_detail": status_type.get("shortDetail") or "N/A",
        "state": status_type.get("state") or "N/A",
    }


@dataclass
class IngestResult:
    """Outcome of one ingest call, per league."""
    succeeded: Dict[str, int] = field(default_factory=dict)  # league -> rows upserted
    failed: Dict[str, str] = field(default_factory=dict)  # league -> error

    @property
    def ok(self) -> bool:
        return not self.failed

    def succeeded_for(self, league: str) -> bool:
        return league in self.succeeded


class GameDataRefresher:
    """Handles game data ingest (the Ingestor)."""

    def __init__(
        self,
        espn_client: ESPNAPIClient,
        db_client: SupabaseClient,
        league_lock: Optional[Callable[[str], asyncio.Lock]] = None
    ):
        self.espn_client = espn_client
        self.db_client = db_client
        # Shared with the poll scheduler so a clear + rewrite is never seen half done
        self.league_lock = league_lock or self._default_league_lock
        self._locks: Dict[str, asyncio.Lock] = {}

    def _default_league_lock(self, league: str) -> asyncio.Lock:
        return self._locks.setdefault(league, asyncio.Lock())

    async def ingest(
        self,
        leagues: Optional[Iterable[str]] = None,
        replace: bool = False
    ) -> IngestResult:
        """
        Fetch, normalize and upsert the current games for each league.

        A league whose fetch fails is logged and skipped; the remaining leagues
        are still ingested, and a malformed event is skipped. Storage errors abort
        the whole call.

        Args:
            leagues: League names to ingest (default: every known league)
            replace: Clear each league's rows right before writing its fresh games
                (full re-ingest). The clear only happens after a successful fetch and
                runs under the league lock together with the rewrite.

        Returns:
            IngestResult with per-league row counts and failures
        """
        league_names = list(leagues) if leagues is not None else [cfg.name for cfg in LEAGUE_CONFIGS]
        result = IngestResult()

        for league in league_names:
            slug = get_slug_for_league(league)
            if slug is None:
                logger.warning("No scoreboard slug for league, skipping", extra={"league": league})
                result.failed[league] = "unknown league"
                continue

            try:
                events = await self.espn_client.get_scoreboard(slug)
            except ESPNAPIError as e:
                logger.warning("Scoreboard fetch failed, skipping league this cycle", extra={
                    "league": league,
                    "slug": slug,
                    "error": str(e)
                })
                result.failed[league] = str(e)
                continue

            rows: List[Dict[str, Any]] = []
            skipped = 0
            for event in events:
                try:
                    row = normalize_event(event, league)
                except (AttributeError, TypeError, KeyError, IndexError) as e:
                    logger.warning("Skipping malformed event", extra={
                        "league": league,
                        "error": str(e)
                    })
                    row = None
                if row is None:
                    skipped += 1
                    continue
                rows.append(row)

            try:
                if replace:
                    async with self.league_lock(league):
                        await asyncio.to_thread(self.db_client.clear_leagues, [league])
                        await asyncio.to_thread(self.db_client.upsert_games, rows)
                else:
                    await asyncio.to_thread(self.db_client.upsert_games, rows)
            except Exception as e:
                logger.error("Game upsert failed", extra={
                    "league": league,
                    "rows": len(rows),
                    "error": str(e)
                }, exc_info=True)
                raise

            result.succeeded[league] = len(rows)
            logger.info("Upserted games", extra={
                "league": league,
                "fetched": len(events),
                "upserted": len(rows),
                "skipped": skipped,
                "replace": replace
            })

        return result
