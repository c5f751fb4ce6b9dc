"""
Refresh Orchestrator - Coordinates ingest, scheduling and live broadcast.

Owns the clients, the connection registry and the poll scheduler, and runs the
daily and hourly schedule checks. Each check does a full re-ingest of every
configured league, broadcasts, then re-runs the daily schedule.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import Config
from database.supabase_client import SupabaseClient
from espn_api.client import ESPNAPIClient
from live.broadcast import BroadcastEngine
from live.handler import LiveUpdateHandler
from live.registry import ConnectionRegistry
from refresh.games import GameDataRefresher, IngestResult
from refresh.scheduler import PollScheduler
from utils.time_window import next_daily_run, next_top_of_hour, seconds_until, utc_now

logger = logging.getLogger(__name__)


class RefreshOrchestrator:
    """Orchestrates all refresh operations."""

    def __init__(
        self,
        config: Config,
        db_client: Optional[SupabaseClient] = None,
        espn_client: Optional[ESPNAPIClient] = None
    ):
        self.config = config
        self.db_client = db_client
        self.espn_client = espn_client
        self.game_refresher: Optional[GameDataRefresher] = None
        self.registry: Optional[ConnectionRegistry] = None
        self.broadcaster: Optional[BroadcastEngine] = None
        self.scheduler: Optional[PollScheduler] = None
        self.live_handler: Optional[LiveUpdateHandler] = None
        self.running = False
        # Daily and hourly checks can land on the same minute; run them one at a time
        self._cycle_lock: Optional[asyncio.Lock] = None
        self.last_refresh_at: Optional[datetime] = None
        self.last_refresh_result: Optional[IngestResult] = None

    async def initialize(self):
        """Initialize orchestrator and clients."""
        logger.info("Orchestrator starting", extra={
            "leagues": self.config.leagues,
            "schedule_timezone": self.config.schedule_timezone
        })

        if self.espn_client is None:
            self.espn_client = ESPNAPIClient(self.config)
        if self.db_client is None:
            self.db_client = SupabaseClient(self.config)
        self.game_refresher = GameDataRefresher(self.espn_client, self.db_client)
        self.registry = ConnectionRegistry()
        self.broadcaster = BroadcastEngine(self.registry, self.db_client)
        self.scheduler = PollScheduler(
            self.db_client,
            self.game_refresher,
            self.broadcaster,
            tz=self.config.tz,
            poll_interval_seconds=self.config.poll_interval_seconds,
            poll_lead_minutes=self.config.poll_lead_minutes,
        )
        self.game_refresher.league_lock = self.scheduler.league_lock
        self.live_handler = LiveUpdateHandler(self.registry, self.broadcaster)
        self._cycle_lock = asyncio.Lock()

        logger.info("Orchestrator ready")

    async def shutdown(self):
        """Shutdown orchestrator gracefully."""
        logger.info("Orchestrator shutting down")
        self.running = False

        if self.scheduler:
            await self.scheduler.shutdown()
        if self.espn_client:
            await self.espn_client.close()

        logger.info("Orchestrator stopped")

    async def refresh_all_leagues(self, trigger: str = "manual") -> IngestResult:
        """
        Full re-ingest of every configured league, then broadcast to all clients.

        Raises:
            Exception: storage failures from the ingest (the cycle is aborted)
        """
        logger.info("Starting full ingest", extra={"trigger": trigger, "leagues": self.config.leagues})
        result = await self.game_refresher.ingest(self.config.leagues, replace=True)
        self.last_refresh_at = datetime.now(timezone.utc)
        self.last_refresh_result = result
        if result.failed:
            logger.warning("Full ingest finished with failed leagues", extra={
                "trigger": trigger,
                "failed": result.failed
            })
        await self.broadcaster.broadcast_updated_games()
        return result

    async def run_schedule_cycle(self, trigger: str) -> None:
        """Full ingest + broadcast, then the daily schedule run. Never raises."""
        async with self._cycle_lock:
            try:
                await self.refresh_all_leagues(trigger)
            except Exception as e:
                logger.error("Full ingest aborted", extra={
                    "trigger": trigger,
                    "error": str(e)
                }, exc_info=True)
            try:
                await self.scheduler.run_daily_schedule()
            except Exception as e:
                logger.error("Daily schedule run failed", extra={
                    "trigger": trigger,
                    "error": str(e)
                }, exc_info=True)

    async def _run_daily_loop(self):
        """Daily check at config.daily_check_time in the reference timezone."""
        target = next_daily_run(utc_now(), self.config.daily_check_at, self.config.tz)
        while self.running:
            try:
                logger.debug("Next daily check", extra={"at": target.isoformat()})
                await asyncio.sleep(seconds_until(target, utc_now()))
                logger.info("[DailySchedule] Running daily check")
                await self.run_schedule_cycle("daily")
                # Never fire twice for the same target if the sleep woke a little early
                target = next_daily_run(max(utc_now(), target), self.config.daily_check_at, self.config.tz)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Daily loop error", extra={"error": str(e)}, exc_info=True)
                await asyncio.sleep(60)

    async def _run_hourly_loop(self):
        """Hourly safety-net check at the top of every hour."""
        target = next_top_of_hour(utc_now())
        while self.running:
            try:
                await asyncio.sleep(seconds_until(target, utc_now()))
                logger.info("[HourlySchedule] Running hourly check")
                await self.run_schedule_cycle("hourly")
                target = next_top_of_hour(max(utc_now(), target))
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Hourly loop error", extra={"error": str(e)}, exc_info=True)
                await asyncio.sleep(60)

    async def run(self):
        """Initial ingest and schedule, then the daily and hourly loops."""
        self.running = True
        await self.run_schedule_cycle("startup")

        loops = [self._run_daily_loop()]
        if self.config.hourly_check_enabled:
            loops.append(self._run_hourly_loop())
        logger.info("Schedule loops started", extra={
            "daily_check_time": self.config.daily_check_time,
            "hourly": self.config.hourly_check_enabled
        })
        try:
            await asyncio.gather(*loops)
        except asyncio.CancelledError:
            logger.info("Schedule loops cancelled")
        finally:
            self.running = False

    def stats(self) -> Dict[str, Any]:
        """Connection and scheduling counters for the status endpoint."""
        data: Dict[str, Any] = dict(self.registry.stats()) if self.registry else {}
        if self.scheduler:
            data["active_polls"] = self.scheduler.active_leagues
            data["pending_polls"] = self.scheduler.pending_leagues
        data["last_refresh_at"] = self.last_refresh_at.isoformat() if self.last_refresh_at else None
        return data
