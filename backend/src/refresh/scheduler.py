"""
Poll Scheduler - decides when each league needs frequent polling.

Once per daily run it reads today's not-final games, works out per league when
frequent polling should begin (a fixed lead before the first game, or right
away when a game is already live) and owns the per-league poll tasks. Each poll
task ingests its league, broadcasts, and stops itself once every one of the
league's games today is final.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from database.supabase_client import SupabaseClient
from live.broadcast import BroadcastEngine
from models import GameState
from refresh.games import GameDataRefresher
from utils.time_window import parse_start_time, seconds_until, today_window, utc_now

logger = logging.getLogger(__name__)


@dataclass
class LeagueSchedule:
    """Today's polling inputs for one league."""
    league: str
    earliest_start: datetime
    has_live: bool = False

    def poll_start_time(self, lead: timedelta) -> datetime:
        return self.earliest_start - lead


@dataclass(frozen=True)
class ScheduleDecision:
    """What a daily run decided for one league."""
    league: str
    poll_start_time: datetime
    start_now: bool


def plan_league_schedules(rows: Iterable[Dict[str, Any]]) -> Dict[str, LeagueSchedule]:
    """
    Group not-final rows by league: earliest start and whether any game is live.

    Rows without a league or a parseable start time are skipped.
    """
    schedules: Dict[str, LeagueSchedule] = {}
    for row in rows:
        league = row.get("league")
        start = parse_start_time(row.get("start_time"))
        if not league or start is None:
            logger.debug("Skipping unschedulable row", extra={
                "league": league,
                "external_game_id": row.get("external_game_id"),
                "start_time": row.get("start_time")
            })
            continue

        schedule = schedules.get(league)
        if schedule is None:
            schedule = LeagueSchedule(league=league, earliest_start=start)
            schedules[league] = schedule
        elif start < schedule.earliest_start:
            schedule.earliest_start = start

        if row.get("state") == GameState.IN.value:
            schedule.has_live = True
    return schedules


def decide_poll_starts(
    schedules: Dict[str, LeagueSchedule],
    now: datetime,
    lead: timedelta
) -> List[ScheduleDecision]:
    """Start now when the poll start time has been reached (inclusive) or a game is live."""
    decisions = []
    for league in sorted(schedules):
        schedule = schedules[league]
        poll_start = schedule.poll_start_time(lead)
        decisions.append(ScheduleDecision(
            league=league,
            poll_start_time=poll_start,
            start_now=poll_start <= now or schedule.has_live,
        ))
    return decisions


class PollTask:
    """
    Recurring poll for one league.

    Fires immediately, then every `interval_seconds`. Ticks missed while a
    firing overran are skipped, never queued. `cancel()` stops future firings;
    a firing already in progress runs to completion.
    """

    def __init__(
        self,
        league: str,
        body: Callable[[str], Awaitable[bool]],
        interval_seconds: float,
        on_finished: Callable[["PollTask"], Awaitable[None]]
    ):
        self.league = league
        self.interval_seconds = interval_seconds
        self.firings = 0
        self._body = body
        self._on_finished = on_finished
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name=f"poll:{self.league}")

    def cancel(self) -> None:
        self._stop.set()

    def abort(self) -> None:
        """Stop immediately, interrupting an in-flight firing. Only used at shutdown."""
        self._stop.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _fire(self) -> bool:
        self.firings += 1
        try:
            return await self._body(self.league)
        except Exception as e:
            logger.error("Poll firing failed", extra={
                "league": self.league,
                "error": str(e)
            }, exc_info=True)
            return False

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time()
        while not self._stop.is_set():
            finished = await self._fire()
            if finished:
                self._stop.set()
                await self._on_finished(self)
                return
            if self._stop.is_set():
                return

            next_fire += self.interval_seconds
            now = loop.time()
            if next_fire <= now:
                missed = int((now - next_fire) // self.interval_seconds) + 1
                next_fire += missed * self.interval_seconds
                logger.debug("Poll overran its interval, skipping ticks", extra={
                    "league": self.league,
                    "skipped": missed
                })
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=next_fire - now)
            except asyncio.TimeoutError:
                pass


class PollScheduler:
    """Owns the active-poll registry (league -> PollTask) and pending start timers."""

    def __init__(
        self,
        db_client: SupabaseClient,
        ingestor: GameDataRefresher,
        broadcaster: BroadcastEngine,
        tz: ZoneInfo,
        poll_interval_seconds: float = 60,
        poll_lead_minutes: float = 15,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db_client = db_client
        self.ingestor = ingestor
        self.broadcaster = broadcaster
        self.tz = tz
        self.poll_interval_seconds = poll_interval_seconds
        self.poll_lead = timedelta(minutes=poll_lead_minutes)
        self.clock = clock
        self.last_decisions: List[ScheduleDecision] = []
        self._tasks: Dict[str, PollTask] = {}
        self._pending: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self._league_locks: Dict[str, asyncio.Lock] = {}

    @property
    def active_leagues(self) -> List[str]:
        return sorted(self._tasks)

    @property
    def pending_leagues(self) -> List[str]:
        return sorted(self._pending)

    def get_task(self, league: str) -> Optional[PollTask]:
        return self._tasks.get(league)

    def league_lock(self, league: str) -> asyncio.Lock:
        """Lock held by a league's poll firing; full re-ingests take it around their clear + rewrite."""
        return self._league_locks.setdefault(league, asyncio.Lock())

    async def run_daily_schedule(self) -> List[ScheduleDecision]:
        """
        Start or schedule frequent polling for every league with a not-final game today.

        Leagues without such games are left alone: a poll task they may still
        have keeps running until its own all-final check stops it.

        Returns:
            One decision per league that has not-final games today
        """
        logger.info("Running daily schedule check")
        window = today_window(self.tz, self.clock())
        try:
            rows = await asyncio.to_thread(self.db_client.get_not_final_games_today, window)
        except Exception as e:
            logger.error("Daily schedule check aborted: failed to read games", extra={
                "error": str(e)
            }, exc_info=True)
            return []

        if not rows:
            logger.info("No upcoming games today. Nothing to schedule.", extra={
                "day_start": window.start.isoformat()
            })
            self.last_decisions = []
            return []

        schedules = plan_league_schedules(rows)
        decisions = decide_poll_starts(schedules, self.clock(), self.poll_lead)
        logger.info("Leagues with upcoming or in-progress games", extra={
            "leagues": [d.league for d in decisions],
            "games": len(rows)
        })

        for decision in decisions:
            schedule = schedules[decision.league]
            if decision.start_now:
                logger.info("Starting frequent poll now", extra={
                    "league": decision.league,
                    "earliest_start": schedule.earliest_start.isoformat(),
                    "has_live": schedule.has_live
                })
                await self.start_frequent_poll(decision.league)
            else:
                logger.info("Scheduling frequent poll", extra={
                    "league": decision.league,
                    "poll_start_time": decision.poll_start_time.isoformat()
                })
                await self._schedule_start(decision.league, decision.poll_start_time)

        self.last_decisions = decisions
        logger.info("Daily schedule check complete", extra={
            "active": self.active_leagues,
            "pending": self.pending_leagues
        })
        return decisions

    async def start_frequent_poll(self, league: str) -> PollTask:
        """Install and start a poll task for the league, replacing any existing one."""
        async with self._lock:
            self._drop_pending(league)
            return self._replace_task(league)

    async def cancel_poll(self, league: str) -> bool:
        """Stop a league's poll task and pending start timer. Returns True if either existed."""
        async with self._lock:
            had_pending = self._drop_pending(league)
            task = self._tasks.pop(league, None)
            if task is not None:
                task.cancel()
        return had_pending or task is not None

    async def shutdown(self) -> None:
        """Stop every poll task and start timer."""
        async with self._lock:
            tasks = list(self._tasks.values())
            pending = list(self._pending.values())
            self._tasks.clear()
            self._pending.clear()
        for timer in pending:
            timer.cancel()
        for task in tasks:
            task.abort()
        await asyncio.gather(*pending, *(t.wait() for t in tasks), return_exceptions=True)
        logger.info("Poll scheduler stopped", extra={"tasks_stopped": len(tasks)})

    def _replace_task(self, league: str) -> PollTask:
        # Caller holds self._lock
        existing = self._tasks.pop(league, None)
        if existing is not None:
            logger.info("Cancelling existing poll task before starting new", extra={"league": league})
            existing.cancel()
        task = PollTask(league, self._poll_league, self.poll_interval_seconds, self._on_task_finished)
        self._tasks[league] = task
        task.start()
        return task

    def _drop_pending(self, league: str) -> bool:
        # Caller holds self._lock
        timer = self._pending.pop(league, None)
        if timer is None:
            return False
        if timer is not asyncio.current_task():
            timer.cancel()
        return True

    async def _schedule_start(self, league: str, at: datetime) -> None:
        async with self._lock:
            self._drop_pending(league)
            delay = seconds_until(at, self.clock())
            self._pending[league] = asyncio.create_task(
                self._start_after(league, delay), name=f"poll-start:{league}"
            )

    async def _start_after(self, league: str, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if self._pending.get(league) is not asyncio.current_task():
                return
            del self._pending[league]
            logger.info("Poll start time reached", extra={"league": league})
            self._replace_task(league)

    async def _on_task_finished(self, task: PollTask) -> None:
        async with self._lock:
            if self._tasks.get(task.league) is task:
                del self._tasks[task.league]
        logger.info("Frequent poll stopped", extra={
            "league": task.league,
            "firings": task.firings
        })

    async def _poll_league(self, league: str) -> bool:
        """
        One firing: ingest the league, broadcast, then check whether every game
        today is final.

        Returns:
            True when the league has no not-final games left today
        """
        async with self.league_lock(league):
            logger.info("Frequent poll", extra={"league": league})
            try:
                result = await self.ingestor.ingest([league])
            except Exception as e:
                logger.error("Frequent poll ingest failed", extra={
                    "league": league,
                    "error": str(e)
                }, exc_info=True)
                return False

            if not result.succeeded_for(league):
                # Fetch failure already logged by the ingestor; try again next tick
                return False

            try:
                await self.broadcaster.broadcast_updated_games(league)
            except Exception as e:
                logger.error("Broadcast after poll failed", extra={
                    "league": league,
                    "error": str(e)
                }, exc_info=True)

            try:
                remaining = await asyncio.to_thread(
                    self.db_client.count_non_final_today_for_league,
                    league,
                    today_window(self.tz, self.clock()),
                )
            except Exception as e:
                logger.error("Final-state check failed", extra={
                    "league": league,
                    "error": str(e)
                }, exc_info=True)
                return False

            if remaining == 0:
                logger.info("All games final, cancelling frequent poll", extra={"league": league})
                return True
            return False
