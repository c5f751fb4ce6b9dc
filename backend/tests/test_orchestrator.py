# test_orchestrator.py

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from refresh.games import IngestResult
from refresh.orchestrator import RefreshOrchestrator


@pytest_asyncio.fixture
async def orchestrator(config):
    orch = RefreshOrchestrator(config, db_client=MagicMock(), espn_client=AsyncMock())
    await orch.initialize()
    orch.game_refresher.ingest = AsyncMock(return_value=IngestResult(succeeded={"NFL": 4}))
    orch.scheduler.run_daily_schedule = AsyncMock(return_value=[])
    orch.broadcaster.broadcast_updated_games = AsyncMock()
    yield orch
    await orch.shutdown()


@pytest.mark.asyncio
async def test_schedule_cycle_reingests_then_schedules(orchestrator):
    await orchestrator.run_schedule_cycle("hourly")

    orchestrator.game_refresher.ingest.assert_awaited_once_with(orchestrator.config.leagues, replace=True)
    orchestrator.broadcaster.broadcast_updated_games.assert_awaited_once_with()
    orchestrator.scheduler.run_daily_schedule.assert_awaited_once()
    assert orchestrator.last_refresh_at is not None


@pytest.mark.asyncio
async def test_schedule_cycle_survives_ingest_failure(orchestrator):
    orchestrator.game_refresher.ingest.side_effect = RuntimeError("supabase down")

    await orchestrator.run_schedule_cycle("daily")

    orchestrator.broadcaster.broadcast_updated_games.assert_not_awaited()
    orchestrator.scheduler.run_daily_schedule.assert_awaited_once()


@pytest.mark.asyncio
async def test_schedule_cycle_survives_scheduler_failure(orchestrator):
    orchestrator.scheduler.run_daily_schedule.side_effect = RuntimeError("boom")
    await orchestrator.run_schedule_cycle("daily")
    orchestrator.game_refresher.ingest.assert_awaited_once()


@pytest.mark.asyncio
async def test_stats(orchestrator):
    stats = orchestrator.stats()
    assert stats["total_clients"] == 0
    assert stats["active_polls"] == []
    assert stats["pending_polls"] == []
    assert stats["last_refresh_at"] is None


@pytest.mark.asyncio
async def test_full_ingest_shares_poll_league_locks(orchestrator):
    assert orchestrator.game_refresher.league_lock("NFL") is orchestrator.scheduler.league_lock("NFL")
