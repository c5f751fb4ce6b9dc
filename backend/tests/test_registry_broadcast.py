# test_registry_broadcast.py

import pytest

from conftest import FakeStore, FakeWebSocket
from live.broadcast import BroadcastEngine
from live.registry import ConnectionRegistry


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def store(sample_games):
    return FakeStore(sample_games)


@pytest.fixture
def engine(registry, store):
    return BroadcastEngine(registry, store)


# --- Registry ---


@pytest.mark.asyncio
async def test_register_starts_unfiltered(registry):
    connection = await registry.register(FakeWebSocket())
    assert connection.filters == ()
    assert registry.is_registered(connection.connection_id)
    assert registry.stats() == {"total_clients": 1, "clients_with_filters": 0}


@pytest.mark.asyncio
async def test_update_filters_replaces_selection(registry):
    connection = await registry.register(FakeWebSocket())
    await registry.update_filters(connection.connection_id, ["NFL", "state_in"])
    await registry.update_filters(connection.connection_id, ["NBA"])
    assert registry.get(connection.connection_id).filters == ("NBA",)
    assert registry.stats()["clients_with_filters"] == 1


@pytest.mark.asyncio
async def test_update_filters_on_unknown_connection(registry):
    assert await registry.update_filters("missing", ["NFL"]) is None


@pytest.mark.asyncio
async def test_unregister_is_idempotent(registry):
    connection = await registry.register(FakeWebSocket())
    assert await registry.unregister(connection.connection_id) is True
    assert await registry.unregister(connection.connection_id) is False
    assert len(registry) == 0


# --- Broadcast ---


@pytest.mark.asyncio
async def test_refresh_all_applies_each_clients_filters(registry, engine):
    nfl_ws, all_ws = FakeWebSocket(), FakeWebSocket()
    nfl = await registry.register(nfl_ws)
    await registry.register(all_ws)
    await registry.update_filters(nfl.connection_id, ["NFL"])

    assert await engine.refresh_all() == 2

    [nfl_msg] = nfl_ws.sent
    [all_msg] = all_ws.sent
    assert nfl_msg["type"] == "filtered_data"
    assert nfl_msg["is_refresh"] is True
    assert nfl_msg["filters"] == ["NFL"]
    assert {g["league"] for g in nfl_msg["data"]} == {"NFL"}
    assert all_msg["count"] == 5
    assert all_msg["data"][0]["state"] == "in"


@pytest.mark.asyncio
async def test_refresh_reads_store_once_per_cycle(registry, engine, store):
    for _ in range(3):
        await registry.register(FakeWebSocket())
    await engine.refresh_all()
    assert store.reads == 1


@pytest.mark.asyncio
async def test_failed_send_drops_only_that_connection(registry, engine):
    good_ws, bad_ws = FakeWebSocket(), FakeWebSocket(fail=True)
    good = await registry.register(good_ws)
    bad = await registry.register(bad_ws)

    delivered = await engine.refresh_all()

    assert delivered == 1
    assert len(good_ws.sent) == 1
    assert registry.is_registered(good.connection_id)
    assert not registry.is_registered(bad.connection_id)


@pytest.mark.asyncio
async def test_notify_without_league_says_all(registry, engine):
    ws = FakeWebSocket()
    await registry.register(ws)
    await engine.notify_games_updated()
    assert ws.sent[0]["type"] == "games_updated"
    assert ws.sent[0]["league"] == "ALL"


@pytest.mark.asyncio
async def test_broadcast_sends_notice_then_refresh(registry, engine):
    ws = FakeWebSocket()
    await registry.register(ws)
    await engine.broadcast_updated_games("NFL")
    assert [m["type"] for m in ws.sent] == ["games_updated", "filtered_data"]
    assert ws.sent[0]["league"] == "NFL"


@pytest.mark.asyncio
async def test_broadcast_with_no_clients_skips_store(engine, store):
    await engine.broadcast_updated_games()
    assert store.reads == 0


@pytest.mark.asyncio
async def test_refresh_skipped_when_store_fails(registry, engine, store):
    ws = FakeWebSocket()
    await registry.register(ws)
    store.fail_reads = True

    assert await engine.refresh_all() == 0
    assert ws.sent == []
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_snapshot_store_failure_sends_error(registry, engine, store):
    ws = FakeWebSocket()
    connection = await registry.register(ws)
    store.fail_reads = True

    await engine.send_snapshot(connection, ["NFL"])
    assert ws.sent[0]["type"] == "error"
    assert ws.sent[0]["message"] == "Failed to load games"


@pytest.mark.asyncio
async def test_snapshot_is_not_tagged_as_refresh(registry, engine):
    ws = FakeWebSocket()
    connection = await registry.register(ws)
    await engine.send_snapshot(connection, ["state_post"])
    [message] = ws.sent
    assert "is_refresh" not in message
    assert message["count"] == 2
    assert message["message"] == "Found 2 games matching your filters"


@pytest.mark.asyncio
async def test_send_to_unregistered_connection_is_skipped(registry, engine):
    ws = FakeWebSocket()
    connection = await registry.register(ws)
    await registry.unregister(connection.connection_id)
    assert await engine.send_to(connection, {"type": "echo"}) is False
    assert ws.sent == []
