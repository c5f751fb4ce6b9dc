# test_games.py

from unittest.mock import AsyncMock, MagicMock, call

import httpx
import pytest

from config import Config
from espn_api.client import ESPNAPIClient, ESPNAPIError
from refresh.games import GameDataRefresher, normalize_event


def espn_event(event_id="401547417", state="in", home_score="21", away_score="14"):
    return {
        "id": event_id,
        "date": "2025-01-05T18:00Z",
        "links": [{"href": f"https://www.espn.com/nfl/game/_/gameId/{event_id}"}],
        "status": {"type": {"state": state, "shortDetail": "Q3 8:12"}},
        "competitions": [{
            "competitors": [
                {"homeAway": "home", "score": home_score, "team": {"shortDisplayName": "Chiefs", "logo": "kc.png"}},
                {"homeAway": "away", "score": away_score, "team": {"shortDisplayName": "Bills", "logo": "buf.png"}},
            ]
        }],
    }


def test_normalize_event():
    row = normalize_event(espn_event(), "NFL")
    assert row == {
        "league": "NFL",
        "external_game_id": "401547417",
        "link": "https://www.espn.com/nfl/game/_/gameId/401547417",
        "home_team_name": "Chiefs",
        "home_team_logo": "kc.png",
        "home_team_score": 21,
        "away_team_name": "Bills",
        "away_team_logo": "buf.png",
        "away_team_score": 14,
        "start_time": "2025-01-05T18:00:00+00:00",
        "short_detail": "Q3 8:12",
        "state": "in",
    }


def test_normalize_event_defaults():
    event = {"id": 99, "date": "2025-01-05T18:00Z", "competitions": [{"competitors": [{}]}]}
    row = normalize_event(event, "MLS")
    assert row["external_game_id"] == "99"
    assert row["home_team_name"] == "TBD"
    assert row["away_team_name"] == "TBD"
    assert row["home_team_score"] == 0
    assert row["link"] is None
    assert row["state"] == "N/A"
    assert row["short_detail"] == "N/A"


def test_normalize_event_score_object():
    event = espn_event(home_score={"value": 3.0, "displayValue": "3"}, away_score="")
    row = normalize_event(event, "NHL")
    assert row["home_team_score"] == 3
    assert row["away_team_score"] == 0


@pytest.mark.parametrize("event", [
    {"date": "2025-01-05T18:00Z"},
    {"id": "1"},
    {"id": "1", "date": "TBD"},
])
def test_normalize_event_without_identity_or_date(event):
    assert normalize_event(event, "NFL") is None


@pytest.fixture
def espn_client():
    client = MagicMock()
    client.get_scoreboard = AsyncMock(return_value=[espn_event()])
    return client


@pytest.fixture
def db():
    return MagicMock()


@pytest.mark.asyncio
async def test_fetch_failure_does_not_abort_other_leagues(espn_client, db):
    async def scoreboard(slug):
        if slug == "basketball/nba":
            raise ESPNAPIError("Request failed after 3 retries: 503")
        return [espn_event()]

    espn_client.get_scoreboard.side_effect = scoreboard
    refresher = GameDataRefresher(espn_client, db)

    result = await refresher.ingest(["NFL", "NBA", "NHL"])

    assert result.succeeded == {"NFL": 1, "NHL": 1}
    assert "NBA" in result.failed
    assert not result.ok
    assert db.upsert_games.call_count == 2
    db.clear_leagues.assert_not_called()


@pytest.mark.asyncio
async def test_replace_clears_only_fetched_leagues(espn_client, db):
    async def scoreboard(slug):
        if slug == "hockey/nhl":
            raise ESPNAPIError("timeout")
        return []

    espn_client.get_scoreboard.side_effect = scoreboard
    refresher = GameDataRefresher(espn_client, db)

    await refresher.ingest(["NFL", "NHL"], replace=True)

    db.clear_leagues.assert_called_once_with(["NFL"])


@pytest.mark.asyncio
async def test_unknown_league_is_marked_failed(espn_client, db):
    result = await GameDataRefresher(espn_client, db).ingest(["XFL"])
    assert result.failed == {"XFL": "unknown league"}
    espn_client.get_scoreboard.assert_not_called()


@pytest.mark.asyncio
async def test_storage_error_propagates(espn_client, db):
    db.upsert_games.side_effect = RuntimeError("connection reset")
    with pytest.raises(RuntimeError):
        await GameDataRefresher(espn_client, db).ingest(["NFL", "NBA"])
    assert espn_client.get_scoreboard.await_args_list == [call("football/nfl")]


@pytest.mark.asyncio
async def test_ingest_is_repeatable(espn_client, db):
    refresher = GameDataRefresher(espn_client, db)
    await refresher.ingest(["NFL"])
    await refresher.ingest(["NFL"])
    first, second = db.upsert_games.call_args_list
    assert first == second


@pytest.mark.asyncio
async def test_transport_error_skips_only_that_league(db):
    config = Config(
        supabase_url="https://example.supabase.co",
        supabase_key="test-key",
        max_retries=1,
        retry_backoff_base=0.0,
        min_request_interval=0.0,
    )

    def handler(request):
        if "football/nfl" in request.url.path:
            raise httpx.RemoteProtocolError("Server disconnected without sending a response", request=request)
        return httpx.Response(200, json={"events": [espn_event("501")]})

    espn = ESPNAPIClient(config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    try:
        result = await GameDataRefresher(espn, db).ingest(["NFL", "NBA"])
    finally:
        await espn.close()

    assert "NFL" in result.failed
    assert result.succeeded == {"NBA": 1}


@pytest.mark.asyncio
async def test_malformed_events_are_skipped(espn_client, db):
    espn_client.get_scoreboard.return_value = [
        "not an event",
        {"id": "2", "date": "2025-01-05T18:00Z", "links": ["https://espn.com"]},
        espn_event("3"),
    ]
    result = await GameDataRefresher(espn_client, db).ingest(["NFL"])

    assert result.succeeded == {"NFL": 1}
    [rows] = db.upsert_games.call_args.args
    assert [r["external_game_id"] for r in rows] == ["3"]
