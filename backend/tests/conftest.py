"""Shared fixtures: in-memory game store, fake sockets and a test config."""

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest

from config import Config
from models import sort_games


def make_game(league, external_id, state="pre", start="2025-01-05T18:00:00+00:00", **extra):
    game = {
        "league": league,
        "external_game_id": str(external_id),
        "link": f"https://www.espn.com/{league.lower()}/game/_/gameId/{external_id}",
        "home_team_name": "Home",
        "home_team_logo": None,
        "home_team_score": 0,
        "away_team_name": "Away",
        "away_team_logo": None,
        "away_team_score": 0,
        "start_time": start,
        "short_detail": "N/A",
        "state": state,
    }
    game.update(extra)
    return game


class FakeStore:
    """Stands in for SupabaseClient: same sync methods, rows kept in a list."""

    def __init__(self, games=None):
        self.games: List[Dict[str, Any]] = list(games or [])
        self.fail_reads = False
        self.reads = 0

    def get_all_games(self):
        self.reads += 1
        if self.fail_reads:
            raise RuntimeError("database unavailable")
        return sort_games(self.games)

    def get_games_by_league(self, league_name):
        if self.fail_reads:
            raise RuntimeError("database unavailable")
        rows = [g for g in self.games if g["league"] == league_name]
        return sorted(rows, key=lambda g: (g["start_time"], g["external_game_id"]))


class FakeWebSocket:
    """Records every JSON frame sent to it; optionally fails on send."""

    def __init__(self, fail=False):
        self.sent: List[Dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, payload):
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(payload)

    def of_type(self, message_type):
        return [m for m in self.sent if m["type"] == message_type]


@pytest.fixture
def config():
    return Config(supabase_url="https://example.supabase.co", supabase_key="test-key")


@pytest.fixture
def now():
    # 12:00 in America/Chicago
    return datetime(2025, 1, 5, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_games():
    return [
        make_game("NFL", 1, state="pre", start="2025-01-05T21:00:00+00:00"),
        make_game("NBA", 2, state="in", start="2025-01-05T17:00:00+00:00"),
        make_game("NFL", 3, state="post", start="2025-01-05T15:00:00+00:00"),
        make_game("NHL", 4, state="in", start="2025-01-05T16:30:00+00:00"),
        make_game("NBA", 5, state="post", start="2025-01-05T14:00:00+00:00"),
    ]
