#!/usr/bin/env python3
"""
Script to manually trigger a full game ingest.

This will:
1. Fetch the ESPN scoreboard for each league
2. Clear that league's rows and upsert the fresh games

Connected WebSocket clients are served by the API process, so they pick the
new rows up on its next broadcast; this script does not broadcast.

Usage:
    python3 scripts/refresh_data.py
    python3 scripts/refresh_data.py --league NFL --league NBA
    python3 scripts/refresh_data.py --upsert-only
"""

import argparse
import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv(Path(__file__).parent.parent / ".env")

# Add src directory to path
backend_dir = Path(__file__).parent.parent
src_dir = backend_dir / "src"
sys.path.insert(0, str(src_dir))

from config import Config
from database.supabase_client import SupabaseClient
from espn_api.client import ESPNAPIClient
from refresh.games import GameDataRefresher
from utils.logger import setup_logging


async def refresh_data(leagues, replace: bool):
    """Run a single ingest."""
    setup_logging()

    config = Config()
    leagues = [name.upper() for name in leagues] if leagues else config.leagues
    espn_client = ESPNAPIClient(config)
    refresher = GameDataRefresher(espn_client, SupabaseClient(config))

    print(f"🔄 Ingesting {', '.join(leagues)}...\n")

    try:
        result = await refresher.ingest(leagues, replace=replace)

        for league, count in result.succeeded.items():
            print(f"✅ {league}: {count} games")
        for league, error in result.failed.items():
            print(f"❌ {league}: {error}")

        if result.failed:
            sys.exit(1)

    except Exception as e:
        print(f"\n❌ Error during ingest: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    finally:
        await espn_client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manual ESPN -> games table ingest")
    parser.add_argument("--league", action="append", help="League name (repeatable); default: all configured")
    parser.add_argument("--upsert-only", action="store_true", help="Do not clear league rows before writing")
    args = parser.parse_args()
    asyncio.run(refresh_data(args.league, replace=not args.upsert_only))
