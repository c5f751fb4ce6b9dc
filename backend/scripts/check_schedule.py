#!/usr/bin/env python3
"""
Dry run of the daily schedule check.

Reads today's not-final games and prints, per league, when frequent polling
would start. Nothing is ingested and no poll task is started.

Usage:
    python3 scripts/check_schedule.py
"""

import sys
from datetime import timedelta
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir / "src"))

from config import Config
from database.supabase_client import SupabaseClient
from refresh.scheduler import decide_poll_starts, plan_league_schedules
from utils.time_window import today_window, utc_now


def main():
    config = Config()
    db = SupabaseClient(config)
    now = utc_now()
    window = today_window(config.tz, now)

    print(f"📅 Today ({config.schedule_timezone}): {window.start.isoformat()} -> {window.end.isoformat()}")

    rows = db.get_not_final_games_today(window)
    if not rows:
        print("❌ No upcoming games today. Nothing to schedule.")
        return

    schedules = plan_league_schedules(rows)
    decisions = decide_poll_starts(schedules, now, timedelta(minutes=config.poll_lead_minutes))
    for decision in decisions:
        schedule = schedules[decision.league]
        local_start = decision.poll_start_time.astimezone(config.tz).strftime("%H:%M %Z")
        live = " (live game)" if schedule.has_live else ""
        if decision.start_now:
            print(f"🕒 {decision.league}: poll now{live}")
        else:
            print(f"🕒 {decision.league}: poll from {local_start}")


if __name__ == "__main__":
    main()
