"""
Configuration management for the Live Scoreboard Service.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from datetime import time
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leagues import LEAGUE_CONFIGS, LEAGUE_NAMES


@dataclass
class Config:
    """Application configuration."""

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Supabase Configuration
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_KEY", "")
    supabase_service_key: str = os.getenv("SUPABASE_SERVICE_KEY", "")
    games_table: str = os.getenv("GAMES_TABLE", "games")

    # ESPN API Configuration
    espn_api_base_url: str = os.getenv(
        "ESPN_API_BASE_URL", "https://site.api.espn.com/apis/site/v2/sports"
    )

    # Rate Limiting
    max_requests_per_minute: int = int(os.getenv("MAX_REQUESTS_PER_MINUTE", "60"))
    min_request_interval: float = float(os.getenv("MIN_REQUEST_INTERVAL", "0.25"))

    # Retry Configuration
    max_retries: int = int(os.getenv("MAX_RETRIES", "3"))
    retry_backoff_base: float = float(os.getenv("RETRY_BACKOFF_BASE", "1.0"))
    max_retry_delay: int = int(os.getenv("MAX_RETRY_DELAY", "60"))

    # Polling (in seconds / minutes)
    # Per-league frequent poll while that league has live or upcoming games today
    poll_interval_seconds: int = int(os.getenv("POLL_INTERVAL_SECONDS", "60"))
    # Frequent polling starts this many minutes before the league's first game of the day
    poll_lead_minutes: int = int(os.getenv("POLL_LEAD_MINUTES", "15"))

    # "Today" is the calendar day in this timezone
    schedule_timezone: str = os.getenv("SCHEDULE_TIMEZONE", "America/Chicago")
    # Daily schedule check, local time in schedule_timezone (HH:MM)
    daily_check_time: str = os.getenv("DAILY_CHECK_TIME", "00:05")
    # Hourly safety-net check at the top of every hour
    hourly_check_enabled: bool = os.getenv("HOURLY_CHECK_ENABLED", "true").lower() in ("1", "true", "yes")

    # Leagues to ingest (comma-separated LEAGUES env; empty = all known leagues)
    leagues: List[str] = field(default_factory=list)

    # API / WebSocket server
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "4000"))
    ws_path: str = os.getenv("WS_PATH", "/ws")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")  # json or text

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.schedule_timezone)

    @property
    def daily_check_at(self) -> time:
        return time.fromisoformat(self.daily_check_time)

    def validate(self):
        """Validate configuration."""
        errors = []

        if not self.supabase_url:
            errors.append("SUPABASE_URL is required")
        if not self.supabase_key:
            errors.append("SUPABASE_KEY is required")
        if self.poll_interval_seconds <= 0:
            errors.append("POLL_INTERVAL_SECONDS must be positive")
        if self.poll_lead_minutes < 0:
            errors.append("POLL_LEAD_MINUTES must not be negative")

        try:
            ZoneInfo(self.schedule_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown SCHEDULE_TIMEZONE: {self.schedule_timezone}")

        try:
            time.fromisoformat(self.daily_check_time)
        except ValueError:
            errors.append(f"DAILY_CHECK_TIME must be HH:MM, got {self.daily_check_time!r}")

        unknown = [name for name in self.leagues if name not in LEAGUE_NAMES]
        if unknown:
            errors.append(f"Unknown leagues in LEAGUES: {', '.join(unknown)}")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

        return True

    def __post_init__(self):
        """Validate after initialization."""
        if not self.leagues:
            raw_list = os.getenv("LEAGUES")
            names: List[str] = []
            if raw_list:
                for s in raw_list.split(","):
                    s = s.strip().upper()
                    if s and s not in names:
                        names.append(s)
            self.leagues = names if names else [cfg.name for cfg in LEAGUE_CONFIGS]
        self.validate()
