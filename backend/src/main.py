#!/usr/bin/env python3
"""
Live Scoreboard Service - Main Entry Point

Serves the games API and live-update WebSocket, and keeps the games table
in sync with ESPN: hourly and daily full refreshes plus per-league frequent
polling while a league has live or upcoming games today.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Load .env from backend directory before Config() is used
from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import uvicorn

from config import Config
from utils.logger import setup_logging

logger = logging.getLogger(__name__)


class ScoreboardService:
    """Main service class: runs the API server, which owns the refresh orchestrator."""

    def __init__(self):
        self.config = Config()
        self.server = None

    async def start(self):
        """Start the service and block until uvicorn exits."""
        logger.info("Starting Live Scoreboard Service", extra={
            "version": "1.0.0",
            "environment": self.config.environment,
            "port": self.config.api_port,
            "ws_path": self.config.ws_path
        })

        # uvicorn handles SIGINT/SIGTERM; the app lifespan stops the orchestrator
        self.server = uvicorn.Server(uvicorn.Config(
            "api.main:app",
            host=self.config.api_host,
            port=self.config.api_port,
            log_config=None,
        ))
        try:
            await self.server.serve()
        except Exception as e:
            logger.error("Fatal error in scoreboard service", extra={
                "error": str(e),
                "error_type": type(e).__name__
            }, exc_info=True)
            raise


async def main():
    """Main entry point."""
    setup_logging()

    service = ScoreboardService()
    try:
        await service.start()
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
    except Exception as e:
        logger.error("Service crashed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
