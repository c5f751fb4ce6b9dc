#!/usr/bin/env python3
"""Run the games API + live-update WebSocket server (starts the poll scheduler too)."""
import os
import sys
from pathlib import Path

backend = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend / "src"))
os.chdir(backend)

import uvicorn

from utils.logger import setup_logging

if __name__ == "__main__":
    setup_logging()
    port = int(os.getenv("API_PORT", "4000"))
    uvicorn.run(
        "api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=port,
        log_config=None,
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )
