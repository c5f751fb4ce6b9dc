"""
Backend API: REST reads of the games table plus the live-update WebSocket.

The refresh orchestrator (ingest, poll scheduler, broadcast) runs inside the
app's lifespan so WebSocket clients and scheduled broadcasts share one event loop.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env and ensure backend/src is on path
backend_dir = Path(__file__).resolve().parent.parent.parent
load_dotenv(backend_dir / ".env")
sys.path.insert(0, str(backend_dir / "src"))

from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from config import Config
from database.supabase_client import SupabaseClient
from live.handler import LiveUpdateHandler
from refresh.orchestrator import RefreshOrchestrator

logger = logging.getLogger(__name__)

# Set by the lifespan, or by configure() in tests and scripts
_db: SupabaseClient | None = None
_orchestrator: RefreshOrchestrator | None = None
_live_handler: LiveUpdateHandler | None = None


def configure(
    db: SupabaseClient | None = None,
    orchestrator: RefreshOrchestrator | None = None,
    live_handler: LiveUpdateHandler | None = None,
) -> None:
    """Bind the store, orchestrator and WebSocket handler the endpoints use."""
    global _db, _orchestrator, _live_handler
    _db = db
    _orchestrator = orchestrator
    _live_handler = live_handler


def get_db() -> SupabaseClient:
    global _db
    if _db is None:
        _db = SupabaseClient(Config())
    return _db


@asynccontextmanager
async def lifespan(app: FastAPI):
    orchestrator = RefreshOrchestrator(Config())
    await orchestrator.initialize()
    configure(
        db=orchestrator.db_client,
        orchestrator=orchestrator,
        live_handler=orchestrator.live_handler,
    )
    run_task = asyncio.create_task(orchestrator.run(), name="refresh-orchestrator")
    try:
        yield
    finally:
        run_task.cancel()
        await asyncio.gather(run_task, return_exceptions=True)
        await orchestrator.shutdown()
        configure()


app = FastAPI(title="Live Scoreboard API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/games")
async def list_games():
    """All games, live first, then league, start time and external id."""
    try:
        return await asyncio.to_thread(get_db().get_all_games)
    except Exception as e:
        logger.error("Error fetching all games", extra={"error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@app.get("/api/games/{league}")
async def list_games_by_league(league: str):
    """One league's games by start time."""
    try:
        return await asyncio.to_thread(get_db().get_games_by_league, league)
    except Exception as e:
        logger.error("Error fetching league games", extra={"league": league, "error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Server Error")


@app.get("/api/connections")
def connection_stats():
    """Connected clients and poll scheduling state."""
    if _orchestrator is None:
        return {"total_clients": 0, "clients_with_filters": 0, "active_polls": [], "pending_polls": []}
    return _orchestrator.stats()


@app.websocket(Config.ws_path)
async def websocket_endpoint(ws: WebSocket) -> None:
    """
    Live game updates.

    Client messages:
    - {"type": "connection"}: unfiltered snapshot
    - {"type": "filter_request", "filters": [...]}: store filters, reply with a filtered snapshot
    - {"type": "user_message", "message": "..."}: echo
    - {"type": "test_request"}: synthetic payload

    Server messages: welcome, filtered_data (is_refresh on pushes), games_updated, echo, new_data, error
    """
    if _live_handler is None:
        await ws.close(code=1013, reason="service_unavailable")
        return
    await _live_handler.handle_connection(ws)


@app.get("/health")
def health():
    return {"status": "ok"}
