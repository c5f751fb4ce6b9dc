"""
Broadcast engine: pushes change notices and per-client filtered snapshots.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from database.supabase_client import SupabaseClient
from leagues import LEAGUE_NAMES
from live.filters import evaluate_filters
from live.messages import error_message, filtered_data_message, games_updated_message
from live.registry import ClientConnection, ConnectionRegistry

logger = logging.getLogger(__name__)


class BroadcastEngine:
    """Fans game data out to every registered connection."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        db_client: SupabaseClient,
        known_leagues: Iterable[str] = LEAGUE_NAMES
    ):
        self.registry = registry
        self.db_client = db_client
        self.known_leagues = frozenset(known_leagues)

    async def _load_games(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.db_client.get_all_games)

    async def send_to(self, connection: ClientConnection, payload: Dict[str, Any]) -> bool:
        """
        Send to one connection. A failed send unregisters the connection.

        Returns:
            True if the payload was handed to the transport
        """
        if not self.registry.is_registered(connection.connection_id):
            return False
        try:
            await connection.send(payload)
            return True
        except Exception as e:
            logger.warning("Send failed, dropping connection", extra={
                "connection_id": connection.connection_id,
                "message_type": payload.get("type"),
                "error": str(e)
            })
            await self.registry.unregister(connection.connection_id)
            return False

    async def _send_all(self, sends) -> int:
        results = await asyncio.gather(*sends)
        return sum(1 for delivered in results if delivered)

    async def notify_games_updated(self, league: Optional[str] = None) -> int:
        """
        Tell every connection that new data exists for a league (or "ALL").

        Returns:
            Number of connections the notice was delivered to
        """
        connections = self.registry.snapshot()
        if not connections:
            return 0
        payload = games_updated_message(league)
        return await self._send_all(self.send_to(c, payload) for c in connections)

    async def refresh_all(self) -> int:
        """
        Push each connection a fresh snapshot filtered by its stored selection.

        The store is read once per cycle; a read failure skips the cycle.

        Returns:
            Number of connections refreshed
        """
        connections = self.registry.snapshot()
        if not connections:
            return 0
        try:
            games = await self._load_games()
        except Exception as e:
            logger.error("Refresh push skipped: failed to read games", extra={
                "error": str(e),
                "clients": len(connections)
            }, exc_info=True)
            return 0

        def _payload(connection: ClientConnection) -> Dict[str, Any]:
            data = evaluate_filters(games, connection.filters, self.known_leagues)
            return filtered_data_message(data, connection.filters, is_refresh=True)

        return await self._send_all(self.send_to(c, _payload(c)) for c in connections)

    async def broadcast_updated_games(self, league: Optional[str] = None) -> None:
        """Change notice followed by a refresh push; run after every ingest cycle."""
        if len(self.registry) == 0:
            return
        logger.info("Broadcasting game updates", extra={
            "league": league or "ALL",
            "clients": len(self.registry)
        })
        await self.notify_games_updated(league)
        await self.refresh_all()

    async def send_snapshot(
        self,
        connection: ClientConnection,
        filters: Optional[Iterable[str]] = None,
        is_refresh: bool = False
    ) -> bool:
        """
        Point query: send one connection the games matching `filters`
        (default: the connection's stored selection).
        """
        tokens = list(connection.filters if filters is None else filters)
        try:
            games = await self._load_games()
        except Exception as e:
            logger.error("Snapshot failed: could not read games", extra={
                "connection_id": connection.connection_id,
                "error": str(e)
            }, exc_info=True)
            return await self.send_to(connection, error_message("Failed to load games"))
        data = evaluate_filters(games, tokens, self.known_leagues)
        return await self.send_to(connection, filtered_data_message(data, tokens, is_refresh=is_refresh))
