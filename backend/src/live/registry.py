"""
Registry of connected WebSocket clients and their current filter selections.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class ClientConnection:
    """A live connection and the filter tokens it last asked for."""
    websocket: Any
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    filters: Tuple[str, ...] = ()
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False, compare=False)

    async def send(self, payload: Dict[str, Any]) -> None:
        # One frame at a time per socket; broadcasts and replies may overlap
        async with self._send_lock:
            await self.websocket.send_json(payload)


class ConnectionRegistry:
    """
    Connected clients keyed by connection id.

    Mutations are serialized with an asyncio.Lock; broadcasts iterate over a
    snapshot so a client disconnecting mid-broadcast never breaks the loop.
    """

    def __init__(self):
        self._connections: Dict[str, ClientConnection] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    async def register(self, websocket: Any) -> ClientConnection:
        """Add a connection with an empty (unfiltered) selection."""
        connection = ClientConnection(websocket=websocket)
        async with self._lock:
            self._connections[connection.connection_id] = connection
            total = len(self._connections)
        logger.info("Client connected", extra={
            "connection_id": connection.connection_id,
            "total_clients": total
        })
        return connection

    async def update_filters(
        self,
        connection_id: str,
        filters: Iterable[str]
    ) -> Optional[ClientConnection]:
        """
        Replace a connection's filter selection.

        Returns:
            The updated connection, or None if it is no longer registered
        """
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return None
            connection.filters = tuple(filters)
        logger.debug("Client filters updated", extra={
            "connection_id": connection_id,
            "filters": list(connection.filters)
        })
        return connection

    async def unregister(self, connection_id: str) -> bool:
        """Remove a connection. Returns False if it was already gone."""
        async with self._lock:
            removed = self._connections.pop(connection_id, None)
            total = len(self._connections)
        if removed is not None:
            logger.info("Client disconnected", extra={
                "connection_id": connection_id,
                "total_clients": total
            })
        return removed is not None

    def get(self, connection_id: str) -> Optional[ClientConnection]:
        return self._connections.get(connection_id)

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def snapshot(self) -> List[ClientConnection]:
        """Point-in-time list of registered connections."""
        return list(self._connections.values())

    def stats(self) -> Dict[str, int]:
        connections = self.snapshot()
        return {
            "total_clients": len(connections),
            "clients_with_filters": sum(1 for c in connections if c.filters),
        }
