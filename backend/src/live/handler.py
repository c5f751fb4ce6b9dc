"""
Per-connection WebSocket session: registration, inbound dispatch and cleanup.
"""

import logging

from fastapi import WebSocket, WebSocketDisconnect

from live.broadcast import BroadcastEngine
from live.messages import (
    InboundMessage,
    InvalidMessageError,
    MessageType,
    echo_message,
    error_message,
    parse_inbound,
    test_data_message,
    welcome_message,
)
from live.registry import ClientConnection, ConnectionRegistry

logger = logging.getLogger(__name__)


class LiveUpdateHandler:
    """Runs one WebSocket session from accept to disconnect."""

    def __init__(self, registry: ConnectionRegistry, broadcaster: BroadcastEngine):
        self.registry = registry
        self.broadcaster = broadcaster

    async def handle_connection(self, websocket: WebSocket) -> None:
        """
        Accept the socket, register it with an empty filter, send the welcome
        envelope and an unfiltered snapshot, then dispatch messages until the
        client goes away. Binary frames are read as UTF-8 text.
        """
        await websocket.accept()
        connection = await self.registry.register(websocket)
        try:
            await connection.send(welcome_message())
            await self.broadcaster.send_snapshot(connection, ())
            while self.registry.is_registered(connection.connection_id):
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None:
                    try:
                        raw = (frame.get("bytes") or b"").decode("utf-8")
                    except UnicodeDecodeError:
                        await self.broadcaster.send_to(connection, error_message("Invalid JSON format"))
                        continue
                await self.handle_message(connection, raw)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning("WebSocket error", extra={
                "connection_id": connection.connection_id,
                "error": str(e),
                "error_type": type(e).__name__
            })
        finally:
            await self.registry.unregister(connection.connection_id)

    async def handle_message(self, connection: ClientConnection, raw: str) -> None:
        """Dispatch one inbound frame. Malformed input gets an error envelope; the socket stays open."""
        try:
            message = parse_inbound(raw)
        except InvalidMessageError as e:
            logger.info("Rejected client message", extra={
                "connection_id": connection.connection_id,
                "reason": str(e)
            })
            await self.broadcaster.send_to(connection, error_message(str(e)))
            return

        await self._dispatch(connection, message)

    async def _dispatch(self, connection: ClientConnection, message: InboundMessage) -> None:
        if message.type is MessageType.CONNECTION:
            # Client (re)starts its session: back to the unfiltered view
            await self.registry.update_filters(connection.connection_id, ())
            await self.broadcaster.send_snapshot(connection, ())
        elif message.type is MessageType.FILTER_REQUEST:
            logger.debug("Filter request", extra={
                "connection_id": connection.connection_id,
                "filters": message.filters
            })
            await self.registry.update_filters(connection.connection_id, message.filters)
            await self.broadcaster.send_snapshot(connection, message.filters)
        elif message.type is MessageType.USER_MESSAGE:
            await self.broadcaster.send_to(connection, echo_message(message.text))
        elif message.type is MessageType.TEST_REQUEST:
            await self.broadcaster.send_to(connection, test_data_message())
        else:
            await self.broadcaster.send_to(connection, error_message("Unknown message type"))
