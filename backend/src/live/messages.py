"""
WebSocket message envelopes.

Inbound messages are JSON objects discriminated by "type"; every outbound
envelope carries a "type" and a millisecond "timestamp".
"""

import json
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class MessageType(str, Enum):
    """Inbound message types a client may send."""
    CONNECTION = "connection"
    FILTER_REQUEST = "filter_request"
    USER_MESSAGE = "user_message"
    TEST_REQUEST = "test_request"


class OutboundType(str, Enum):
    """Outbound message types the server sends."""
    WELCOME = "welcome"
    FILTERED_DATA = "filtered_data"
    GAMES_UPDATED = "games_updated"
    ECHO = "echo"
    NEW_DATA = "new_data"
    ERROR = "error"


class InvalidMessageError(ValueError):
    """Raised for inbound messages that cannot be dispatched."""
    pass


@dataclass
class InboundMessage:
    type: MessageType
    filters: List[str] = field(default_factory=list)
    text: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def parse_inbound(raw: str) -> InboundMessage:
    """
    Parse and validate one inbound frame.

    Raises:
        InvalidMessageError: Invalid JSON, non-object payload, unknown type or
            a filter_request whose filters are not a list, or a user_message
            without a string message
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InvalidMessageError("Invalid JSON format") from e

    if not isinstance(data, dict):
        raise InvalidMessageError("Message must be a JSON object")

    try:
        message_type = MessageType(data.get("type"))
    except ValueError as e:
        raise InvalidMessageError("Unknown message type") from e

    message = InboundMessage(type=message_type, raw=data)

    if message_type is MessageType.FILTER_REQUEST:
        filters = data.get("filters")
        if filters is None:
            filters = []
        if not isinstance(filters, list):
            raise InvalidMessageError("filters must be a list")
        # Non-string entries can never match a league or state
        message.filters = [f for f in filters if isinstance(f, str)]
    elif message_type is MessageType.USER_MESSAGE:
        text = data.get("message")
        if not isinstance(text, str):
            raise InvalidMessageError("message must be a string")
        message.text = text

    return message


def now_ms() -> int:
    return int(time.time() * 1000)


def welcome_message() -> Dict[str, Any]:
    return {
        "type": OutboundType.WELCOME.value,
        "message": "Connected to games API WebSocket",
        "timestamp": now_ms(),
    }


def filtered_data_message(
    games: List[Dict[str, Any]],
    filters: Sequence[str],
    is_refresh: bool = False
) -> Dict[str, Any]:
    """Snapshot envelope; is_refresh marks pushes that were not asked for."""
    if is_refresh:
        text = f"Updated: {len(games)} games match your current filters"
    elif filters:
        text = f"Found {len(games)} games matching your filters"
    else:
        text = f"Loaded {len(games)} total games"
    payload = {
        "type": OutboundType.FILTERED_DATA.value,
        "data": games,
        "filters": list(filters),
        "count": len(games),
        "message": text,
        "timestamp": now_ms(),
    }
    if is_refresh:
        payload["is_refresh"] = True
    return payload


def games_updated_message(league: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": OutboundType.GAMES_UPDATED.value,
        "league": league or "ALL",
        "message": f"New data available for {league} league" if league else "New game data available",
        "timestamp": now_ms(),
    }


def echo_message(text: str) -> Dict[str, Any]:
    return {
        "type": OutboundType.ECHO.value,
        "original_message": text,
        "message": f'Server received: "{text}"',
        "timestamp": now_ms(),
    }


def test_data_message() -> Dict[str, Any]:
    return {
        "type": OutboundType.NEW_DATA.value,
        "data": {
            "random_number": random.randint(0, 999),
            "server_time": datetime.now(timezone.utc).isoformat(),
            "message": "This is test data from the games API server",
        },
        "timestamp": now_ms(),
    }


def error_message(text: str) -> Dict[str, Any]:
    return {
        "type": OutboundType.ERROR.value,
        "message": text,
        "timestamp": now_ms(),
    }
