"""Protocol helpers for PBUI realtime event frames.

Every WebSocket text frame carries exactly one named event:

    {"event": "state-updated", "data": {...}}

The lifecycle events (connect, connect_error, disconnect) never travel on
the wire; the client synthesises them from the transport state.
"""

from __future__ import annotations

from typing import Any, Final
from urllib.parse import urlsplit, urlunsplit

EVENT_CONNECT: Final = "connect"
EVENT_CONNECT_ERROR: Final = "connect_error"
EVENT_DISCONNECT: Final = "disconnect"
EVENT_INITIAL_STATE: Final = "initial-state"
EVENT_STATE_UPDATED: Final = "state-updated"
EVENT_PING: Final = "ping"

# Custom events forwarded to the subscription registry and the state cache.
STATE_EVENTS: Final[tuple[str, ...]] = (EVENT_INITIAL_STATE, EVENT_STATE_UPDATED)

_WS_SCHEMES: Final = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def build_event_frame(event: str, data: Any = None) -> dict[str, Any]:
    """Build an outbound event frame.

    Args:
        event: Event name, must be non-empty.
        data: JSON-serializable payload.

    Returns:
        Frame dict ready for JSON encoding.
    """
    if not event:
        raise ValueError("event name is required")
    return {"event": event, "data": data}


def parse_event_frame(frame: Any) -> tuple[str, Any]:
    """Extract ``(event, data)`` from a decoded inbound frame.

    Raises ValueError if the frame is not an object with a string event name.
    """
    if not isinstance(frame, dict):
        raise ValueError("Event frame must be a JSON object")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise ValueError("Event frame is missing an event name")
    return event, frame.get("data")


def websocket_url(api_base: str, path: str = "/ws") -> str:
    """Derive the realtime endpoint from the REST API base URL."""
    parts = urlsplit(api_base)
    scheme = _WS_SCHEMES.get(parts.scheme)
    if scheme is None:
        raise ValueError(f"Cannot derive a WebSocket URL from scheme {parts.scheme!r}")
    if path and not path.startswith("/"):
        path = f"/{path}"
    return urlunsplit((scheme, parts.netloc, parts.path + path, parts.query, ""))
