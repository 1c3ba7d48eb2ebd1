"""Realtime client for the PBUI tournament state service."""

__version__ = "0.1.0"

from .client import PbuiClient
from .connection import (
    Connection,
    ConnectionManager,
    ConnectionStatus,
    ReconnectPolicy,
)
from .errors import (
    HttpError,
    NotConnectedError,
    PbuiClientError,
    PbuiConnectionError,
    PbuiHandshakeError,
    PbuiTimeout,
    ReconnectExhaustedError,
    ResponseDecodeError,
    UnsupportedContentTypeError,
    ValidationError,
)
from .events import EventRouter, ListenerRegistry
from .heartbeat import HeartbeatMonitor
from .http import PbuiHttpClient
from .protocol import build_event_frame, parse_event_frame, websocket_url
from .settings import PbuiSettings
from .state import STATE_KEY, StateCache, deep_equal
from .tournaments import Tournaments
from .ws import connect_websocket
from .ws_client import PbuiWsClient, PbuiWsMessage, PbuiWsMessageType

__all__ = [
    "STATE_KEY",
    "Connection",
    "ConnectionManager",
    "ConnectionStatus",
    "EventRouter",
    "HeartbeatMonitor",
    "HttpError",
    "ListenerRegistry",
    "NotConnectedError",
    "PbuiClient",
    "PbuiClientError",
    "PbuiConnectionError",
    "PbuiHandshakeError",
    "PbuiHttpClient",
    "PbuiSettings",
    "PbuiTimeout",
    "PbuiWsClient",
    "PbuiWsMessage",
    "PbuiWsMessageType",
    "ReconnectExhaustedError",
    "ReconnectPolicy",
    "ResponseDecodeError",
    "StateCache",
    "Tournaments",
    "UnsupportedContentTypeError",
    "ValidationError",
    "__version__",
    "build_event_frame",
    "connect_websocket",
    "deep_equal",
    "parse_event_frame",
    "websocket_url",
]
