"""WebSocket transport handle for the PBUI realtime service."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from .errors import NotConnectedError, PbuiClientError, PbuiConnectionError
from .protocol import build_event_frame
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_LOGGER = logging.getLogger(__name__)


class PbuiWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class PbuiWsMessage:
    """Normalized WebSocket message payload."""

    type: PbuiWsMessageType
    data: str | None = None


class PbuiWsClient:
    """Wrapper around the websockets library for one PBUI connection.

    An instance is a single transport handle: it is opened once, closed once,
    and never reopened. Raw event handlers registered with :meth:`on` belong
    to this handle and disappear with it.
    """

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None
        self._closed = False
        self._handlers: dict[str, list[Callable[[Any], Any]]] = {}

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = None,
        timeout: float = 5.0,
    ) -> None:
        """Connect to the service websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    @property
    def connected(self) -> bool:
        """True while the handle is open."""
        return self._ws is not None and not self._closed

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close()

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload to the websocket."""
        if not self.connected or self._ws is None:
            raise NotConnectedError("WebSocket is not connected")
        try:
            await self._ws.send(json.dumps(payload))
        except ConnectionClosed as err:
            raise PbuiConnectionError("WebSocket connection closed") from err

    async def emit(self, event: str, data: Any = None) -> None:
        """Send a named event frame."""
        await self.send_json(build_event_frame(event, data))

    def on(self, event: str, handler: Callable[[Any], Any]) -> None:
        """Register a raw handler for ``event`` on this handle."""
        self._handlers.setdefault(event, []).append(handler)

    def off(self) -> None:
        """Drop every raw handler."""
        self._handlers.clear()

    def dispatch(self, event: str, data: Any) -> None:
        """Invoke raw handlers registered for ``event``."""
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(data)
            except Exception:
                _LOGGER.exception("Raw handler for %s failed", event)

    def __aiter__(self) -> AsyncIterator[PbuiWsMessage]:
        if self._ws is None:
            raise NotConnectedError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[PbuiWsMessage]:
        if self._ws is None:
            raise NotConnectedError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                if isinstance(msg, bytes):
                    continue
                yield PbuiWsMessage(PbuiWsMessageType.TEXT, msg)
        except ConnectionClosed as err:
            self._closed = True
            yield PbuiWsMessage(PbuiWsMessageType.CLOSED, str(err) or None)
        except Exception as err:
            self._closed = True
            yield PbuiWsMessage(PbuiWsMessageType.ERROR, str(err) or None)
        else:
            # Normal iteration completion means the peer closed gracefully.
            self._closed = True
            yield PbuiWsMessage(PbuiWsMessageType.CLOSED)

    @staticmethod
    def decode_json(message: PbuiWsMessage) -> Any:
        """Decode a TEXT message payload into JSON."""
        if message.type is not PbuiWsMessageType.TEXT:
            raise PbuiClientError("Only TEXT messages can be decoded")
        if not isinstance(message.data, str):
            raise PbuiClientError("Message data is not a string")
        return json.loads(message.data)
