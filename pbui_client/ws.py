"""Opening the raw WebSocket for the PBUI realtime transport."""

from __future__ import annotations

from urllib.parse import urlsplit

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from .errors import (
    PbuiConnectionError,
    PbuiHandshakeError,
    PbuiTimeout,
)

WS_SCHEMES = ("ws", "wss")
USER_AGENT = "pbui-client"


async def connect_websocket(
    url: str,
    *,
    ping_interval: int | None = None,
    timeout: float = 5.0,
) -> ClientConnection:
    """Open a single WebSocket connection to ``url``.

    The library never reconnects on its own; the connection manager owns
    retries. Protocol pings are off by default since the client sends its
    own ``ping`` events.

    Args:
        url: ws:// or wss:// endpoint
        ping_interval: Interval for protocol ping frames, None to disable
        timeout: Opening handshake timeout in seconds

    Raises:
        PbuiHandshakeError: URL is not ws(s) or the server refused the upgrade
        PbuiTimeout: Handshake did not finish within ``timeout``
        PbuiConnectionError: Network failure
    """
    scheme = urlsplit(url).scheme
    if scheme not in WS_SCHEMES:
        raise PbuiHandshakeError(f"Unsupported WebSocket scheme {scheme!r} in {url}")

    try:
        return await websockets.connect(
            url,
            open_timeout=timeout,
            ping_interval=ping_interval,
            close_timeout=2,
            max_size=None,
            user_agent_header=USER_AGENT,
        )
    except TimeoutError as err:
        raise PbuiTimeout(f"WebSocket connection to {url} timed out") from err
    except InvalidURI as err:
        raise PbuiHandshakeError(f"Invalid WebSocket URL: {url}") from err
    except InvalidHandshake as err:
        raise PbuiHandshakeError(f"WebSocket handshake with {url} failed: {err}") from err
    except (OSError, WebSocketException) as err:
        raise PbuiConnectionError(f"WebSocket connection to {url} failed") from err
