"""High-level PBUI client.

Usage:
    async with PbuiClient() as client:
        await client.connect()
        await client.subscribe("state-updated", on_state)
        state = await client.state.get()
        await client.state.update({"abc123": "cleared"}, 2)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import IO, Any

import aiohttp
import pydantic

from .connection import ConnectionManager
from .errors import ValidationError
from .events import EventRouter, Listener
from .http import PbuiHttpClient
from .settings import PbuiSettings
from .state import StateCache
from .tournaments import Tournaments
from .ws_client import PbuiWsClient

_LOGGER = logging.getLogger(__name__)


class PbuiClient:
    """Realtime connection, state cache and REST helpers for one service."""

    def __init__(
        self,
        settings: PbuiSettings | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport_factory: Callable[[], PbuiWsClient] = PbuiWsClient,
    ) -> None:
        self.settings = settings or PbuiSettings()
        logging.getLogger(__package__).setLevel(self.settings.log_level)
        self._http = PbuiHttpClient(self.settings, session)
        self.events = EventRouter()
        self.state = StateCache(self._http)
        self.tournaments = Tournaments(self._http)
        self.connection = ConnectionManager(
            self.settings,
            self.events,
            self.state,
            transport_factory=transport_factory,
        )

    async def __aenter__(self) -> PbuiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    def connect(self, url: str | None = None, **options: Any) -> asyncio.Future[None]:
        """Connect to the realtime service; see :meth:`ConnectionManager.connect`.

        Args:
            url: New API base URL to use from now on
            **options: timeout, path
        """
        if url:
            self.set_api_base(url)
        return self.connection.connect(**options)

    async def disconnect(self) -> None:
        await self.connection.disconnect()

    async def subscribe(self, event: str, listener: Listener) -> None:
        """Subscribe ``listener`` to ``event``; survives reconnects."""
        await self.connection.ensure_connected()
        self.events.subscribe(event, listener)

    async def unsubscribe(self, event: str, listener: Listener) -> None:
        await self.connection.ensure_connected()
        self.events.unsubscribe(event, listener)

    async def on(self, event: str, callback: Listener) -> None:
        """Attach a raw handler to the current transport only."""
        await self.connection.ensure_connected()
        transport = self.connection.transport
        if transport is not None:
            self.events.on(transport, event, callback)

    async def send(self, event: str, data: Any = None) -> None:
        await self.connection.send(event, data)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_api_base(self, url: str) -> None:
        """Point REST calls and future connections at ``url``.

        Raises:
            ValidationError: Not an absolute http(s) URL, or ends with /
        """
        try:
            self.settings.api_base = url
        except pydantic.ValidationError as err:
            message = err.errors()[0]["msg"] if err.errors() else str(err)
            raise ValidationError(f"Invalid API base {url!r}: {message}") from err
        _LOGGER.debug("API base set to %s", url)

    def set_auth_token(self, token: str) -> None:
        """Store the token used by privileged calls; it is not checked here."""
        self.settings.auth_token = token

    # -------------------------------------------------------------------------
    # REST
    # -------------------------------------------------------------------------

    async def upload(self, file: bytes | IO[bytes], filename: str) -> str:
        """Upload ``file`` and return the URL the service stored it under."""
        return await self._http.upload(file, filename)

    async def close(self) -> None:
        """Disconnect, drop subscriptions and release the HTTP session."""
        await self.connection.close()
        self.events.clear()
        await self._http.close()
