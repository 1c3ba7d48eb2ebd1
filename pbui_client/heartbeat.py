"""Keep-alive signal for the realtime transport."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .errors import PbuiClientError
from .protocol import EVENT_PING

if TYPE_CHECKING:
    from .ws_client import PbuiWsClient

_LOGGER = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 30.0


class HeartbeatMonitor:
    """Emit a ``ping`` event on a fixed interval while connected.

    Fire-and-forget: no reply is expected or tracked, so a silent peer is
    only noticed once the transport itself reports the disconnect.
    """

    def __init__(self, interval: float = DEFAULT_HEARTBEAT_INTERVAL) -> None:
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, transport: PbuiWsClient) -> None:
        """Start pinging ``transport``; no-op if already running."""
        if self.active:
            return
        self._task = asyncio.create_task(self._run(transport))

    def stop(self) -> None:
        """Cancel the heartbeat timer, if any."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, transport: PbuiWsClient) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not transport.connected:
                    continue
                try:
                    await transport.emit(EVENT_PING)
                except PbuiClientError as err:
                    _LOGGER.debug("Heartbeat send failed: %s", err)
        except asyncio.CancelledError:
            _LOGGER.debug("Heartbeat cancelled")
