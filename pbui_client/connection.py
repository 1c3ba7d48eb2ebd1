"""Realtime connection lifecycle for the PBUI service.

This module owns the single transport handle of a client and everything
that happens to it:
- Opening the WebSocket and sharing one readiness future between callers
- Heartbeat start/stop
- Routing inbound frames into the event router and the state cache
- Exponential-backoff reconnection after unplanned disconnects

State machine::

    IDLE -> CONNECTING -> CONNECTED -> DISCONNECTING -> IDLE
    CONNECTING -> FAILED -> RECONNECTING -> CONNECTING
    FAILED -> EXHAUSTED (attempt ceiling reached, left only by connect())
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import (
    NotConnectedError,
    PbuiClientError,
    PbuiConnectionError,
    ReconnectExhaustedError,
)
from .events import EVENT_RECONNECT_FAILED
from .heartbeat import HeartbeatMonitor
from .protocol import (
    EVENT_CONNECT,
    EVENT_CONNECT_ERROR,
    EVENT_DISCONNECT,
    STATE_EVENTS,
    parse_event_frame,
    websocket_url,
)
from .state import STATE_KEY
from .ws_client import PbuiWsClient, PbuiWsMessageType

if TYPE_CHECKING:
    from .events import EventRouter
    from .settings import PbuiSettings
    from .state import StateCache

_LOGGER = logging.getLogger(__name__)

MANUAL_DISCONNECT_REASON = "io client disconnect"


class ConnectionStatus(Enum):
    """Lifecycle states of the logical connection."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    FAILED = "failed"
    RECONNECTING = "reconnecting"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """Exponential backoff for automatic reconnection (seconds)."""

    base_delay: float = 1.0
    max_delay: float = 10.0
    max_attempts: int = 10

    def delay_for(self, attempt: int) -> float:
        """Delay before the 0-indexed retry ``attempt``."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    def is_exhausted(self, attempts: int) -> bool:
        return attempts >= self.max_attempts


@dataclass(slots=True)
class Connection:
    """The logical session, replaced transport handle and all."""

    transport: PbuiWsClient | None = None
    status: ConnectionStatus = ConnectionStatus.IDLE
    attempt_count: int = 0
    manual_disconnect_requested: bool = False
    last_error: PbuiClientError | None = None


def _retrieve_exception(future: asyncio.Future[None]) -> None:
    # Readiness futures are often never awaited (background retries).
    if not future.cancelled():
        future.exception()


class ConnectionManager:
    """Owns the transport connection and its reconnection policy.

    Usage:
        manager = ConnectionManager(settings, router, state)
        await manager.connect()
        await manager.send("vote", {"map": 3})
        await manager.disconnect()
    """

    def __init__(
        self,
        settings: PbuiSettings,
        router: EventRouter,
        state: StateCache,
        *,
        policy: ReconnectPolicy | None = None,
        heartbeat: HeartbeatMonitor | None = None,
        transport_factory: Callable[[], PbuiWsClient] = PbuiWsClient,
    ) -> None:
        self._settings = settings
        self._router = router
        self._state = state
        self.policy = policy or ReconnectPolicy(
            base_delay=settings.reconnect_base_delay,
            max_delay=settings.reconnect_max_delay,
            max_attempts=settings.reconnect_max_attempts,
        )
        self._heartbeat = heartbeat or HeartbeatMonitor(settings.heartbeat_interval)
        self._transport_factory = transport_factory

        self._connection = Connection()
        self._options: dict[str, Any] = {}

        # Readiness of the attempt in flight, and of the whole retry cycle
        self._ready: asyncio.Future[None] | None = None
        self._cycle: asyncio.Future[None] | None = None

        self._connect_task: asyncio.Task[None] | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def status(self) -> ConnectionStatus:
        return self._connection.status

    @property
    def transport(self) -> PbuiWsClient | None:
        return self._connection.transport

    @property
    def heartbeat(self) -> HeartbeatMonitor:
        return self._heartbeat

    @property
    def is_connected(self) -> bool:
        transport = self._connection.transport
        return (
            self._connection.status is ConnectionStatus.CONNECTED
            and transport is not None
            and transport.connected
        )

    def connect(self, **options: Any) -> asyncio.Future[None]:
        """Start connecting and return the shared readiness future.

        Must be called from a running event loop. While an attempt is in
        flight every caller gets the same future, so only one transport is
        ever opened at a time. An existing connection is closed first
        without triggering a reconnect.

        Args:
            timeout: Connection timeout in seconds
            path: Socket path appended to the API base

        Raises (through the future):
            PbuiConnectionError: Connect failed or timed out
        """
        if self._ready is not None and not self._ready.done():
            _LOGGER.debug("Connect already in progress, sharing pending attempt")
            return self._ready

        if self._connection.status is ConnectionStatus.EXHAUSTED:
            self._connection.attempt_count = 0
        self._cancel_reconnect()
        self._options.update(options)
        return self._start_attempt()

    async def disconnect(self) -> None:
        """Close the connection and cancel any pending automatic retry."""
        conn = self._connection
        self._cancel_reconnect()

        if conn.transport is None:
            _LOGGER.info("WebSocket is not connected, nothing to disconnect")
            if self._connect_task is not None and not self._connect_task.done():
                # The attempt in flight may still succeed; a failure ends here.
                conn.manual_disconnect_requested = True
            if conn.status in (ConnectionStatus.FAILED, ConnectionStatus.RECONNECTING):
                self._set_status(ConnectionStatus.IDLE)
            self._fail_cycle(NotConnectedError("Reconnection cancelled by disconnect"))
            return

        self._set_status(ConnectionStatus.DISCONNECTING)
        await self._close_transport()
        self._fail_cycle(NotConnectedError("Reconnection cancelled by disconnect"))
        _LOGGER.info("WebSocket fully disconnected")

    async def close(self) -> None:
        """Tear everything down, including an attempt still in flight."""
        self._cancel_reconnect()

        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._connect_task
        if self._ready is not None and not self._ready.done():
            self._ready.set_exception(PbuiConnectionError("Client closed"))

        await self.disconnect()
        self._set_status(ConnectionStatus.IDLE)

    async def ensure_connected(self) -> None:
        """Wait for a pending connect or reconnect cycle, then require a link.

        Raises:
            NotConnectedError: No live connection once pending work settled
        """
        waiter = self._pending_waiter()
        if waiter is not None:
            try:
                await asyncio.shield(waiter)
            except PbuiConnectionError as err:
                raise NotConnectedError("WebSocket not connected") from err
        if not self.is_connected:
            raise NotConnectedError("WebSocket not connected")

    async def send(self, event: str, data: Any = None) -> None:
        """Emit ``event`` on the live transport."""
        await self.ensure_connected()
        transport = self._connection.transport
        if transport is None:
            raise NotConnectedError("WebSocket not connected")
        await transport.emit(event, data)

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus) -> None:
        if self._connection.status is not status:
            _LOGGER.debug(
                "State: %s -> %s", self._connection.status.value, status.value
            )
            self._connection.status = status

    def _new_future(self) -> asyncio.Future[None]:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        future.add_done_callback(_retrieve_exception)
        return future

    def _pending_waiter(self) -> asyncio.Future[None] | None:
        if self._cycle is not None and not self._cycle.done():
            return self._cycle
        if self._ready is not None and not self._ready.done():
            return self._ready
        return None

    def _fail_cycle(self, err: PbuiClientError) -> None:
        if self._cycle is not None and not self._cycle.done():
            self._cycle.set_exception(err)

    def _start_attempt(self) -> asyncio.Future[None]:
        ready = self._new_future()
        self._ready = ready
        self._set_status(ConnectionStatus.CONNECTING)
        self._connect_task = asyncio.create_task(self._establish(ready))
        return ready

    async def _establish(self, ready: asyncio.Future[None]) -> None:
        conn = self._connection
        if conn.transport is not None:
            _LOGGER.warning("Already connected to a WebSocket, disconnecting first")
            await self._close_transport()

        url = websocket_url(
            self._settings.api_base,
            self._options.get("path", self._settings.socket_path),
        )
        timeout = self._options.get("timeout", self._settings.connect_timeout)

        _LOGGER.info(
            "Connecting to %s (attempt #%d)", url, conn.attempt_count + 1
        )
        transport = self._transport_factory()
        try:
            await transport.connect(url, timeout=timeout)
        except PbuiConnectionError as err:
            _LOGGER.warning("Connection failed: %s", err)
            self._handle_connect_error(ready, err)
            return
        except Exception as err:
            _LOGGER.exception("Unexpected connection error: %s", err)
            failure = PbuiConnectionError(f"Connection failed: {err}")
            failure.__cause__ = err
            self._handle_connect_error(ready, failure)
            return

        conn.transport = transport
        conn.attempt_count = 0
        conn.last_error = None
        conn.manual_disconnect_requested = False
        self._set_status(ConnectionStatus.CONNECTED)
        self._listen_task = asyncio.create_task(self._listen(transport))
        self._heartbeat.start(transport)
        _LOGGER.info("Connected to WebSocket: %s", url)

        ready.set_result(None)
        if self._cycle is not None and not self._cycle.done():
            self._cycle.set_result(None)
        self._router.trigger(EVENT_CONNECT, None)

    def _handle_connect_error(
        self, ready: asyncio.Future[None], err: PbuiConnectionError
    ) -> None:
        conn = self._connection
        conn.last_error = err
        self._set_status(ConnectionStatus.FAILED)
        self._router.trigger(EVENT_CONNECT_ERROR, err)
        if conn.manual_disconnect_requested:
            conn.manual_disconnect_requested = False
            _LOGGER.info("Not reconnecting: disconnect requested during attempt")
            self._set_status(ConnectionStatus.IDLE)
            self._fail_cycle(NotConnectedError("Reconnection cancelled by disconnect"))
        else:
            self._schedule_reconnect()
        if not ready.done():
            ready.set_exception(err)

    async def _close_transport(self) -> None:
        """Close the current transport as a manual disconnect."""
        conn = self._connection
        transport = conn.transport
        if transport is None:
            return

        conn.manual_disconnect_requested = True
        self._heartbeat.stop()
        try:
            await asyncio.wait_for(transport.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("WebSocket close timed out")

        listen_task = self._listen_task
        if listen_task is not None and not listen_task.done():
            await listen_task
        if conn.transport is transport:
            self._handle_disconnect(transport, MANUAL_DISCONNECT_REASON)

    def _handle_disconnect(self, transport: PbuiWsClient, reason: str) -> None:
        """Process a transport-level disconnect, then decide on a retry."""
        conn = self._connection
        if conn.transport is not transport:
            return
        if conn.manual_disconnect_requested:
            reason = MANUAL_DISCONNECT_REASON

        transport.dispatch(EVENT_DISCONNECT, reason)
        transport.off()
        conn.transport = None
        self._listen_task = None
        self._heartbeat.stop()
        self._router.trigger(EVENT_DISCONNECT, reason)

        if conn.manual_disconnect_requested:
            conn.manual_disconnect_requested = False
            if conn.status is ConnectionStatus.DISCONNECTING:
                self._set_status(ConnectionStatus.IDLE)
            _LOGGER.info("Disconnected: %s", reason)
            return

        _LOGGER.warning("Disconnected: %s", reason)
        self._set_status(ConnectionStatus.FAILED)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """Schedule the next retry with exponential backoff."""
        conn = self._connection
        if self._reconnect_task is not None:
            return

        if self._cycle is None or self._cycle.done():
            self._cycle = self._new_future()

        if self.policy.is_exhausted(conn.attempt_count):
            err = ReconnectExhaustedError(conn.attempt_count)
            conn.last_error = err
            self._set_status(ConnectionStatus.EXHAUSTED)
            _LOGGER.error(
                "Max reconnection attempts reached (%d), giving up", conn.attempt_count
            )
            self._cycle.set_exception(err)
            self._router.trigger(EVENT_RECONNECT_FAILED, err)
            return

        delay = self.policy.delay_for(conn.attempt_count)
        conn.attempt_count += 1
        self._set_status(ConnectionStatus.RECONNECTING)
        _LOGGER.info(
            "Reconnecting in %.1fs (attempt %d/%d)",
            delay,
            conn.attempt_count,
            self.policy.max_attempts,
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay(delay))

    async def _reconnect_after_delay(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            _LOGGER.debug("Reconnect cancelled")
            return
        self._reconnect_task = None
        self._start_attempt()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self, transport: PbuiWsClient) -> None:
        """Read frames until the transport closes, then report the disconnect."""
        reason = "transport close"
        try:
            async for msg in transport:
                if msg.type is PbuiWsMessageType.TEXT:
                    try:
                        event, data = parse_event_frame(transport.decode_json(msg))
                    except (ValueError, PbuiClientError) as err:
                        _LOGGER.warning("Invalid frame: %s", err)
                        continue
                    self._dispatch(transport, event, data)

                elif msg.type is PbuiWsMessageType.CLOSED:
                    reason = msg.data or "transport close"
                    break

                elif msg.type is PbuiWsMessageType.ERROR:
                    reason = msg.data or "transport error"
                    break

        except asyncio.CancelledError:
            _LOGGER.debug("Listener cancelled")
            raise
        except Exception as err:
            _LOGGER.exception("Unexpected listener error: %s", err)
            reason = "transport error"

        self._handle_disconnect(transport, reason)

    def _dispatch(self, transport: PbuiWsClient, event: str, data: Any) -> None:
        transport.dispatch(event, data)
        if event in STATE_EVENTS:
            self._state.apply(STATE_KEY, data)
        self._router.trigger(event, data)
