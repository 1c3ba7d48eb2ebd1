"""Pytest configuration and fixtures for pbui_client tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pbui_client.errors import PbuiConnectionError
from pbui_client.settings import PbuiSettings
from pbui_client.ws_client import PbuiWsClient, PbuiWsMessage, PbuiWsMessageType


@pytest.fixture
def settings() -> PbuiSettings:
    """Settings that never read the environment."""
    return PbuiSettings(
        _env_file=None,
        api_base="https://api.example.com/api",
        auth_token="",
    )


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    session = MagicMock(spec=aiohttp.ClientSession)
    session.closed = False
    return session


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    text_data: str | None = None,
    content_type: str = "application/json",
) -> AsyncMock:
    """Create a configured mock response.

    Args:
        status: HTTP status code
        json_data: Data to return from json() call
        text_data: Data to return from text() call
        content_type: Value of the Content-Type header

    Returns:
        Configured AsyncMock response
    """
    response = AsyncMock()
    response.status = status
    response.headers = {"Content-Type": content_type} if content_type else {}

    if json_data is not None:
        response.json.return_value = json_data
    if text_data is not None:
        response.text.return_value = text_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response


class FakeWsClient(PbuiWsClient):
    """Scripted transport handle driven by the test.

    ``connect`` optionally waits on ``gate`` and raises ``fail``; inbound
    frames are queued with :meth:`push` and the peer closes with :meth:`drop`.
    """

    def __init__(
        self,
        *,
        fail: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        super().__init__()
        self.fail = fail
        self.gate = gate
        self.url: str | None = None
        self.timeout: float | None = None
        self.sent: list[dict[str, Any]] = []
        self.close_calls = 0
        self._open = False
        self._inbox: asyncio.Queue[PbuiWsMessage] = asyncio.Queue()

    async def connect(
        self, url: str, *, ping_interval: int | None = None, timeout: float = 5.0
    ) -> None:
        self.url = url
        self.timeout = timeout
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        self._open = True

    @property
    def connected(self) -> bool:
        return self._open

    async def close(self) -> None:
        self.close_calls += 1
        if self._open:
            self.drop("io client disconnect")

    async def send_json(self, payload: dict[str, Any]) -> None:
        if not self._open:
            raise PbuiConnectionError("WebSocket is not connected")
        self.sent.append(payload)

    def push(self, event: str, data: Any = None) -> None:
        frame = json.dumps({"event": event, "data": data})
        self._inbox.put_nowait(PbuiWsMessage(PbuiWsMessageType.TEXT, frame))

    def push_raw(self, text: str) -> None:
        self._inbox.put_nowait(PbuiWsMessage(PbuiWsMessageType.TEXT, text))

    def drop(self, reason: str = "transport close") -> None:
        self._open = False
        self._inbox.put_nowait(PbuiWsMessage(PbuiWsMessageType.CLOSED, reason))

    def __aiter__(self) -> AsyncIterator[PbuiWsMessage]:
        return self._iter_inbox()

    async def _iter_inbox(self) -> AsyncIterator[PbuiWsMessage]:
        while True:
            msg = await self._inbox.get()
            yield msg
            if msg.type is not PbuiWsMessageType.TEXT:
                return


class FakeTransportFactory:
    """Transport factory handing out scripted FakeWsClient instances.

    Each entry of ``script`` is either None (connect succeeds) or an
    exception raised by connect. Once the script is used up every further
    transport uses ``default``.
    """

    def __init__(
        self,
        script: list[Exception | None] | None = None,
        *,
        default: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._script = list(script or [])
        self._default = default
        self._gate = gate
        self.created: list[FakeWsClient] = []

    def __call__(self) -> FakeWsClient:
        fail = self._script.pop(0) if self._script else self._default
        transport = FakeWsClient(fail=fail, gate=self._gate)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeWsClient:
        return self.created[-1]


async def wait_for_condition(
    predicate: Callable[[], bool], *, timeout: float = 1.0
) -> None:
    """Yield to the loop until ``predicate`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0)
