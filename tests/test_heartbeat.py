"""Tests for HeartbeatMonitor."""

from __future__ import annotations

import asyncio

from pbui_client.heartbeat import HeartbeatMonitor

from .conftest import FakeWsClient, wait_for_condition


async def _open_transport() -> FakeWsClient:
    transport = FakeWsClient()
    await transport.connect("wss://x/ws")
    return transport


class TestHeartbeatMonitor:
    """Tests for the keep-alive loop."""

    async def test_sends_ping_periodically(self):
        transport = await _open_transport()
        monitor = HeartbeatMonitor(interval=0.01)

        monitor.start(transport)
        await wait_for_condition(lambda: len(transport.sent) >= 2)
        monitor.stop()

        assert transport.sent[0] == {"event": "ping", "data": None}
        assert not monitor.active

    async def test_start_twice_is_noop(self):
        transport = await _open_transport()
        monitor = HeartbeatMonitor(interval=10)

        monitor.start(transport)
        task = monitor._task
        monitor.start(transport)

        assert monitor._task is task
        monitor.stop()

    async def test_stop_prevents_further_pings(self):
        transport = await _open_transport()
        monitor = HeartbeatMonitor(interval=0.01)

        monitor.start(transport)
        monitor.stop()
        await asyncio.sleep(0.05)

        assert transport.sent == []

    async def test_skips_closed_transport(self):
        transport = await _open_transport()
        transport.drop()
        monitor = HeartbeatMonitor(interval=0.01)

        monitor.start(transport)
        await asyncio.sleep(0.05)
        monitor.stop()

        assert transport.sent == []

    async def test_default_interval(self):
        assert HeartbeatMonitor().interval == 30.0
