"""Tests for the PbuiClient facade and its settings."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pydantic
import pytest

from pbui_client import PbuiClient
from pbui_client.errors import NotConnectedError, ValidationError
from pbui_client.settings import PbuiSettings

from .conftest import FakeTransportFactory, create_mock_response, wait_for_condition


@pytest.fixture
def factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
async def client(
    settings: PbuiSettings, mock_session: MagicMock, factory: FakeTransportFactory
):
    pbui = PbuiClient(settings, session=mock_session, transport_factory=factory)
    yield pbui
    await pbui.close()


class TestSettings:
    """Tests for PbuiSettings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PBUI_API_BASE", raising=False)
        settings = PbuiSettings(_env_file=None)
        assert settings.api_base == "https://api.ultraslayyy.xyz/api"
        assert settings.heartbeat_interval == 30.0
        assert settings.reconnect_max_attempts == 10

    def test_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PBUI_API_BASE", "http://localhost:3000/api")
        monkeypatch.setenv("PBUI_RECONNECT_MAX_ATTEMPTS", "3")
        settings = PbuiSettings(_env_file=None)
        assert settings.api_base == "http://localhost:3000/api"
        assert settings.reconnect_max_attempts == 3

    def test_log_level_normalized(self):
        assert PbuiSettings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            PbuiSettings(_env_file=None, log_level="chatty")

    def test_client_applies_log_level(self, mock_session: MagicMock):
        package_logger = logging.getLogger("pbui_client")
        previous = package_logger.level
        try:
            PbuiClient(
                PbuiSettings(_env_file=None, log_level="WARNING"), session=mock_session
            )
            assert package_logger.level == logging.WARNING
        finally:
            package_logger.setLevel(previous)


class TestSetApiBase:
    """Tests for PbuiClient.set_api_base()."""

    async def test_valid(self, client: PbuiClient):
        client.set_api_base("http://localhost:3000/api")
        assert client.settings.api_base == "http://localhost:3000/api"

    @pytest.mark.parametrize(
        "url", ["", "not a url", "ftp://example.com", "https://example.com/api/"]
    )
    async def test_invalid_keeps_previous(self, client: PbuiClient, url: str):
        with pytest.raises(ValidationError, match="Invalid API base"):
            client.set_api_base(url)
        assert client.settings.api_base == "https://api.example.com/api"

    async def test_rest_calls_follow_new_base(
        self, client: PbuiClient, mock_session: MagicMock
    ):
        mock_session.request.return_value = create_mock_response(json_data={"a": 1})
        client.set_api_base("http://localhost:3000/api")

        await client.state.get()

        assert mock_session.request.call_args.args[1] == "http://localhost:3000/api/state"


class TestRealtime:
    """Tests for connect, subscribe and send through the facade."""

    async def test_connect_with_url(
        self, client: PbuiClient, factory: FakeTransportFactory
    ):
        await client.connect("http://localhost:3000/api")

        assert client.is_connected
        assert client.settings.api_base == "http://localhost:3000/api"
        assert factory.last.url == "ws://localhost:3000/api/ws"

    async def test_connect_with_invalid_url(self, client: PbuiClient):
        with pytest.raises(ValidationError):
            client.connect("https://example.com/")
        assert not client.is_connected

    async def test_subscribe_requires_connection(self, client: PbuiClient):
        with pytest.raises(NotConnectedError):
            await client.subscribe("state-updated", MagicMock())

    async def test_subscribe_receives_pushes(
        self, client: PbuiClient, factory: FakeTransportFactory
    ):
        listener = MagicMock()
        client.connect()
        await client.subscribe("state-updated", listener)

        factory.last.push("state-updated", {"songs": {"abc": "cleared"}})
        await wait_for_condition(lambda: listener.called)

        listener.assert_called_once_with({"songs": {"abc": "cleared"}})
        assert client.state.cached("state") == {"songs": {"abc": "cleared"}}

    async def test_unsubscribe(self, client: PbuiClient, factory: FakeTransportFactory):
        listener = MagicMock()
        await client.connect()
        await client.subscribe("news", listener)
        await client.unsubscribe("news", listener)

        factory.last.push("news", 1)
        factory.last.push("marker", 2)
        marker = MagicMock()
        await client.subscribe("marker", marker)
        await wait_for_condition(lambda: marker.called)

        listener.assert_not_called()

    async def test_on_attaches_raw_handler(
        self, client: PbuiClient, factory: FakeTransportFactory
    ):
        handler = MagicMock()
        await client.connect()
        await client.on("news", handler)

        factory.last.push("news", "hello")
        await wait_for_condition(lambda: handler.called)

        handler.assert_called_once_with("hello")

    async def test_send(self, client: PbuiClient, factory: FakeTransportFactory):
        await client.connect()
        await client.send("vote", {"map": 1})
        assert factory.last.sent == [{"event": "vote", "data": {"map": 1}}]

    async def test_disconnect(self, client: PbuiClient):
        await client.connect()
        await client.disconnect()
        assert not client.is_connected
        with pytest.raises(NotConnectedError):
            await client.send("vote", 1)


class TestRest:
    """Tests for token handling and upload delegation."""

    async def test_auth_token_used_by_privileged_calls(
        self, client: PbuiClient, mock_session: MagicMock
    ):
        mock_session.request.return_value = create_mock_response(
            json_data={"status": "success"}
        )
        client.set_auth_token("secret")

        await client.tournaments.create("tournament", {"name": "Cup", "slug": "cup"})

        headers = mock_session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer secret"

    async def test_auth_token_not_sent_on_reads(
        self, client: PbuiClient, mock_session: MagicMock
    ):
        mock_session.request.return_value = create_mock_response(json_data=[])
        client.set_auth_token("secret")

        await client.tournaments.get()

        headers = mock_session.request.call_args.kwargs["headers"]
        assert "Authorization" not in headers

    async def test_upload(self, client: PbuiClient):
        client._http.upload = AsyncMock(return_value="https://cdn.example.com/a.png")

        url = await client.upload(b"png", "a.png")

        assert url == "https://cdn.example.com/a.png"
        client._http.upload.assert_awaited_once_with(b"png", "a.png")

    async def test_close_keeps_borrowed_session(
        self, settings: PbuiSettings, mock_session: MagicMock
    ):
        async with PbuiClient(settings, session=mock_session):
            pass
        mock_session.close.assert_not_called()

    async def test_close_drops_subscriptions(
        self, settings: PbuiSettings, mock_session: MagicMock
    ):
        client = PbuiClient(
            settings, session=mock_session, transport_factory=FakeTransportFactory()
        )
        on_disconnect = MagicMock()
        await client.connect()
        await client.subscribe("disconnect", on_disconnect)

        await client.close()

        on_disconnect.assert_called_once_with("io client disconnect")
        assert client.events.listeners("disconnect") == ()
