"""Client error types for PBUI service interactions."""

from __future__ import annotations


class PbuiClientError(Exception):
    """Base error for PBUI client failures."""


class PbuiConnectionError(PbuiClientError):
    """Realtime connection to the service failed."""


class PbuiTimeout(PbuiConnectionError):
    """Timeout while communicating with the service."""


class PbuiHandshakeError(PbuiConnectionError):
    """WebSocket handshake failed."""


class NotConnectedError(PbuiClientError):
    """Operation requires a live connection and none exists."""


class ValidationError(PbuiClientError, ValueError):
    """Arguments rejected before any network call was made."""


class HttpError(PbuiClientError):
    """Non-success HTTP response from the service."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class ResponseDecodeError(PbuiClientError):
    """Response body could not be decoded."""


class UnsupportedContentTypeError(ResponseDecodeError):
    """Response declared a content type the client cannot decode."""

    def __init__(self, content_type: str) -> None:
        super().__init__(f"Unsupported response type: {content_type or '<none>'}")
        self.content_type = content_type


class ReconnectExhaustedError(PbuiConnectionError):
    """Automatic reconnection gave up after the attempt ceiling."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Max reconnection attempts reached ({attempts})")
        self.attempts = attempts
