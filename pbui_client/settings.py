"""Client settings.

Loaded from ``PBUI_*`` environment variables (or a ``.env`` file) through
Pydantic Settings. Assignments are validated, so an instance can be updated
in place by the client without ever holding an invalid base URL.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE = "https://api.ultraslayyy.xyz/api"


class PbuiSettings(BaseSettings):
    """Configuration owned by a single client instance."""

    api_base: str = DEFAULT_API_BASE
    auth_token: str = ""

    # Realtime transport
    socket_path: str = "/ws"
    connect_timeout: float = Field(default=5.0, gt=0)
    heartbeat_interval: float = Field(default=30.0, gt=0)

    # Reconnection policy
    reconnect_base_delay: float = Field(default=1.0, gt=0)
    reconnect_max_delay: float = Field(default=10.0, gt=0)
    reconnect_max_attempts: int = Field(default=10, ge=0)

    # REST
    request_timeout: float = Field(default=10.0, gt=0)

    # Level of the "pbui_client" package logger; handlers are left to the app
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PBUI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )

    @field_validator("api_base")
    @classmethod
    def _check_api_base(cls, value: str) -> str:
        if not value:
            raise ValueError("API base URL must not be empty")
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Invalid URL: {value}")
        if value.endswith("/"):
            raise ValueError("API base URL cannot have a trailing /")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level
