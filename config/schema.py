"""Configuration schema for opstream using Pydantic.

Nested config groups (Connection, Reconnect, Heartbeat, Logging) loaded by
StreamConfigLoader from the system / user / project tiers.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

DEFAULT_STREAM_URL = "https://localhost/yunohost/api/sse"

# ============================================================================
# Connection Configuration
# ============================================================================


class ConnectionConfig(BaseModel):
    """Event-stream endpoint and credentials."""

    url: str = Field(DEFAULT_STREAM_URL, description="SSE endpoint URL")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    cookies: dict[str, str] = Field(default_factory=dict, description="Session cookies sent with the stream request")
    verify_tls: bool = Field(True, description="Verify the server TLS certificate")
    connect_timeout: float = Field(10.0, gt=0, description="Connect timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Stream URL must be http(s): {v!r}")
        return v


# ============================================================================
# Reconnect Configuration
# ============================================================================


class ReconnectConfig(BaseModel):
    """Watchdog window and retry delay, in seconds."""

    watchdog_timeout: float = Field(15.0, gt=0, description="Reconnect after this long without any event")
    retry_delay: float = Field(3.0, gt=0, description="Delay between failed reconnect attempts")


# ============================================================================
# Heartbeat Configuration
# ============================================================================


class HeartbeatConfig(BaseModel):
    lock_prefix: str = Field("lock", min_length=1, description="current_operation prefix of non-operation lock holders")


# ============================================================================
# Logging Configuration
# ============================================================================


class LoggingConfig(BaseModel):
    level: str = Field("INFO", description="Root log level")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


# ============================================================================
# Root
# ============================================================================


class StreamSettings(BaseModel):
    """Complete opstream configuration."""

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    heartbeat: HeartbeatConfig = Field(default_factory=HeartbeatConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
