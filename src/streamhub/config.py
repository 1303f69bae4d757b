"""Configuration management for Streamhub."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging_utils import LogProfile, configure_logging
from .types import GeoPoint

DEFAULT_WS_URL = "wss://app.galactic-streamhub.com/ws"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="STREAMHUB_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection Configuration
    ws_url: str = Field(default=DEFAULT_WS_URL, description="Streaming endpoint of the assistant service")
    token: str | None = Field(default=None, description="Static credential used when no provider is wired")
    connect_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for the socket handshake")

    # Reconnect Configuration
    max_retries: int = Field(default=5, ge=0, description="Reconnect attempts before giving up")
    base_delay: float = Field(default=2.0, gt=0, description="Initial reconnect delay in seconds")

    # Map Configuration
    default_latitude: float = Field(default=6.5244, description="Initial map centre latitude")
    default_longitude: float = Field(default=3.3792, description="Initial map centre longitude")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator("ws_url")
    @classmethod
    def _check_scheme(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("ws://", "wss://")):
            raise ValueError("ws_url must use the ws:// or wss:// scheme")
        return value

    @property
    def default_center(self) -> GeoPoint:
        return GeoPoint(self.default_latitude, self.default_longitude)


def get_settings(*, profile: LogProfile = "default", **overrides: object) -> Settings:
    """Get application settings.

    Args:
        profile: Logging profile to install for this process
        **overrides: Explicit values that win over environment and ``.env``

    Returns:
        Settings instance
    """
    settings = Settings(**{key: value for key, value in overrides.items() if value is not None})
    configure_logging(profile=profile, level=settings.log_level)
    return settings
