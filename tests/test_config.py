from __future__ import annotations

import pytest
from pydantic import ValidationError

from streamhub.config import DEFAULT_WS_URL, Settings
from streamhub.types import GeoPoint


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("STREAMHUB_WS_URL", "STREAMHUB_TOKEN", "STREAMHUB_MAX_RETRIES", "STREAMHUB_BASE_DELAY"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.ws_url == DEFAULT_WS_URL
    assert settings.max_retries == 5
    assert settings.base_delay == 2.0
    assert settings.default_center == GeoPoint(6.5244, 3.3792)


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STREAMHUB_WS_URL", "ws://localhost:9000/ws")
    monkeypatch.setenv("STREAMHUB_MAX_RETRIES", "2")

    settings = Settings(_env_file=None)

    assert settings.ws_url == "ws://localhost:9000/ws"
    assert settings.max_retries == 2


def test_rejects_non_websocket_url() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, ws_url="https://example.com")
