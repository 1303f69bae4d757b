from __future__ import annotations

import importlib
from pathlib import Path

from typer.testing import CliRunner

cli_module = importlib.import_module("streamhub.cli")


def test_extract_reads_file(tmp_path: Path) -> None:
    reply = tmp_path / "reply.txt"
    reply.write_text("**Joe's Diner:** Located at 5 Oak Ave. It has a rating of 4.0 stars", encoding="utf-8")

    result = CliRunner().invoke(cli_module.app, ["extract", str(reply)])

    assert result.exit_code == 0
    assert "source: text" in result.output
    assert "5 Oak Ave" in result.output


def test_extract_structured_from_stdin() -> None:
    body = '{"spoken_response":"Try this","map_data":[{"name":"A","address":"1 Main St","rating":4.5}]}'

    result = CliRunner().invoke(cli_module.app, ["extract"], input=body)

    assert result.exit_code == 0
    assert "source: structured" in result.output
    assert "Try this" in result.output
    assert "1 Main St" in result.output


def test_extract_without_locations_exits_nonzero() -> None:
    result = CliRunner().invoke(cli_module.app, ["extract"], input="no places here")

    assert result.exit_code == 1
    assert "No locations found." in result.output


def test_chat_command_runs_session(monkeypatch) -> None:
    called: dict[str, object] = {}

    async def _fake_chat(settings, position) -> None:
        called["url"] = settings.ws_url
        called["position"] = position

    monkeypatch.setattr(cli_module, "_chat", _fake_chat)

    result = CliRunner().invoke(
        cli_module.app, ["chat", "--url", "ws://localhost:1/ws", "--token", "t", "--lat", "1.5", "--lon", "2.5"]
    )

    assert result.exit_code == 0
    assert called["url"] == "ws://localhost:1/ws"
    assert called["position"] == cli_module.GeoPoint(1.5, 2.5)
