"""Command line interface for Streamhub."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from streamhub.auth import StaticTokenProvider
from streamhub.config import Settings, get_settings
from streamhub.errors import CredentialError, RetryExhaustedError
from streamhub.events import (
    ConnectionStateChanged,
    CredentialFailed,
    MarkersUpdated,
    ReconnectScheduled,
    SendRejected,
    SessionEvent,
    TurnAppended,
    TurnCompleted,
)
from streamhub.geocoding import MappingGeocoder
from streamhub.locations import LocationExtractor
from streamhub.session import ChatSession
from streamhub.transport import websocket_factory
from streamhub.types import GeoPoint, Marker, ParsedLocation, Sender

app = typer.Typer(
    name="streamhub",
    help="Streaming assistant chat with location extraction.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

_EXIT_COMMANDS = {"quit", "exit", "q"}


def _locations_table(locations: list[ParsedLocation] | tuple[ParsedLocation, ...]) -> Table:
    table = Table(title="Locations")
    table.add_column("Name")
    table.add_column("Address")
    table.add_column("Rating", justify="right")
    for location in locations:
        table.add_row(location.name, location.address, f"{location.rating:g}")
    return table


def _markers_table(markers: tuple[Marker, ...]) -> Table:
    table = Table(title="Markers")
    table.add_column("Marker")
    table.add_column("Position")
    table.add_column("Info")
    for marker in markers:
        table.add_row(
            marker.title,
            f"{marker.position.latitude:.5f}, {marker.position.longitude:.5f}",
            marker.snippet,
        )
    return table


class ConsolePresenter:
    """Render session events to the terminal."""

    def __init__(self, out: Console) -> None:
        self.out = out

    def __call__(self, event: SessionEvent) -> None:
        match event:
            case ConnectionStateChanged(current=current):
                self.out.print(f"[dim]connection: {current.value}[/dim]")
            case ReconnectScheduled():
                self.out.print(f"[yellow]{event.render()}[/yellow]")
            case CredentialFailed(reason=reason):
                self.out.print(f"[red]credential error: {reason}[/red]")
            case SendRejected(reason=reason):
                self.out.print(f"[red]message not sent: {reason}[/red]")
            case TurnAppended(turn=turn, fragment=fragment) if turn.sender is Sender.SERVER:
                self.out.print(fragment, end="", markup=False, highlight=False)
            case TurnCompleted(turn=turn, locations=locations):
                self.out.print()
                if locations:
                    self.out.print(turn.text, markup=False, highlight=False)
                    self.out.print(_locations_table(locations))
            case MarkersUpdated(markers=markers):
                self.out.print(_markers_table(markers))


def _position(lat: float | None, lon: float | None) -> GeoPoint | None:
    if lat is None or lon is None:
        return None
    return GeoPoint(lat, lon)


async def _chat(settings: Settings, position: GeoPoint | None) -> None:
    session = ChatSession(
        websocket_factory(settings.ws_url, open_timeout=settings.connect_timeout),
        StaticTokenProvider(settings.token),
        MappingGeocoder(),
        max_attempts=settings.max_retries,
        base_delay=settings.base_delay,
    )
    session.update_user_position(position)
    session.bus.subscribe(ConsolePresenter(console))
    try:
        await session.start()
        while True:
            text = await asyncio.to_thread(console.input, "[bold cyan]> [/bold cyan]")
            command = text.strip().lower()
            if command in _EXIT_COMMANDS:
                break
            if command == "retry":
                await session.retry()
                continue
            if command == "map":
                bounds = session.map.toggle()
                console.print(f"map visible: {session.map.visible}")
                if bounds is not None:
                    console.print(f"fit: {bounds.southwest} .. {bounds.northeast}")
                continue
            if command == "status":
                console.print(session.controller.status_text())
                continue
            await session.send(text)
    except CredentialError as exc:
        console.print(f"[red]Cannot connect: {exc}[/red]")
        raise typer.Exit(1) from exc
    except RetryExhaustedError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    except (EOFError, KeyboardInterrupt):
        console.print()
    finally:
        await session.close()


@app.command()
def chat(
    url: Annotated[str | None, typer.Option("--url", help="Streaming endpoint (ws:// or wss://)")] = None,
    token: Annotated[str | None, typer.Option("--token", envvar="STREAMHUB_TOKEN", help="Auth credential")] = None,
    lat: Annotated[float | None, typer.Option("--lat", help="Your latitude")] = None,
    lon: Annotated[float | None, typer.Option("--lon", help="Your longitude")] = None,
) -> None:
    """Open an interactive chat session."""
    settings = get_settings(profile="chat", ws_url=url, token=token)
    logger.info("cli.chat url={}", settings.ws_url)
    asyncio.run(_chat(settings, _position(lat, lon)))


@app.command()
def extract(
    path: Annotated[Path | None, typer.Argument(help="File holding one reply; stdin when omitted")] = None,
) -> None:
    """Extract locations from one assistant reply."""
    text = path.read_text(encoding="utf-8") if path is not None else sys.stdin.read()
    extraction = LocationExtractor().extract(text)
    console.print(f"source: {extraction.source}")
    if extraction.source == "structured":
        console.print(extraction.visible_text, markup=False, highlight=False)
    if not extraction.locations:
        console.print("No locations found.")
        raise typer.Exit(1)
    console.print(_locations_table(extraction.locations))


if __name__ == "__main__":
    app()
