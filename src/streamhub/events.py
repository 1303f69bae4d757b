"""Typed session events and the signal-based bus that carries them."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from blinker import Signal

from .types import ChatTurn, ConnectionState, Marker, ParsedLocation


@dataclass(frozen=True)
class SessionEvent:
    """Base class for everything the core tells a presentation layer."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC), kw_only=True)


@dataclass(frozen=True)
class ConnectionStateChanged(SessionEvent):
    previous: ConnectionState
    current: ConnectionState
    attempt: int = 0
    reason: str | None = None


@dataclass(frozen=True)
class ReconnectScheduled(SessionEvent):
    delay: float
    attempt: int
    max_attempts: int

    def render(self) -> str:
        return f"Connection lost. Retrying in {self.delay:g} seconds..."


@dataclass(frozen=True)
class CredentialFailed(SessionEvent):
    reason: str


@dataclass(frozen=True)
class TurnAppended(SessionEvent):
    turn: ChatTurn
    fragment: str


@dataclass(frozen=True)
class TurnCompleted(SessionEvent):
    turn: ChatTurn
    locations: tuple[ParsedLocation, ...] = ()


@dataclass(frozen=True)
class SendRejected(SessionEvent):
    reason: str
    text: str = ""


@dataclass(frozen=True)
class MarkersUpdated(SessionEvent):
    markers: tuple[Marker, ...]


EventHandler = Callable[[SessionEvent], None]


class EventBus:
    """In-process event bus backed by a blinker signal.

    Handlers run synchronously in publish order, so subscribers observe events
    in the same order the session produced them.
    """

    def __init__(self) -> None:
        self._signal = Signal("streamhub.session")

    def publish(self, event: SessionEvent) -> None:
        self._signal.send(self, event=event)

    def subscribe(
        self,
        handler: EventHandler,
        event_type: type[SessionEvent] = SessionEvent,
    ) -> Callable[[], None]:
        def _receiver(sender: Any, *, event: SessionEvent) -> None:
            if isinstance(event, event_type):
                handler(event)

        self._signal.connect(_receiver, weak=False)
        return lambda: self._signal.disconnect(_receiver)
