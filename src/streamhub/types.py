"""Core data types shared across the session modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    EXHAUSTED = "exhausted"


class Sender(str, Enum):
    USER = "user"
    SERVER = "server"


@dataclass
class RetryState:
    """Consecutive failure bookkeeping for the reconnect backoff."""

    max_attempts: int = 5
    base_delay: float = 2.0
    attempt_count: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * 2**attempt

    def next_delay(self) -> float:
        return self.delay_for(self.attempt_count)

    def record_failure(self) -> None:
        self.attempt_count += 1

    def reset(self) -> None:
        self.attempt_count = 0


@dataclass
class ChatTurn:
    """One logical chat message, possibly assembled from several fragments."""

    sender: Sender
    text: str = ""
    complete: bool = False

    def append(self, fragment: str) -> None:
        if self.complete:
            raise ValueError("cannot append to a completed turn")
        self.text += fragment


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass
class ParsedLocation:
    """A place mentioned in a reply; ``coordinates`` is filled by geocoding."""

    name: str
    address: str
    rating: float = 0.0
    coordinates: GeoPoint | None = None


@dataclass(frozen=True)
class Marker:
    marker_id: str
    position: GeoPoint
    title: str
    snippet: str = ""


USER_MARKER_ID = "user_location"


def user_marker(position: GeoPoint) -> Marker:
    return Marker(marker_id=USER_MARKER_ID, position=position, title="Your Location")


def location_marker(location: ParsedLocation) -> Marker:
    if location.coordinates is None:
        raise ValueError(f"location {location.name!r} has no coordinates")
    return Marker(
        marker_id=location.address,
        position=location.coordinates,
        title=location.name,
        snippet=f"Rating: {location.rating} stars",
    )


@dataclass(frozen=True)
class OutboundPayload:
    """Wire payload for one user message."""

    data: str
    mime_type: str = "text/plain"
    lat: float | None = None
    lon: float | None = None
