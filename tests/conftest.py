from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable

import pytest

from streamhub.errors import CredentialError, GeocodeError, TransportError
from streamhub.events import EventBus, SessionEvent
from streamhub.transport import Frame
from streamhub.types import GeoPoint


class FakeTransport:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._frames: asyncio.Queue[Frame | None] = asyncio.Queue()
        self._error: Exception | None = None

    def push(self, *frames: Frame) -> None:
        for frame in frames:
            self._frames.put_nowait(frame)

    def drop(self, error: Exception | None = None) -> None:
        self._error = error
        self._frames.put_nowait(None)

    async def send(self, frame: str) -> None:
        if self.closed:
            raise TransportError("transport closed")
        self.sent.append(frame)

    async def frames(self) -> AsyncIterator[Frame]:
        while True:
            frame = await self._frames.get()
            if frame is None:
                if self._error is not None:
                    raise self._error
                return
            yield frame

    async def close(self) -> None:
        self.closed = True
        self._frames.put_nowait(None)


class FakeFactory:
    """Transport factory that fails for the queued outcomes, then succeeds."""

    def __init__(self, *failures: Exception, always_fail: bool = False) -> None:
        self.failures = list(failures)
        self.always_fail = always_fail
        self.tokens: list[str] = []
        self.transports: list[FakeTransport] = []

    @property
    def attempts(self) -> int:
        return len(self.tokens)

    @property
    def current(self) -> FakeTransport:
        return self.transports[-1]

    async def __call__(self, token: str) -> FakeTransport:
        self.tokens.append(token)
        if self.always_fail:
            raise TransportError("connection refused")
        if self.failures:
            raise self.failures.pop(0)
        transport = FakeTransport()
        self.transports.append(transport)
        return transport


class FakeTokenProvider:
    def __init__(self, token: str = "tok-1", *, fail: bool = False) -> None:
        self.token = token
        self.fail = fail
        self.calls: list[bool] = []

    async def get_token(self, force_refresh: bool = False) -> str:
        self.calls.append(force_refresh)
        if self.fail:
            raise CredentialError("token expired")
        return self.token


class FakeGeocoder:
    def __init__(self, table: dict[str, GeoPoint], *, delay: float = 0.0) -> None:
        self.table = table
        self.delay = delay
        self.requested: list[str] = []

    async def geocode(self, address: str) -> GeoPoint:
        self.requested.append(address)
        if self.delay:
            await asyncio.sleep(self.delay)
        point = self.table.get(address)
        if point is None:
            raise GeocodeError(address)
        return point


class EventRecorder:
    def __init__(self, bus: EventBus) -> None:
        self.events: list[SessionEvent] = []
        bus.subscribe(self.events.append)

    def of(self, event_type: type[SessionEvent]) -> list[SessionEvent]:
        return [event for event in self.events if isinstance(event, event_type)]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus: EventBus) -> EventRecorder:
    return EventRecorder(bus)


@pytest.fixture
def token_provider() -> FakeTokenProvider:
    return FakeTokenProvider()


@pytest.fixture
def fakes():
    """Expose the fake collaborators to test modules."""

    class _Fakes:
        Factory = FakeFactory
        Transport = FakeTransport
        TokenProvider = FakeTokenProvider
        Geocoder = FakeGeocoder
        Recorder = EventRecorder

    return _Fakes


@pytest.fixture
def until() -> Callable[..., object]:
    return wait_until
