"""Chat session: one connection, one history, one map."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from .accumulator import MessageAccumulator
from .auth import TokenProvider
from .encoder import OutboundEncoder
from .errors import TransportError
from .events import EventBus, MarkersUpdated, SendRejected, TurnAppended, TurnCompleted
from .geocoding import Geocoder, resolve_markers
from .locations import LocationExtractor
from .mapview import MapState
from .reconnect import ReconnectionController
from .transport import Frame, TransportFactory
from .types import ChatTurn, ConnectionState, GeoPoint, ParsedLocation

PositionProvider = Callable[[], Awaitable[GeoPoint | None]]


class ChatSession:
    """Wire the controller, accumulator, extractor and map state together.

    Inbound frames are handled strictly in arrival order by the controller's
    reader task. Geocoding for a completed turn runs in a background task so
    it never holds up the next frame.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        token_provider: TokenProvider,
        geocoder: Geocoder,
        *,
        bus: EventBus | None = None,
        extractor: LocationExtractor | None = None,
        encoder: OutboundEncoder | None = None,
        position_provider: PositionProvider | None = None,
        max_attempts: int = 5,
        base_delay: float = 2.0,
    ) -> None:
        self.bus = bus or EventBus()
        self.controller = ReconnectionController(
            transport_factory,
            token_provider,
            self.bus,
            max_attempts=max_attempts,
            base_delay=base_delay,
        )
        self.controller.on_frame(self.handle_frame)
        self.accumulator = MessageAccumulator()
        self.extractor = extractor or LocationExtractor()
        self.encoder = encoder or OutboundEncoder()
        self.map = MapState()
        self.geocoder = geocoder
        self.user_position: GeoPoint | None = None
        self._position_provider = position_provider
        self._plot_tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def state(self) -> ConnectionState:
        return self.controller.state

    @property
    def turns(self) -> list[ChatTurn]:
        return self.accumulator.turns

    async def start(self) -> ConnectionState:
        self._closed = False
        return await self.controller.connect()

    async def retry(self) -> ConnectionState:
        return await self.controller.retry()

    def update_user_position(self, position: GeoPoint | None) -> None:
        self.user_position = position

    async def send(self, text: str) -> bool:
        if not text.strip():
            return self._reject("empty message", text)
        if not self.controller.connected:
            return self._reject("not connected", text)

        payload = self.encoder.build(text, self.user_position)
        try:
            await self.controller.send(self.encoder.encode(payload))
        except TransportError as exc:
            logger.warning("session.send.failed error={}", exc)
            return self._reject(str(exc) or type(exc).__name__, text)

        turn = self.accumulator.add_user_turn(text)
        self.map.clear()
        self.bus.publish(TurnAppended(turn=turn, fragment=text))
        return True

    async def handle_frame(self, raw: Frame) -> None:
        result = self.accumulator.feed(raw)
        if result is None:
            return
        self.bus.publish(TurnAppended(turn=result.turn, fragment=result.fragment))
        if result.completed:
            self._complete(result.turn)

    async def close(self) -> None:
        self._closed = True
        # Stop the reader first so no turn can complete while plots are cancelled.
        await self.controller.close()
        for task in list(self._plot_tasks):
            task.cancel()
        for task in list(self._plot_tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._plot_tasks.clear()

    async def wait_for_markers(self) -> None:
        """Wait until pending marker resolution has finished."""
        if self._plot_tasks:
            await asyncio.gather(*self._plot_tasks, return_exceptions=True)

    def _complete(self, turn: ChatTurn) -> None:
        extraction = self.extractor.extract(turn.text)
        if extraction.source == "structured":
            turn.text = extraction.visible_text
        locations = tuple(extraction.locations)
        self.bus.publish(TurnCompleted(turn=turn, locations=locations))
        if not locations or self._closed:
            return
        self.map.show_toggle = True
        task = asyncio.create_task(self._plot(locations, self.map.generation))
        self._plot_tasks.add(task)
        task.add_done_callback(self._plot_tasks.discard)

    async def _plot(self, locations: Sequence[ParsedLocation], generation: int) -> None:
        position = await self._current_position()
        if position is None:
            logger.warning("session.plot.skipped reason=user position unknown")
            return
        markers = await resolve_markers(locations, self.geocoder, position)
        if generation != self.map.generation:
            logger.info("session.plot.discarded reason=superseded by a newer query")
            return
        replaced = self.map.replace_markers(markers)
        self.bus.publish(MarkersUpdated(markers=replaced))

    async def _current_position(self) -> GeoPoint | None:
        if self._position_provider is not None:
            try:
                position = await self._position_provider()
            except Exception:
                logger.exception("session.position.error")
            else:
                if position is not None:
                    self.user_position = position
        return self.user_position

    def _reject(self, reason: str, text: str) -> bool:
        logger.info("session.send.rejected reason={}", reason)
        self.bus.publish(SendRejected(reason=reason, text=text))
        return False
