"""Connection lifecycle with exponential-backoff reconnection."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from loguru import logger

from .auth import TokenProvider
from .errors import CredentialError, NotConnectedError, RetryExhaustedError, TransportError
from .events import ConnectionStateChanged, CredentialFailed, EventBus, ReconnectScheduled
from .transport import Frame, Transport, TransportFactory
from .types import ConnectionState, RetryState

FrameHandler = Callable[[Frame], Awaitable[None]]


class ReconnectionController:
    """Own at most one live transport and decide when to (re)establish it.

    States move Disconnected -> Connecting -> Connected, and on failure to
    Reconnecting until a retry succeeds or the retry budget is spent
    (Exhausted). Exhausted is left only through ``reset()`` or ``retry()``.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        token_provider: TokenProvider,
        bus: EventBus,
        *,
        max_attempts: int = 5,
        base_delay: float = 2.0,
    ) -> None:
        self._transport_factory = transport_factory
        self._token_provider = token_provider
        self._bus = bus
        self.retry_state = RetryState(max_attempts=max_attempts, base_delay=base_delay)
        self._state = ConnectionState.DISCONNECTED
        self._transport: Transport | None = None
        self._on_frame: FrameHandler | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._pending: asyncio.Task[None] | None = None
        self._reader: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._transport is not None

    @property
    def attempt_count(self) -> int:
        return self.retry_state.attempt_count

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    def on_frame(self, handler: FrameHandler) -> None:
        self._on_frame = handler

    def status_text(self) -> str:
        retry = self.retry_state
        if self._state is ConnectionState.CONNECTED:
            return "Connected."
        if self._state is ConnectionState.EXHAUSTED:
            return f"Unable to reconnect after {retry.max_attempts} attempts."
        if retry.attempt_count > 0:
            return f"Re-establishing connection... (Attempt {retry.attempt_count}/{retry.max_attempts})"
        return "Establishing connection..."

    async def connect(self) -> ConnectionState:
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return self._state
        if self._state is ConnectionState.EXHAUSTED:
            raise RetryExhaustedError(self.retry_state.attempt_count)

        self._closed = False
        self._cancel_timer()
        self._set_state(ConnectionState.CONNECTING)

        token = await self._fetch_token()
        try:
            transport = await self._transport_factory(token)
        except Exception as exc:
            if self._closed:
                return self._state
            logger.warning("reconnect.connect.failed attempt={} error={}", self.retry_state.attempt_count, exc)
            self._handle_failure(str(exc))
            return self._state

        if self._closed:
            await transport.close()
            return self._state

        self._transport = transport
        self.retry_state.reset()
        self._cancel_timer()
        self._set_state(ConnectionState.CONNECTED)
        self._reader = asyncio.create_task(self._read_loop(transport))
        return self._state

    async def send(self, frame: str) -> None:
        transport = self._transport
        if transport is None or self._state is not ConnectionState.CONNECTED:
            raise NotConnectedError(f"cannot send while {self._state.value}")
        await transport.send(frame)

    def reset(self) -> None:
        """Zero the retry budget; leaves Exhausted for Disconnected."""
        self.retry_state.reset()
        if self._state is ConnectionState.EXHAUSTED:
            self._set_state(ConnectionState.DISCONNECTED, reason="reset")

    async def retry(self) -> ConnectionState:
        self.reset()
        self._cancel_timer()
        return await self.connect()

    async def close(self) -> None:
        self._closed = True
        self._cancel_timer()
        current = asyncio.current_task()
        for task in (self._pending, self._reader):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending = None
        self._reader = None
        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_transport(transport)
        self._set_state(ConnectionState.DISCONNECTED, reason="closed")

    async def _fetch_token(self) -> str:
        try:
            return await self._token_provider.get_token(force_refresh=True)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            logger.warning("reconnect.credential.failed error={}", reason)
            self._set_state(ConnectionState.DISCONNECTED, reason=reason)
            self._bus.publish(CredentialFailed(reason=reason))
            if isinstance(exc, CredentialError):
                raise
            raise CredentialError(reason) from exc

    def _handle_failure(self, reason: str) -> None:
        retry = self.retry_state
        if retry.exhausted:
            logger.error("reconnect.exhausted attempts={} reason={}", retry.attempt_count, reason)
            self._set_state(ConnectionState.EXHAUSTED, reason=reason)
            return
        delay = retry.next_delay()
        retry.record_failure()
        self._set_state(ConnectionState.RECONNECTING, reason=reason)
        self._schedule(delay)
        logger.info(
            "reconnect.scheduled delay={}s attempt={}/{}", delay, retry.attempt_count, retry.max_attempts
        )
        self._bus.publish(
            ReconnectScheduled(delay=delay, attempt=retry.attempt_count, max_attempts=retry.max_attempts)
        )

    def _schedule(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().call_later(delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self._closed:
            return
        self._pending = asyncio.get_running_loop().create_task(self._scheduled_connect())

    async def _scheduled_connect(self) -> None:
        try:
            await self.connect()
        except (CredentialError, RetryExhaustedError):
            return
        except Exception:
            logger.exception("reconnect.scheduled_connect.error")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _read_loop(self, transport: Transport) -> None:
        reason = "closed by server"
        try:
            async for frame in transport.frames():
                await self._dispatch(frame)
        except TransportError as exc:
            reason = str(exc)
        except Exception as exc:
            logger.exception("reconnect.reader.error")
            reason = f"{type(exc).__name__}: {exc}"

        if self._closed or transport is not self._transport:
            return
        self._transport = None
        await self._close_transport(transport)
        logger.warning("reconnect.dropped reason={}", reason)
        self._handle_failure(reason)

    async def _dispatch(self, frame: Frame) -> None:
        if self._on_frame is None:
            return
        try:
            await self._on_frame(frame)
        except Exception:
            logger.exception("reconnect.frame_handler.error")

    @staticmethod
    async def _close_transport(transport: Transport) -> None:
        try:
            await transport.close()
        except Exception:
            logger.exception("reconnect.transport.close_error")

    def _set_state(self, state: ConnectionState, *, reason: str | None = None) -> None:
        previous = self._state
        if previous is state:
            return
        self._state = state
        logger.info("reconnect.state {} -> {}", previous.value, state.value)
        self._bus.publish(
            ConnectionStateChanged(
                previous=previous,
                current=state,
                attempt=self.retry_state.attempt_count,
                reason=reason,
            )
        )
