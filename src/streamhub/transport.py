"""Streaming transport: one physical WebSocket connection."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from loguru import logger
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, InvalidStatus, WebSocketException

from .errors import NotConnectedError, TransportError

Frame = str | bytes


class Transport(Protocol):
    """Raw frames in, raw frames out."""

    async def send(self, frame: str) -> None: ...

    def frames(self) -> AsyncIterator[Frame]: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str], Awaitable[Transport]]


def with_token(url: str, token: str) -> str:
    """Attach the credential as the ``token`` query parameter."""
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "token"]
    query.append(("token", token))
    return urlunsplit(parts._replace(query=urlencode(query)))


class WebSocketTransport:
    """Transport backed by a ``websockets`` client connection."""

    def __init__(self, connection: ClientConnection) -> None:
        self._connection: ClientConnection | None = connection

    @classmethod
    async def open(cls, url: str, token: str, *, open_timeout: float = 10.0) -> WebSocketTransport:
        target = with_token(url, token)
        try:
            connection = await connect(target, open_timeout=open_timeout, ping_interval=30, ping_timeout=10)
        except InvalidStatus as exc:
            status = exc.response.status_code
            raise TransportError(f"HTTP {status}: connection rejected") from exc
        except (WebSocketException, OSError, TimeoutError) as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        logger.info("transport.open url={}", url)
        return cls(connection)

    async def send(self, frame: str) -> None:
        if self._connection is None:
            raise NotConnectedError("transport is closed")
        try:
            await self._connection.send(frame)
        except WebSocketException as exc:
            raise TransportError(f"send failed: {exc}") from exc

    async def frames(self) -> AsyncIterator[Frame]:
        if self._connection is None:
            return
        try:
            async for message in self._connection:
                yield message
        except ConnectionClosedOK:
            return
        except ConnectionClosedError as exc:
            raise TransportError(f"connection dropped: {exc}") from exc

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        await connection.close()
        logger.info("transport.closed")


def websocket_factory(url: str, *, open_timeout: float = 10.0) -> TransportFactory:
    async def _open(token: str) -> Transport:
        return await WebSocketTransport.open(url, token, open_timeout=open_timeout)

    return _open
