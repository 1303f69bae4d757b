"""Assemble streamed inbound frames into chat turns."""

from __future__ import annotations

import json
from dataclasses import dataclass

from loguru import logger

from .errors import FrameDecodeError
from .transport import Frame
from .types import ChatTurn, Sender


@dataclass(frozen=True)
class InboundFrame:
    text: str
    turn_complete: bool = False


@dataclass(frozen=True)
class FeedResult:
    turn: ChatTurn
    fragment: str
    completed: bool


def _frame_text(raw: Frame) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def parse_envelope(text: str) -> InboundFrame:
    """Parse ``{"data": str, "turn_complete": true}``; raise on any other shape."""
    try:
        decoded = json.loads(text)
    except ValueError as exc:
        raise FrameDecodeError(f"not json: {exc}") from exc
    if not isinstance(decoded, dict):
        raise FrameDecodeError(f"expected an object, got {type(decoded).__name__}")
    data = decoded.get("data")
    if data is None:
        data = ""
    elif not isinstance(data, str):
        raise FrameDecodeError(f"data must be a string, got {type(data).__name__}")
    # The key alone marks the end of a turn, whatever its value.
    return InboundFrame(text=data, turn_complete="turn_complete" in decoded)


def decode_frame(raw: Frame) -> InboundFrame:
    """Decode one frame, treating anything malformed as a literal text fragment."""
    text = _frame_text(raw)
    try:
        return parse_envelope(text)
    except FrameDecodeError as exc:
        logger.debug("accumulator.frame.literal reason={}", exc)
        return InboundFrame(text=text)


class MessageAccumulator:
    """Ordered chat history with at most one open server turn."""

    def __init__(self) -> None:
        self._turns: list[ChatTurn] = []
        self._open: ChatTurn | None = None

    @property
    def turns(self) -> list[ChatTurn]:
        return list(self._turns)

    @property
    def open_turn(self) -> ChatTurn | None:
        return self._open

    def add_user_turn(self, text: str) -> ChatTurn:
        turn = ChatTurn(sender=Sender.USER, text=text, complete=True)
        self._turns.append(turn)
        # A user turn ends the server turn for append purposes.
        self._open = None
        return turn

    def feed(self, raw: Frame) -> FeedResult | None:
        frame = decode_frame(raw)
        if not frame.text and not frame.turn_complete:
            return None

        turn = self._open
        if turn is None:
            if not frame.text:
                logger.debug("accumulator.turn_complete.without_turn")
                return None
            turn = ChatTurn(sender=Sender.SERVER)
            self._turns.append(turn)
            self._open = turn

        turn.append(frame.text)
        if frame.turn_complete:
            turn.complete = True
            self._open = None
            logger.debug("accumulator.turn.complete length={}", len(turn.text))
        return FeedResult(turn=turn, fragment=frame.text, completed=frame.turn_complete)

    def clear(self) -> None:
        self._turns.clear()
        self._open = None
