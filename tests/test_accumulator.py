from __future__ import annotations

import json

from streamhub.accumulator import MessageAccumulator, decode_frame
from streamhub.types import Sender


def _frame(data: str | None = None, *, done: bool = False) -> str:
    body: dict[str, object] = {}
    if data is not None:
        body["data"] = data
    if done:
        body["turn_complete"] = True
    return json.dumps(body)


def test_fragments_assemble_into_one_completed_turn() -> None:
    accumulator = MessageAccumulator()

    results = [accumulator.feed(_frame("Hel")), accumulator.feed(_frame("lo")), accumulator.feed(_frame(done=True))]

    completed = [result for result in results if result is not None and result.completed]
    assert len(completed) == 1
    turn = completed[0].turn
    assert turn.text == "Hello"
    assert turn.complete
    assert turn.sender is Sender.SERVER
    assert accumulator.open_turn is None
    assert len(accumulator.turns) == 1


def test_final_frame_text_is_appended_before_closing() -> None:
    accumulator = MessageAccumulator()
    accumulator.feed(_frame("Hi "))

    result = accumulator.feed(_frame("there", done=True))

    assert result is not None
    assert result.completed
    assert result.turn.text == "Hi there"


def test_empty_non_final_fragments_are_dropped() -> None:
    accumulator = MessageAccumulator()

    assert accumulator.feed(_frame("")) is None
    assert accumulator.feed(_frame()) is None
    assert accumulator.feed("") is None
    assert accumulator.turns == []


def test_malformed_frames_are_literal_text() -> None:
    accumulator = MessageAccumulator()

    accumulator.feed("not json {")
    accumulator.feed(json.dumps(["a", "list"]))
    accumulator.feed(json.dumps({"data": 42}))

    assert accumulator.open_turn is not None
    assert accumulator.open_turn.text == 'not json {["a", "list"]{"data": 42}'


def test_bytes_frames_are_decoded() -> None:
    frame = decode_frame(_frame("café", done=True).encode("utf-8"))

    assert frame.text == "café"
    assert frame.turn_complete


def test_turn_complete_key_closes_whatever_its_value() -> None:
    frame = decode_frame(json.dumps({"data": "x", "turn_complete": False}))

    assert frame.turn_complete


def test_new_turn_starts_after_completion() -> None:
    accumulator = MessageAccumulator()
    accumulator.feed(_frame("first", done=True))

    result = accumulator.feed(_frame("second"))

    assert result is not None
    assert [turn.text for turn in accumulator.turns] == ["first", "second"]
    assert accumulator.open_turn is result.turn


def test_user_turn_ends_open_server_turn() -> None:
    accumulator = MessageAccumulator()
    accumulator.feed(_frame("partial"))

    accumulator.add_user_turn("question")
    accumulator.feed(_frame("answer"))

    assert [(turn.sender, turn.text) for turn in accumulator.turns] == [
        (Sender.SERVER, "partial"),
        (Sender.USER, "question"),
        (Sender.SERVER, "answer"),
    ]


def test_bare_end_marker_without_open_turn_is_ignored() -> None:
    accumulator = MessageAccumulator()

    assert accumulator.feed(_frame(done=True)) is None
    assert accumulator.turns == []
