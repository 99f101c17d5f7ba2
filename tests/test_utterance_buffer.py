from __future__ import annotations

from utterance_buffer import UtteranceBuffer


def test_append_inserts_single_space_after_first_fragment() -> None:
    buffer = UtteranceBuffer()
    buffer.reset()

    assert buffer.append("hello") == "hello"
    assert buffer.append("world") == " world"
    assert buffer.text == "hello world"


def test_reset_discards_previous_text() -> None:
    buffer = UtteranceBuffer()
    buffer.append("stale")

    buffer.reset()

    assert buffer.is_empty() is True
    assert buffer.append("fresh") == "fresh"


def test_is_empty_tracks_content() -> None:
    buffer = UtteranceBuffer()
    assert buffer.is_empty() is True
    buffer.append("x")
    assert buffer.is_empty() is False
