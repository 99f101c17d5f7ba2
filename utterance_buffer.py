"""Running text of the current dictation session."""

from __future__ import annotations


class UtteranceBuffer:
    def __init__(self) -> None:
        self._text = ""

    def reset(self) -> None:
        self._text = ""

    def append(self, fragment: str) -> str:
        """Append a finalized fragment and return the exact text to type.

        Fragments after the first get a single separating space, so the
        returned value and the buffer contents never disagree.
        """
        spaced = f" {fragment}" if self._text else fragment
        self._text += spaced
        return spaced

    def is_empty(self) -> bool:
        return not self._text

    @property
    def text(self) -> str:
        return self._text
