"""Voice command classification with tolerance for transcription noise."""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Mapping, Optional

import structlog
from rapidfuzz.distance import Levenshtein

from models import Command, ParsedUtterance, Text

logger = structlog.get_logger()

SIMILARITY_THRESHOLD = 0.85

DEFAULT_COMMANDS: dict[str, str] = {
    "press enter": "enter",
    "new line": "enter",
    "press backspace": "backspace",
    "backspace": "backspace",
    "delete": "backspace",
    "press tab": "tab",
    "tab": "tab",
    "select all": "ctrl+a",
    "copy": "ctrl+c",
    "paste": "ctrl+v",
    "cut": "ctrl+x",
    "undo": "ctrl+z",
    "redo": "ctrl+y",
    "save": "ctrl+s",
    "period": ".",
    "comma": ",",
    "question mark": "?",
    "exclamation mark": "!",
    "exclamation point": "!",
}


def normalize(text: str) -> str:
    return text.strip().lower()


def similarity(s1: str, s2: str) -> float:
    """Return ``(max_len - edit_distance) / max_len``, 1.0 for two empty strings."""
    max_len = max(len(s1), len(s2))
    if max_len == 0:
        return 1.0
    return (max_len - Levenshtein.distance(s1, s2)) / max_len


class CommandMatcher:
    """Maps free text to a command action.

    The table is an immutable snapshot replaced wholesale on every mutation,
    so a classification running on another thread always sees one complete
    version of it.
    """

    def __init__(
        self,
        custom_commands: Optional[Mapping[str, str]] = None,
        threshold: float = SIMILARITY_THRESHOLD,
    ) -> None:
        self._threshold = threshold
        self._write_lock = threading.Lock()
        self._table: Mapping[str, str] = MappingProxyType({})
        self.replace(custom_commands or {})

    def classify(self, text: str) -> ParsedUtterance:
        if not text or not text.strip():
            return Text(value=text)

        table = self._table
        normalized = normalize(text)

        action = table.get(normalized)
        if action is not None:
            return Command(action=action, original_text=text)

        # First phrase above the threshold wins, in table insertion order.
        for phrase, action in table.items():
            if similarity(normalized, phrase) > self._threshold:
                logger.debug("fuzzy_command_match", text=normalized, phrase=phrase)
                return Command(action=action, original_text=text)

        return Text(value=text)

    def add(self, phrase: str, action: str) -> None:
        key = normalize(phrase)
        if not key:
            raise ValueError("command phrase must not be empty")
        with self._write_lock:
            table = dict(self._table)
            table[key] = action
            self._table = MappingProxyType(table)

    def remove(self, phrase: str) -> None:
        key = normalize(phrase)
        with self._write_lock:
            if key not in self._table:
                return
            table = dict(self._table)
            del table[key]
            self._table = MappingProxyType(table)

    def replace(self, custom_commands: Mapping[str, str]) -> None:
        """Rebuild the table from the defaults plus ``custom_commands``."""
        table = dict(DEFAULT_COMMANDS)
        for phrase, action in custom_commands.items():
            key = normalize(phrase)
            if key:
                table[key] = action
        with self._write_lock:
            self._table = MappingProxyType(table)
        logger.debug("command_table_loaded", size=len(table))

    def commands(self) -> dict[str, str]:
        return dict(self._table)
