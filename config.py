"""Recognition settings and a read-only JSON config loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import structlog

from models import StreamConfig

logger = structlog.get_logger()

API_KEY_ENV = "DEEPGRAM_API_KEY"
SUPPORTED_LANGUAGES = ("en-US", "en-GB", "es", "fr", "de", "it", "pt", "nl")
MAX_TYPING_SPEED_MS = 1000

# JSON key -> RecognitionConfig field, for the camelCase names used by older configs
_ALIASES = {
    "deepgramApiKey": "api_key",
    "deepgramModel": "model",
    "interimResults": "interim_results",
    "endpointing": "endpointing_ms",
    "voiceCommands": "voice_commands",
    "typingSpeed": "typing_speed_ms",
    "customCommands": "custom_commands",
}

_FIELD_TYPES: dict[str, type] = {
    "api_key": str,
    "model": str,
    "language": str,
    "punctuate": bool,
    "interim_results": bool,
    "endpointing_ms": int,
    "voice_commands": bool,
    "typing_speed_ms": int,
    "custom_commands": dict,
    "hotkey": str,
}

_TRUE_WORDS = ("true", "yes", "on", "1")
_FALSE_WORDS = ("false", "no", "off", "0")


@dataclass(frozen=True)
class RecognitionConfig:
    api_key: str = ""
    model: str = "nova-2"
    language: str = "en-US"
    punctuate: bool = True
    interim_results: bool = True
    endpointing_ms: int = 300
    voice_commands: bool = True
    typing_speed_ms: int = 50
    custom_commands: dict[str, str] = field(default_factory=dict)
    hotkey: str = "<ctrl>+<shift>+s"

    def type_problems(self) -> list[str]:
        """Fields whose value has the wrong type, e.g. a string where a number belongs."""
        problems: list[str] = []
        for f in fields(self):
            value = getattr(self, f.name)
            expected = _FIELD_TYPES[f.name]
            if isinstance(value, bool) and expected is not bool:
                problems.append(f"{f.name} must be {expected.__name__}, got bool")
            elif not isinstance(value, expected):
                problems.append(f"{f.name} must be {expected.__name__}, got {type(value).__name__}")
        return problems

    def validate(self) -> list[str]:
        problems = self.type_problems()
        if problems:
            return problems
        if not self.api_key:
            problems.append(f"Deepgram API key is not configured (set api_key or {API_KEY_ENV})")
        if self.language not in SUPPORTED_LANGUAGES:
            problems.append(f"Unsupported language: {self.language}")
        if not 0 <= self.typing_speed_ms <= MAX_TYPING_SPEED_MS:
            problems.append(f"Typing speed must be between 0-{MAX_TYPING_SPEED_MS}ms")
        return problems

    def stream_config(self) -> StreamConfig:
        return StreamConfig(
            api_key=self.api_key,
            model=self.model,
            language=self.language,
            punctuate=self.punctuate,
            interim_results=self.interim_results,
            endpointing_ms=self.endpointing_ms,
        )


def normalize_command_action(value: Any) -> str:
    """Accept ``"ctrl+t"`` or ``{"keys": ["CommandOrControl", "T"]}``."""
    if isinstance(value, dict):
        keys = value.get("keys") or []
        return "+".join(str(key).strip().lower() for key in keys)
    return str(value).strip().lower()


def coerce_value(name: str, value: Any) -> Any:
    """Convert a JSON value to the field's type; raises ValueError when it cannot."""
    expected = _FIELD_TYPES[name]
    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE_WORDS + _FALSE_WORDS:
            return value.strip().lower() in _TRUE_WORDS
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
    elif expected is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
    elif isinstance(value, expected):
        return value
    raise ValueError(f"{name}: expected {expected.__name__}, got {value!r}")


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "speech_typer" / "config.json"

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> RecognitionConfig:
        data = self._read_all()
        known = {f.name for f in fields(RecognitionConfig)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                logger.debug("config_key_ignored", key=key)
                continue
            if name == "custom_commands" and value is None:
                continue
            try:
                values[name] = coerce_value(name, value)
            except ValueError as exc:
                # Falls back to the default for this field.
                logger.warning("config_value_invalid", key=key, error=str(exc))

        commands = values.get("custom_commands") or {}
        values["custom_commands"] = {
            str(phrase): action
            for phrase, action in (
                (phrase, normalize_command_action(raw)) for phrase, raw in commands.items()
            )
            if action
        }

        config = RecognitionConfig(**values)
        if not config.api_key:
            config = replace(config, api_key=os.getenv(API_KEY_ENV, ""))
        return config

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("config_unreadable", path=str(self._path), error=str(exc))
            return {}
        return data if isinstance(data, dict) else {}
