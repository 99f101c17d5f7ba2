"""Shared error types, codes and user-facing messages."""

from __future__ import annotations

CONFIG_ERROR = "CONFIG_ERROR"
CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
AUDIO_ERROR = "AUDIO_ERROR"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"

ERROR_MESSAGES = {
    CONFIG_ERROR: "Settings are incomplete or invalid.",
    CONNECTION_TIMEOUT: "Speech service did not answer in time, please retry.",
    NETWORK_ERROR: "Connection to the speech service failed.",
    AUTH_FAILED: "API key is invalid.",
    AUDIO_ERROR: "Microphone is unavailable.",
    NO_ACTIVE_TARGET: "Keystrokes could not be sent to the active window.",
}


class DictationError(Exception):
    code = NETWORK_ERROR

    def __init__(self, message: str = "", code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES.get(self.code, self.message)


class ConfigError(DictationError):
    code = CONFIG_ERROR


class ConnectionTimeout(DictationError):
    code = CONNECTION_TIMEOUT


class StreamError(DictationError):
    code = NETWORK_ERROR


class SourceError(DictationError):
    code = AUDIO_ERROR


class ActuatorError(DictationError):
    code = NO_ACTIVE_TARGET
