from __future__ import annotations

from errors import AUTH_FAILED, ERROR_MESSAGES, ConfigError, StreamError


def test_default_message_comes_from_code() -> None:
    error = ConfigError()
    assert error.message == ERROR_MESSAGES["CONFIG_ERROR"]
    assert str(error) == error.message


def test_user_message_follows_overridden_code() -> None:
    error = StreamError("HTTP 401: credential rejected", code=AUTH_FAILED)

    assert error.code == AUTH_FAILED
    assert error.message == "HTTP 401: credential rejected"
    assert error.user_message == "API key is invalid."
