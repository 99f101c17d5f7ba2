from __future__ import annotations

import json
from pathlib import Path

from config import API_KEY_ENV, JsonConfigStore, RecognitionConfig


def test_missing_file_gives_defaults(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    store = JsonConfigStore(path=tmp_path / "config.json")

    config = store.load()

    assert config == RecognitionConfig()
    assert config.hotkey == "<ctrl>+<shift>+s"


def test_config_read(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "api_key": "abc",
                "model": "nova-3",
                "language": "de",
                "endpointing_ms": 500,
                "voice_commands": False,
                "typing_speed_ms": 10,
                "custom_commands": {"Open Terminal": "Ctrl+Alt+T"},
                "unknown": 1,
            }
        ),
        encoding="utf-8",
    )

    config = JsonConfigStore(path=path).load()

    assert config.api_key == "abc"
    assert config.model == "nova-3"
    assert config.language == "de"
    assert config.endpointing_ms == 500
    assert config.voice_commands is False
    assert config.typing_speed_ms == 10
    assert config.custom_commands == {"Open Terminal": "ctrl+alt+t"}


def test_camel_case_keys_and_key_list_commands(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "deepgramApiKey": "abc",
                "typingSpeed": 0,
                "customCommands": {
                    "save file": {"action": "hotkey", "keys": ["CommandOrControl", "S"]},
                    "broken": {"action": "hotkey"},
                },
            }
        ),
        encoding="utf-8",
    )

    config = JsonConfigStore(path=path).load()

    assert config.api_key == "abc"
    assert config.typing_speed_ms == 0
    assert config.custom_commands == {"save file": "commandorcontrol+s"}


def test_env_var_supplies_missing_api_key(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setenv(API_KEY_ENV, "from-env")
    config = JsonConfigStore(path=tmp_path / "config.json").load()
    assert config.api_key == "from-env"


def test_config_invalid_json_fallback(tmp_path: Path, monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    config = JsonConfigStore(path=path).load()
    assert config == RecognitionConfig()


def test_validate_reports_each_problem() -> None:
    assert RecognitionConfig(api_key="k").validate() == []

    problems = RecognitionConfig(api_key="", language="xx", typing_speed_ms=2000).validate()
    assert len(problems) == 3
    assert "API key" in problems[0]
    assert "xx" in problems[1]


def test_stream_config_carries_fixed_audio_format() -> None:
    stream = RecognitionConfig(api_key="k", punctuate=False, interim_results=False).stream_config()

    assert stream.api_key == "k"
    assert stream.punctuate is False
    assert stream.interim_results is False
    assert stream.encoding == "linear16"
    assert stream.sample_rate == 16000
    assert stream.channels == 1


def test_string_values_are_coerced_to_field_types(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"deepgramApiKey": "abc", "typingSpeed": "50", "voiceCommands": "false", "endpointing": 250.0}),
        encoding="utf-8",
    )

    config = JsonConfigStore(path=path).load()

    assert config.typing_speed_ms == 50
    assert config.voice_commands is False
    assert config.endpointing_ms == 250
    assert config.validate() == []


def test_unusable_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"api_key": "abc", "typingSpeed": "fast", "voiceCommands": "maybe", "customCommands": ["x"]}),
        encoding="utf-8",
    )

    config = JsonConfigStore(path=path).load()

    assert config.typing_speed_ms == 50
    assert config.voice_commands is True
    assert config.custom_commands == {}
    assert config.validate() == []


def test_validate_reports_wrong_types_instead_of_raising() -> None:
    config = RecognitionConfig(api_key="k", typing_speed_ms="50", voice_commands="false")  # type: ignore[arg-type]

    problems = config.validate()

    assert any("typing_speed_ms" in p for p in problems)
    assert any("voice_commands" in p for p in problems)


def test_bool_is_not_accepted_as_a_number() -> None:
    problems = RecognitionConfig(api_key="k", endpointing_ms=True).type_problems()  # type: ignore[arg-type]
    assert problems == ["endpointing_ms must be int, got bool"]
