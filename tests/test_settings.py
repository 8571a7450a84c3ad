"""Tests for environment-driven settings."""

import pytest

from localchat.config.settings import Settings
from localchat.config.system_prompts import PREDEFINED_PROMPTS, resolve_system_prompt
from localchat.exceptions import ConfigError


def _settings(tmp_path, **kwargs):
    kwargs.setdefault("database_path", tmp_path / "chats.db")
    return Settings(_env_file=None, **kwargs)


def test_defaults(tmp_path):
    settings = _settings(tmp_path)
    assert settings.ollama_host == "http://localhost:11434"
    assert settings.chat_url == "http://localhost:11434/api/chat"
    assert settings.generate_url == "http://localhost:11434/api/generate"
    assert settings.request_timeout is None
    assert settings.follow_up_count == 3


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434/")
    monkeypatch.setenv("DEFAULT_MODEL", "mistral")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("FOLLOW_UP_SUGGESTIONS", "false")

    settings = _settings(tmp_path)

    assert settings.ollama_host == "http://gpu-box:11434"
    assert settings.default_model == "mistral"
    assert settings.log_level == "DEBUG"
    assert settings.follow_up_suggestions is False


@pytest.mark.parametrize(
    "field, value",
    [
        ("log_level", "CHATTY"),
        ("ollama_host", "localhost:11434"),
        ("request_timeout", 0),
        ("follow_up_count", -1),
    ],
)
def test_invalid_values_raise_config_error(tmp_path, field, value):
    with pytest.raises(ConfigError) as exc_info:
        _settings(tmp_path, **{field: value})
    assert exc_info.value.field_name == field


def test_missing_profile_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        _settings(tmp_path, models_json_path=tmp_path / "nope.json")


def test_system_prompt_resolves_presets(tmp_path):
    assert _settings(tmp_path, system_prompt_id=None).system_prompt is None
    assert (
        _settings(tmp_path, system_prompt_id="Coding").system_prompt
        == PREDEFINED_PROMPTS["coding"].prompt
    )
    assert _settings(tmp_path, system_prompt_id="Talk like a pirate.").system_prompt == (
        "Talk like a pirate."
    )


def test_resolve_system_prompt_treats_blank_as_none():
    assert resolve_system_prompt("   ") is None
    assert "programming" in resolve_system_prompt("coding")
