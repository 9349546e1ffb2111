"""Tests for settings.json management and config helpers"""
import json

import pytest

import config
from settings import SettingsManager


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "settings.json"


def test_defaults_without_file(settings_path):
    manager = SettingsManager(path=settings_path)
    assert manager.get("recognition.language") == "vi"
    assert manager.get("recognition.chunk_interval") == 8.0
    assert manager.get("providers.assemblyai.poll_attempts") == 30
    assert manager.get("unknown.key", "fallback") == "fallback"


def test_set_save_and_reload(settings_path):
    manager = SettingsManager(path=settings_path)

    requires_restart = manager.set("recognition.language", "en")
    assert requires_restart is False
    assert manager.set("server.port", "9100") is True
    manager.save_to_config()

    reloaded = SettingsManager(path=settings_path)
    assert reloaded.get("recognition.language") == "en"
    assert reloaded.get("server.port") == 9100
    assert not list(settings_path.parent.glob("*.tmp"))


def test_invalid_values_fall_back_to_default(settings_path):
    settings_path.write_text(json.dumps({
        "recognition.language": "fr",
        "recognition.chunk_interval": 0.1,
        "server.port": "not a port",
        "debug.log_to_console": "no",
    }), encoding="utf-8")

    manager = SettingsManager(path=settings_path)

    assert manager.get("recognition.language") == "vi"
    assert manager.get("recognition.chunk_interval") == 8.0
    assert manager.get("server.port") == 9014
    assert manager.get("debug.log_to_console") is False


def test_unknown_setting_rejected(settings_path):
    manager = SettingsManager(path=settings_path)
    with pytest.raises(KeyError):
        manager.set("recognition.nope", 1)


def test_corrupted_file_is_backed_up(settings_path):
    settings_path.write_text("{not json", encoding="utf-8")

    manager = SettingsManager(path=settings_path)

    assert manager.get("recognition.language") == "vi"
    assert settings_path.with_suffix(".json.corrupted").exists()


def test_reset_to_defaults(settings_path):
    manager = SettingsManager(path=settings_path)
    manager.set("recognition.language", "ko")
    manager.save_to_config()

    manager.reset_to_defaults()

    assert not settings_path.exists()
    assert manager.get("recognition.language") == "vi"


def test_get_all_groups_by_category(settings_path):
    grouped = SettingsManager(path=settings_path).get_all()
    assert "recognition.language" in grouped["Recognition"]
    assert grouped["Recognition"]["recognition.language"]["options"] == ["vi", "en", "es", "ja", "ko"]


@pytest.mark.parametrize("value, expected", [
    ("", False),
    ("   0123456789   ", False),
    ("01234567890", True),
    (None, False),
])
def test_credential_length(value, expected):
    assert config.is_credential_valid(value) is expected


def test_has_credentials(credentials):
    assert config.has_credentials(credentials) is True
    assert config.has_credentials({**credentials, "audd_api_token": "short"}) is False
    assert config.has_credentials({}) is False
