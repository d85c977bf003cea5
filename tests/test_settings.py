"""Tests for persisted settings."""

import json

import pytest

from sysboard.settings import STORAGE_KEY, Settings, default_storage_path, load_settings, save_settings


def test_missing_file_gives_defaults(settings_path):
    assert load_settings(settings_path) == Settings()


def test_defaults():
    settings = Settings()

    assert settings.auto_refresh is True
    assert settings.refresh_interval == 30
    assert settings.theme == "dark"
    assert settings.confirm_dangerous_actions is True
    assert settings.show_system_processes is True


def test_save_and_load(settings_path):
    settings = Settings(auto_refresh=False, refresh_interval=10, theme="light")

    save_settings(settings, settings_path)

    assert load_settings(settings_path) == settings
    assert json.loads(settings_path.read_text())[STORAGE_KEY]["refresh_interval"] == 10


def test_save_preserves_other_keys(settings_path):
    settings_path.write_text(json.dumps({"window-state": {"width": 1200}}))

    save_settings(Settings(theme="light"), settings_path)

    store = json.loads(settings_path.read_text())
    assert store["window-state"] == {"width": 1200}
    assert store[STORAGE_KEY]["theme"] == "light"


def test_save_creates_parent_directories(tmp_path):
    path = tmp_path / "nested" / "dir" / "storage.json"

    save_settings(Settings(), path)

    assert path.exists()


def test_unreadable_json_gives_defaults(settings_path):
    settings_path.write_text("{not json")

    assert load_settings(settings_path) == Settings()


def test_non_object_entries_give_defaults(settings_path):
    settings_path.write_text(json.dumps({STORAGE_KEY: ["dark"]}))
    assert load_settings(settings_path) == Settings()

    settings_path.write_text(json.dumps([1, 2]))
    assert load_settings(settings_path) == Settings()


def test_bad_values_fall_back_per_field():
    """Test invalid entries keep their defaults; valid ones survive; unknown keys are ignored."""
    settings = Settings.from_mapping(
        {
            "auto_refresh": "yes",
            "refresh_interval": True,
            "theme": "solarized",
            "confirm_dangerous_actions": False,
            "show_system_processes": 1,
            "language": "zh",
        }
    )

    assert settings == Settings(confirm_dangerous_actions=False)


def test_interval_coercion():
    assert Settings.from_mapping({"refresh_interval": 15.0}).refresh_interval == 15
    assert Settings.from_mapping({"refresh_interval": 0}).refresh_interval == 30
    assert Settings.from_mapping({"refresh_interval": -5}).refresh_interval == 30
    assert Settings.from_mapping({"refresh_interval": 10**400}).refresh_interval == 30


@pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN", "1e400"])
def test_non_finite_interval_in_store_gives_default(settings_path, literal):
    """Test the JSON store's non-finite numbers are ignored rather than raised."""
    settings_path.write_text(f'{{"{STORAGE_KEY}": {{"refresh_interval": {literal}, "theme": "light"}}}}')

    settings = load_settings(settings_path)

    assert settings.refresh_interval == 30
    assert settings.theme == "light"


def test_storage_path_override(monkeypatch, tmp_path):
    monkeypatch.setenv("SYSBOARD_STORAGE", str(tmp_path / "custom.json"))

    assert default_storage_path() == tmp_path / "custom.json"


def test_default_storage_path(monkeypatch):
    monkeypatch.delenv("SYSBOARD_STORAGE", raising=False)

    assert default_storage_path().parts[-3:] == (".config", "sysboard", "storage.json")
