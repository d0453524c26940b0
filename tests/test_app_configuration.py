"""Tests for the YAML-backed settings store."""

import yaml

from voicewarden.configuration.app_configuration import DEFAULT_SETTINGS, AppConfig


def write_config(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_file_values_overlay_defaults(tmp_path):
    config = AppConfig(write_config(tmp_path / "app.yml", {"ban_limit": 5, "guild_id": 123}))
    assert config.get("ban_limit") == 5
    assert config.guild_id == "123"
    assert config.get("kick_command") == DEFAULT_SETTINGS["kick_command"]


def test_overrides_win(tmp_path):
    config = AppConfig(write_config(tmp_path / "app.yml", {"ban_limit": 5}), overrides={"ban_limit": 9})
    assert config["ban_limit"] == 9


def test_missing_or_invalid_file_falls_back_to_defaults(tmp_path):
    assert AppConfig(tmp_path / "absent.yml").data == DEFAULT_SETTINGS
    listing = tmp_path / "list.yml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    assert AppConfig(listing).data == DEFAULT_SETTINGS
    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    assert AppConfig(empty).data == DEFAULT_SETTINGS


def test_save_round_trip(tmp_path):
    path = tmp_path / "config" / "app.yml"
    config = AppConfig(path)
    config.set("channel_name_rotation_names", ["Den", "Nook"])
    assert config.save()
    assert AppConfig(path).get("channel_name_rotation_names") == ["Den", "Nook"]


def test_save_without_path():
    assert not AppConfig().save()


def test_reload_discards_unsaved_edits(tmp_path):
    config = AppConfig(write_config(tmp_path / "app.yml", {"ban_limit": 5}))
    config.set("ban_limit", 1)
    config.reload()
    assert config.get("ban_limit") == 5


def test_toggle_and_flags():
    config = AppConfig()
    assert not config.debug_enabled
    assert config.toggle("enable_debug") is True
    assert config.debug_enabled
    assert config.queue_enabled
    config.set("queue_enabled", False)
    assert not config.queue_enabled
    assert "enable_debug" in config


def test_queue_interval_fallback():
    config = AppConfig(overrides={"queue_interval": 0.5})
    assert config.queue_interval == 0.5
    for bad in (0, -1, "fast", None):
        config.set("queue_interval", bad)
        assert config.queue_interval == 2.0
