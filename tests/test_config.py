"""Tests for configuration loading."""

import pytest

from music_shelf.core import config as config_module
from music_shelf.core.config import (
    Config,
    _parse_config,
    get_database_path,
    load_config,
)


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Point XDG dirs and cwd at a temp dir so user config never leaks in."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("MUSIC_SHELF_DB_PATH", raising=False)
    monkeypatch.delenv("MUSIC_SHELF_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_missing_config_writes_default(isolated_dirs):
    config = load_config()

    written = isolated_dirs / "config" / "music-shelf" / "config.toml"
    assert written.exists()
    assert config == Config()


def test_default_file_parses_back_to_defaults(isolated_dirs):
    load_config()

    assert load_config() == Config()


def test_values_are_read(isolated_dirs):
    path = isolated_dirs / "custom.toml"
    path.write_text(
        """
[library]
supported_formats = ["MP3", ".ogg"]
duplicate_policy = "overwrite"

[player]
shuffle_mode = "weighted"
play_count_threshold = 10

[logging]
level = "debug"
"""
    )

    config = load_config(path)

    assert config.library.supported_formats == [".mp3", ".ogg"]
    assert config.library.duplicate_policy == "overwrite"
    assert config.player.shuffle_mode == "weighted"
    assert config.player.play_count_threshold == 10.0
    assert config.player.repeat_mode == "none"
    assert config.logging.level == "DEBUG"


def test_invalid_section_falls_back_to_defaults():
    config = _parse_config({"player": {"repeat_mode": "forever", "volume": 80}})

    assert config.player == Config().player


def test_broken_toml_falls_back_to_defaults(isolated_dirs):
    path = isolated_dirs / "broken.toml"
    path.write_text("[player\nvolume = ")

    assert load_config(path) == Config()


def test_log_level_env_override(isolated_dirs, monkeypatch):
    monkeypatch.setenv("MUSIC_SHELF_LOG_LEVEL", "warning")

    assert load_config().logging.level == "WARNING"


def test_database_path_precedence(isolated_dirs, monkeypatch):
    config = Config()
    assert get_database_path(config) == isolated_dirs / "data" / "music-shelf" / "music_shelf.db"

    config.library.db_path = str(isolated_dirs / "lib.db")
    assert get_database_path(config) == isolated_dirs / "lib.db"

    monkeypatch.setenv("MUSIC_SHELF_DB_PATH", str(isolated_dirs / "env.db"))
    assert get_database_path(config) == isolated_dirs / "env.db"


def test_cwd_config_wins(isolated_dirs):
    (isolated_dirs / "config.toml").write_text('[player]\nrepeat_mode = "all"\n')

    assert config_module.get_config_path() == isolated_dirs / "config.toml"
    assert load_config().player.repeat_mode == "all"
