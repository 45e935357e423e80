"""Tests for config.ini loading."""

from pathlib import Path

import pytest

from longbox import config as config_module
from longbox.config import DEFAULT_CONVERT_COMMAND, load_config, write_default_config


def test_write_and_load_default_config(tmp_path):
    config_path = tmp_path / "config.ini"
    write_default_config(config_path, [tmp_path / "comics", tmp_path / "manga"])

    config = load_config(config_path)

    assert config.roots == (tmp_path / "comics", tmp_path / "manga")
    # No explicit conversion root: the first library root is used
    assert config.conversion_root == tmp_path / "comics"
    assert config.converter.command == DEFAULT_CONVERT_COMMAND
    assert config.scanner.marker_file == ".metadata.txt"
    assert config.thumbnails.height == 300
    assert config.thumbnails.quality == 80
    assert config.scan_interval_seconds == 300
    assert config.data_dir == tmp_path
    assert config.database_path == tmp_path / "library.db"
    assert config.thumbnails_dir == tmp_path / "thumbnails"


def test_load_config_roots_split_on_commas_and_newlines(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[library]\n"
        "roots = /comics/a, /comics/b\n"
        "    /comics/c/\n"
        "conversion_root = /comics/b\n"
        "[monitoring]\n"
        "enabled = yes\n"
    )

    config = load_config(config_path)

    assert config.roots == (Path("/comics/a"), Path("/comics/b"), Path("/comics/c"))
    assert config.conversion_root == Path("/comics/b")
    assert config.monitoring.enabled is True


def test_load_config_without_roots_falls_back_to_conversion_root(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[library]\nconversion_root = /incoming\n")

    config = load_config(config_path)

    assert config.roots == (Path("/incoming"),)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.ini")


def test_get_config_is_cached_until_reset(tmp_path, monkeypatch):
    config_path = tmp_path / "config.ini"
    write_default_config(config_path, [tmp_path / "comics"])
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", config_path)
    config_module.reset_config_cache()

    try:
        first = config_module.get_config()
        assert first.roots == (tmp_path / "comics",)

        write_default_config(config_path, [tmp_path / "manga"])
        assert config_module.get_config() is first

        config_module.reset_config_cache()
        assert config_module.get_config().roots == (tmp_path / "manga",)
    finally:
        config_module.reset_config_cache()
