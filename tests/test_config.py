"""
Tests for configuration loading and validation.
"""
import os

import pytest

from udisk_backup.config import ConfigManager, ConfigValidator, DEFAULT_CONFIG


def test_load_config_basic(temp_config_file, source_dir, tmp_path):
    """Test basic configuration loading."""
    manager = ConfigManager(str(temp_config_file))
    config = manager.load_config()

    assert manager.config_file == str(temp_config_file)
    assert config['backup']['source'] == str(source_dir)
    assert manager.get_allowed_mount_roots() == [f"{tmp_path}/media/"]
    assert manager.get_history_config()['limit'] == 20
    assert manager.get_logging_config()['level'] == 'WARNING'
    assert manager.get_logging_config()['file'] is None


def test_defaults_fill_missing_keys(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("backup:\n  label: OFFSITE\n")

    config = ConfigManager(str(config_file)).load_config()

    assert config['backup']['label'] == 'OFFSITE'
    assert config['backup']['source'] == '/mnt/shared'
    assert config['backup']['allowed_mount_roots'] == ['/media/', '/mnt/', '/run/media/']
    assert config['history']['limit'] == 50


def test_empty_file_uses_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")

    config = ConfigManager(str(config_file)).load_config()

    assert config == DEFAULT_CONFIG


def test_defaults_are_not_shared(tmp_path):
    """Test mutating a loaded config leaves the built-in defaults alone."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    config = ConfigManager(str(config_file)).load_config()

    config['backup']['allowed_mount_roots'].append('/srv/')

    assert DEFAULT_CONFIG['backup']['allowed_mount_roots'] == ['/media/', '/mnt/', '/run/media/']


def test_no_config_file_anywhere(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_LOCATIONS", [str(tmp_path / "missing.yaml")])

    manager = ConfigManager()
    config = manager.load_config()

    assert manager.config_file is None
    assert config['backup']['label'] == 'USB_BACKUP'


def test_default_location_search(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yml").write_text("history:\n  limit: 7\n")

    manager = ConfigManager()
    config = manager.load_config()

    assert manager.config_file == "config.yml"
    assert config['history']['limit'] == 7


def test_explicit_path_must_exist(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigManager(str(tmp_path / "nope.yaml")).load_config()


def test_invalid_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("backup: [unclosed\n")

    with pytest.raises(ValueError, match="Invalid YAML"):
        ConfigManager(str(config_file)).load_config()


@pytest.mark.parametrize("config", [
    ["not", "a", "mapping"],
    {"backup": "nope"},
    {"backup": {"source": ""}},
    {"backup": {"source": "relative/path"}},
    {"backup": {"label": "  "}},
    {"backup": {"allowed_mount_roots": "/media/"}},
    {"backup": {"allowed_mount_roots": []}},
    {"backup": {"allowed_mount_roots": ["media/"]}},
    {"backup": {"rsync_path": ""}},
    {"history": {"limit": 0}},
    {"history": {"limit": "ten"}},
    {"history": {"limit": True}},
    {"logging": {"level": "LOUD"}},
])
def test_validator_rejects(config):
    with pytest.raises(ValueError):
        ConfigValidator().validate(config)


def test_validator_accepts_partial_config():
    ConfigValidator().validate({})
    ConfigValidator().validate({"backup": None, "logging": {"level": "debug"}})
    ConfigValidator().validate(DEFAULT_CONFIG)
