import configparser

import pytest

from f1tv_dl.exceptions import ConfigurationError
from f1tv_dl.storage.config_manager import DEFAULT_SETTINGS, ConfigManager


def write_ini(path, **values):
    config = configparser.ConfigParser(interpolation=None)
    config["DEFAULT"] = {k: str(v) for k, v in values.items()}
    with open(path, "w", encoding="utf-8") as f:
        config.write(f)


def test_defaults_without_a_config_file(tmp_path):
    settings = ConfigManager(tmp_path / "config.ini").load_settings(environ={})

    assert settings.queue.max_concurrent == 1
    assert settings.queue.delay == 30
    assert settings.queue.retry_attempts == 3
    assert settings.audio_stream == "eng"
    assert not settings.has_login
    assert settings.token_cache_path == tmp_path / ".token-cache.json"


def test_layering_ini_then_env_then_cli(tmp_path):
    path = tmp_path / "config.ini"
    write_ini(path, username="ini-user", password="ini-pass", parallel=2, delay=10)

    settings = ConfigManager(path).load_settings(
        cli_options={"delay": 5, "retries": None},
        environ={"F1TV_USER": "env-user", "F1TV_PASS": "env-pass", "F1TV_DEBUG": "true"},
    )

    assert settings.username == "env-user"
    assert settings.password == "env-pass"
    assert settings.debug is True
    assert settings.queue.max_concurrent == 2
    assert settings.queue.delay == 5
    assert settings.queue.retry_attempts == 3


def test_parallel_above_ceiling_is_clamped(tmp_path):
    path = tmp_path / "config.ini"
    write_ini(path, parallel=10)
    assert ConfigManager(path).load_settings(environ={}).queue.max_concurrent == 3


def test_username_without_password_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        ConfigManager(tmp_path / "config.ini").load_settings(environ={"F1TV_USER": "someone"})


def test_invalid_values_raise_configuration_error(tmp_path):
    path = tmp_path / "config.ini"
    write_ini(path, retries=0)
    with pytest.raises(ConfigurationError):
        ConfigManager(path).load_settings(environ={})


def test_missing_keys_are_migrated_into_the_file(tmp_path):
    path = tmp_path / "config.ini"
    write_ini(path, audio_stream="nld")

    settings = ConfigManager(path).load_settings(environ={})

    assert settings.audio_stream == "nld"
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(path, encoding="utf-8")
    assert set(DEFAULT_SETTINGS) <= set(parser["DEFAULT"])


def test_save_new_config_fills_defaults(tmp_path):
    path = tmp_path / "nested" / "config.ini"
    manager = ConfigManager(path)
    manager.save_new_config({"username": "u", "password": "p", "debug": True})

    values = manager.get_config_as_dict()
    assert values["username"] == "u"
    assert values["debug"] == "true"
    assert values["parallel"] == "1"
