"""
Manages loading, validation, and migration of the INI configuration file,
with environment variable and command-line overrides layered on top.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from f1tv_dl.exceptions import ConfigurationError
from f1tv_dl.models.config import AppSettings, QueueSettings

log = logging.getLogger(__name__)

# INI keys and their defaults, in the order they are written to a new file.
DEFAULT_SETTINGS: dict[str, str] = {
    "username": "",
    "password": "",
    "debug": "false",
    "audio_stream": "eng",
    "video_size": "best",
    "format": "mp4",
    "output_directory": "",
    "parallel": "1",
    "delay": "30",
    "retries": "3",
    "retry_delay": "5",
    "rate_limit_backoff": "60",
}

# INI key -> QueueSettings field
_QUEUE_KEYS = {
    "parallel": "max_concurrent",
    "delay": "delay",
    "retries": "retry_attempts",
    "retry_delay": "retry_delay",
    "rate_limit_backoff": "rate_limit_backoff",
}

ENV_USERNAME = "F1TV_USER"
ENV_PASSWORD = "F1TV_PASS"
ENV_DEBUG = "F1TV_DEBUG"


def env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_settings(
        self,
        cli_options: dict[str, Any] | None = None,
        environ: dict[str, str] | None = None,
    ) -> AppSettings:
        """
        Builds validated settings from, in increasing priority: defaults, the INI
        file (if present), environment variables, and command-line options.

        Args:
            cli_options: INI-style keys provided via the command line.
            environ: Environment mapping, defaults to ``os.environ``.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        values = dict(DEFAULT_SETTINGS)

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e
            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            values.update(self._parser["DEFAULT"])

        values.update(self._env_overrides(os.environ if environ is None else environ))

        if cli_options:
            values.update({k: str(v) for k, v in cli_options.items() if v is not None})

        return self._build_settings(values)

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """Creates and saves a new configuration file, filling in defaults."""
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}
        for key, default in DEFAULT_SETTINGS.items():
            value = settings.get(key, default)
            if isinstance(value, bool):
                value = "true" if value else "false"
            config["DEFAULT"][key] = str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, str]:
        """Returns the raw INI values (defaults for missing keys)."""
        values = dict(DEFAULT_SETTINGS)
        if self.config_file_path.is_file():
            self._parser.read(self.config_file_path, encoding="utf-8")
            values.update(self._parser["DEFAULT"])
        return values

    @staticmethod
    def _env_overrides(environ: dict[str, str]) -> dict[str, str]:
        overrides = {}
        if environ.get(ENV_USERNAME):
            overrides["username"] = environ[ENV_USERNAME]
        if environ.get(ENV_PASSWORD):
            overrides["password"] = environ[ENV_PASSWORD]
        if env_flag(environ.get(ENV_DEBUG)):
            overrides["debug"] = "true"
        return overrides

    def _build_settings(self, values: dict[str, str]) -> AppSettings:
        try:
            queue = QueueSettings(
                **{field: values[key] for key, field in _QUEUE_KEYS.items()}
            )
            return AppSettings(
                username=values["username"],
                password=values["password"],
                debug=env_flag(values["debug"]),
                audio_stream=values["audio_stream"],
                video_size=values["video_size"],
                format=values["format"],
                output_directory=values["output_directory"],
                queue=queue,
                config_path=str(self.config_file_path.parent),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        section = self._parser["DEFAULT"]
        missing = [key for key in DEFAULT_SETTINGS if key not in section]
        if not missing:
            return False

        for key in missing:
            section[key] = DEFAULT_SETTINGS[key]
            log.debug(
                f"Migrating config: added missing key '{key}' with "
                f"value '{section[key]}'."
            )

        try:
            with open(self.config_file_path, "w", encoding="utf-8") as f:
                self._parser.write(f)
        except OSError as e:
            log.error(f"Could not save migrated configuration file: {e}")
            return False
        return True
